"""Tests for product page parsing."""

import pytest

from src.domeggook_export.extraction import ExtractionError, parse_price, parse_product_page

PAGE_URL = "https://domeggook.com/12345"

PRODUCT_PAGE = """
<html><body>
<div id="lPath"><a href="/">홈</a><a href="/c/1">주방</a><a href="/c/2"> 텀블러 </a></div>
<h1 id="lInfoItemTitle"> 스텐 진공 텀블러 500ml </h1>
<div class="lGGookDealAmt"><b>12,300원</b></div>
<div id="lThumbImg"><img src="/upload/thumb.jpg"></div>
<div id="lInfoBody">
  보온 보냉 겸용 텀블러
  <img src="https://cdn.domeggook.com/body1.jpg">
</div>
<div class="lInfoQty"><span class="lInfoItemContent">새상품</span></div>
<div class="lDeliMethod">택배</div>
<div class="lDeliDay">2일 이내 출고</div>
<div class="lDeliFee">3,000원</div>
<div class="lDeliJeju">제주 3,000원 추가</div>
<div class="lDeliBundle">묶음배송 가능</div>
<div id="lInfoViewItemInfoWrap">
  <div class="lTblRow">
    <div class="lTblHalf"><div class="lTblCell">원산지</div><div class="lTblCell">중국(OEM)</div></div>
    <div class="lTblHalf"><div class="lTblCell">모델명</div><div class="lTblCell">TB-500</div></div>
  </div>
  <div class="lTblRow">
    <div class="lTblHalf"><div class="lTblCell">제조사</div><div class="lTblCell">한빛상사</div></div>
    <div class="lTblHalf"><div class="lTblCell">포장</div><div class="lTblCell">10x10x25cm / 350g</div></div>
  </div>
</div>
<div id="lSafetyCert"><span class="lExemContent">KC 인증 대상 아님</span></div>
<div id="lInfoImgUse"><span class="lInfoItemContent">이미지 사용 허용</span></div>
<div id="lInfoViewItemContents"><p>상세</p><img src="/detail/1.jpg"><img data-src="//cdn.domeggook.com/detail/2.png"></div>
</body></html>
"""


@pytest.mark.parametrize(
    "text, expected",
    [("12,300원", 12300), ("가격 문의", 0), ("", 0), (None, 0), ("1 000", 1000)],
)
def test_parse_price(text, expected):
    assert parse_price(text) == expected


def test_parse_product_page_fields():
    raw = parse_product_page(PRODUCT_PAGE, PAGE_URL)

    assert raw.title == "스텐 진공 텀블러 500ml"
    assert raw.price == 12300
    assert raw.description.startswith("보온 보냉 겸용 텀블러")
    assert raw.thumbnail_url == "https://domeggook.com/upload/thumb.jpg"
    assert raw.category == "홈 > 주방 > 텀블러"
    assert raw.condition == "새상품"
    assert raw.shipping.method == "택배"
    assert raw.shipping.lead_time == "2일 이내 출고"
    assert raw.shipping.base_cost == "3,000원"
    assert raw.shipping.regional_surcharge == "제주 3,000원 추가"
    assert raw.shipping.bundling_note == "묶음배송 가능"
    assert raw.origin == "중국(OEM)"
    assert raw.model_name == "TB-500"
    assert raw.manufacturer == "한빛상사"
    assert raw.package_size == "10x10x25cm / 350g"
    assert raw.certification == "KC 인증 대상 아님"
    assert raw.image_permission == "이미지 사용 허용"


def test_detail_images_are_absolute_and_ordered():
    raw = parse_product_page(PRODUCT_PAGE, PAGE_URL)

    assert raw.detail_image_urls == (
        "https://domeggook.com/detail/1.jpg",
        "https://cdn.domeggook.com/detail/2.png",
    )
    assert raw.detail_html.startswith("<p>상세</p>")


def test_thumbnail_falls_back_to_body_image():
    page = PRODUCT_PAGE.replace('<div id="lThumbImg"><img src="/upload/thumb.jpg"></div>', "")
    raw = parse_product_page(page, PAGE_URL)
    assert raw.thumbnail_url == "https://cdn.domeggook.com/body1.jpg"


def test_sparse_page_uses_empty_values():
    raw = parse_product_page('<div id="lInfoItemTitle">이름만 있는 상품</div>', PAGE_URL)

    assert raw.title == "이름만 있는 상품"
    assert raw.price == 0
    assert raw.thumbnail_url == ""
    assert raw.detail_image_urls == ()
    assert raw.origin == ""
    assert raw.detail_html == ""


@pytest.mark.parametrize("html", ["", "<html><body><p>404</p></body></html>", '<h1 id="lInfoItemTitle">  </h1>'])
def test_missing_title_raises(html):
    with pytest.raises(ExtractionError) as exc_info:
        parse_product_page(html, PAGE_URL)
    assert exc_info.value.url == PAGE_URL

"""Tests for origin classification rules."""

import pytest

from src.domeggook_export.models import ORIGIN_DOMESTIC, ORIGIN_FOREIGN, OriginClassification
from src.domeggook_export.origin import OriginClassifier, OriginReference


@pytest.fixture
def classifier():
    """Create an OriginClassifier with the built-in reference lists."""
    return OriginClassifier()


def test_domestic_marker_maps_to_default_region(classifier):
    result = classifier.classify("국산")
    assert result == OriginClassification(
        origin_type=ORIGIN_DOMESTIC, domestic_region="경기", foreign_country=""
    )


def test_imported_marker_uses_last_segment(classifier):
    result = classifier.classify("수입산_중국")
    assert result.origin_type == ORIGIN_FOREIGN
    assert result.foreign_country == "중국"
    assert result.domestic_region == ""


def test_imported_marker_without_delimiter_keeps_text(classifier):
    result = classifier.classify("수입산")
    assert result == OriginClassification.foreign("수입산")


@pytest.mark.parametrize("text", ["중국(OEM)", "중국", "제조국: 베트남", "일본산 원단"])
def test_country_substring_returns_input_verbatim(classifier, text):
    result = classifier.classify(text)
    assert result.origin_type == ORIGIN_FOREIGN
    assert result.foreign_country == text
    assert result.domestic_region == ""


def test_country_outranks_region(classifier):
    """A country mention wins over a regional hint in the same string."""
    result = classifier.classify("경기 포장_중국 생산")
    assert result == OriginClassification.foreign("경기 포장_중국 생산")


def test_multiple_countries_keep_whole_text(classifier):
    result = classifier.classify("중국/베트남")
    assert result == OriginClassification.foreign("중국/베트남")


@pytest.mark.parametrize("text", ["경기도 화성시", "서울 강남구", "국내산", "대한민국"])
def test_region_or_domestic_hint(classifier, text):
    result = classifier.classify(text)
    assert result.origin_type == ORIGIN_DOMESTIC
    assert result.domestic_region == text
    assert result.foreign_country == ""


def test_domestic_marker_must_match_exactly(classifier):
    """"국산" inside a longer string is not the literal domestic mapping."""
    result = classifier.classify("국산 원료")
    assert result.origin_type == ORIGIN_FOREIGN
    assert result.foreign_country == "국산 원료"


def test_unmatched_text_falls_back_to_foreign(classifier):
    result = classifier.classify("기타")
    assert result == OriginClassification.foreign("기타")


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_origin_leaves_fields_blank(classifier, text):
    result = classifier.classify(text)
    assert result.origin_type == ORIGIN_FOREIGN
    assert result.domestic_region == ""
    assert result.foreign_country == ""


def test_last_segment_country_keeps_full_text():
    """A country in the last segment is also a substring, so the text stays whole."""
    reference = OriginReference(foreign_countries=("Poland",), domestic_regions=())
    classifier = OriginClassifier(reference)
    assert classifier.classify("EU_Poland") == OriginClassification.foreign("EU_Poland")


def test_custom_reference_lists():
    reference = OriginReference.from_dict(
        {"foreign_countries": ["몽골"], "domestic_regions": ["판교"], "default_region": "서울"}
    )
    classifier = OriginClassifier(reference)

    assert classifier.classify("국산") == OriginClassification.domestic("서울")
    assert classifier.classify("몽골 생산") == OriginClassification.foreign("몽골 생산")
    assert classifier.classify("판교 공장").origin_type == ORIGIN_DOMESTIC
    # 중국 is no longer a reference country
    assert classifier.classify("중국").foreign_country == "중국"
    assert classifier.classify("중국").origin_type == ORIGIN_FOREIGN


def test_reference_from_yaml(tmp_path):
    path = tmp_path / "origin.yaml"
    path.write_text("default_region: 부산\nforeign_countries: [칠레]\n", encoding="utf-8")

    reference = OriginReference.from_yaml(path)

    assert reference.default_region == "부산"
    assert reference.foreign_countries == ("칠레",)
    assert reference.domestic_marker == "국산"


def test_reference_from_missing_yaml(tmp_path):
    with pytest.raises(FileNotFoundError):
        OriginReference.from_yaml(tmp_path / "missing.yaml")

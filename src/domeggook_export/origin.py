"""Origin classification for scraped product pages.

Product pages carry a free-text origin (e.g. ``국산``, ``수입산_중국``,
``중국(OEM)``, ``경기도 화성시``). The catalog workbook needs a structured
triple instead: domestic or foreign, plus either a domestic region or a
foreign country. Rules are evaluated in a fixed order and the first match
wins; country names frequently appear inside longer descriptive strings, so
the foreign-country lookup deliberately runs before the regional heuristics.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

import yaml

from .logging_config import get_logger
from .models import OriginClassification

logger = get_logger("origin")

PART_DELIMITER = "_"

DEFAULT_DOMESTIC_MARKER = "국산"
DEFAULT_DOMESTIC_REGION = "경기"
DEFAULT_IMPORTED_MARKER = "수입"
DEFAULT_GENERIC_DOMESTIC_MARKERS: Tuple[str, ...] = ("국내", "대한민국", "한국")

DEFAULT_DOMESTIC_REGIONS: Tuple[str, ...] = (
    "서울", "부산", "대구", "인천", "광주", "대전", "울산", "세종",
    "경기", "강원", "충북", "충남", "전북", "전남", "경북", "경남", "제주",
    "충청북도", "충청남도", "전라북도", "전라남도", "경상북도", "경상남도",
)

DEFAULT_FOREIGN_COUNTRIES: Tuple[str, ...] = (
    "중국", "일본", "미국", "베트남", "대만", "홍콩", "태국", "인도네시아",
    "인도", "말레이시아", "필리핀", "싱가포르", "캄보디아", "방글라데시",
    "파키스탄", "미얀마", "스리랑카", "터키", "독일", "프랑스", "영국",
    "이탈리아", "스페인", "네덜란드", "벨기에", "스위스", "오스트리아",
    "스웨덴", "덴마크", "체코", "폴란드", "헝가리", "러시아", "캐나다",
    "멕시코", "브라질", "호주", "뉴질랜드", "이스라엘",
)


def _as_tuple(values: Optional[Iterable[Any]], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if values is None:
        return default
    cleaned = tuple(str(value).strip() for value in values if str(value).strip())
    return cleaned


@dataclass(frozen=True)
class OriginReference:
    """Immutable lookup tables used by :class:`OriginClassifier`."""

    domestic_marker: str = DEFAULT_DOMESTIC_MARKER
    default_region: str = DEFAULT_DOMESTIC_REGION
    imported_marker: str = DEFAULT_IMPORTED_MARKER
    generic_domestic_markers: Tuple[str, ...] = DEFAULT_GENERIC_DOMESTIC_MARKERS
    domestic_regions: Tuple[str, ...] = DEFAULT_DOMESTIC_REGIONS
    foreign_countries: Tuple[str, ...] = DEFAULT_FOREIGN_COUNTRIES

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OriginReference":
        defaults = cls()
        return cls(
            domestic_marker=str(data.get("domestic_marker", defaults.domestic_marker)),
            default_region=str(data.get("default_region", defaults.default_region)),
            imported_marker=str(data.get("imported_marker", defaults.imported_marker)),
            generic_domestic_markers=_as_tuple(
                data.get("generic_domestic_markers"), defaults.generic_domestic_markers
            ),
            domestic_regions=_as_tuple(data.get("domestic_regions"), defaults.domestic_regions),
            foreign_countries=_as_tuple(data.get("foreign_countries"), defaults.foreign_countries),
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "OriginReference":
        """Load reference lists from YAML; keys that are absent keep their defaults."""
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Origin reference not found: {config_path}")
        with open(config_path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        return cls.from_dict(data)


class OriginClassifier:
    """Maps free-text origin strings to :class:`OriginClassification`."""

    def __init__(self, reference: Optional[OriginReference] = None) -> None:
        self.reference = reference or OriginReference()

    def classify(self, origin_text: Optional[str]) -> OriginClassification:
        """Classify ``origin_text``; the first matching rule wins.

        1. exact domestic marker              -> domestic, default region
        2. contains the imported marker       -> foreign, last ``_`` part
        3. contains a foreign country         -> foreign, text verbatim
        4. contains a region / domestic hint  -> domestic, text verbatim
        5. last ``_`` part is a country       -> foreign, that part
        6. anything else                      -> foreign, text verbatim
        """
        text = origin_text or ""
        if not text.strip():
            return OriginClassification()

        ref = self.reference
        parts = text.split(PART_DELIMITER)

        if text == ref.domestic_marker:
            return OriginClassification.domestic(ref.default_region)

        if ref.imported_marker and ref.imported_marker in text:
            country = parts[-1].strip() if len(parts) > 1 else text
            return OriginClassification.foreign(country)

        if any(country in text for country in ref.foreign_countries):
            return OriginClassification.foreign(text)

        if any(region in text for region in ref.domestic_regions) or any(
            marker in text for marker in ref.generic_domestic_markers
        ):
            return OriginClassification.domestic(text)

        if len(parts) > 1 and parts[-1].strip() in ref.foreign_countries:
            return OriginClassification.foreign(parts[-1].strip())

        logger.debug(f"Origin '{text}' matched no rule; defaulting to foreign")
        return OriginClassification.foreign(text)

import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from exam_scheduling.constants import CanonicalField

from .equivalents import EXAM_COLUMN_SYNONYMS, Synonym

logger = logging.getLogger(__name__)

RTL_RE = re.compile(r"[\u0590-\u08ff\ufb1d-\ufdff\ufe70-\ufeff]")
# Substring matches are only trusted above this length.
MIN_PARTIAL_LENGTH = 3

_LETTER_FOLDS = str.maketrans({"ك": "ک", "ي": "ی", "ى": "ی", "\u200c": " "})


class SheetStructureError(ValueError):
    """The sheet cannot be imported at all (empty, unreadable, wrong shape)."""


class MissingTitleColumn(SheetStructureError):
    def __init__(self, available_headers: Sequence[str]):
        self.available_headers = list(available_headers)
        listing = ", ".join(self.available_headers) or "none"
        super().__init__(f"Title column not found. Available headers: {listing}")


def contains_rtl(text: str) -> bool:
    return bool(RTL_RE.search(text))


def normalize_header(value) -> str:
    """Collapse whitespace, fold Arabic letter variants, lower-case Latin headers."""
    if value is None:
        return ""
    text = str(value).translate(_LETTER_FOLDS)
    text = re.sub(r"\s+", " ", text).strip()
    if not text or text.lower() == "nan" or text.lower().startswith("unnamed:"):
        return ""
    if contains_rtl(text):
        return text
    return text.lower()


def _flatten(synonyms: Mapping[CanonicalField, Iterable[Synonym]]) -> List[Tuple[CanonicalField, str]]:
    table = []
    for field, entries in synonyms.items():
        for entry in entries:
            normalized = normalize_header(entry.text)
            if normalized:
                table.append((field, normalized))
    return table


def match_header(header: str, table: List[Tuple[CanonicalField, str]]) -> Optional[CanonicalField]:
    for field, text in table:
        if header == text:
            return field
    if len(header) <= MIN_PARTIAL_LENGTH:
        return None
    for field, text in table:
        if len(text) > MIN_PARTIAL_LENGTH and (text in header or header in text):
            return field
    return None


def resolve_headers(
    header_row: Sequence,
    synonyms: Mapping[CanonicalField, Iterable[Synonym]] = EXAM_COLUMN_SYNONYMS,
) -> Dict[CanonicalField, int]:
    """
    Bind canonical fields to column positions.

    The first header that resolves to a field wins; later headers resolving
    to the same field are ignored, as are headers matching nothing. Raises
    ``MissingTitleColumn`` when no header binds ``title``.
    """
    table = _flatten(synonyms)
    mapping: Dict[CanonicalField, int] = {}
    available = []

    for index, cell in enumerate(header_row):
        header = normalize_header(cell)
        if not header:
            continue
        available.append(str(cell).strip())
        field = match_header(header, table)
        if field is None:
            logger.debug("Header %r did not match any exam field.", header)
            continue
        if field in mapping:
            logger.debug("Header %r ignored; %s already bound to column %s.", header, field.value, mapping[field])
            continue
        logger.debug("Header %r bound to %s.", header, field.value)
        mapping[field] = index

    if CanonicalField.TITLE not in mapping:
        raise MissingTitleColumn(available)
    return mapping

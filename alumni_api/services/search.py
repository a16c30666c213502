"""Search predicate construction, ranking and paging for the alumni directory.

The predicate is a plain data structure (a conjunction of `FieldCondition`s)
so that every store renders it the same way: the Postgres repository turns
each condition into a bound `~*` clause, the in-memory store evaluates
`SearchQuery.matches` directly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Mapping, TypeVar

PROGRAM_PRIORITY = ("PGDMIT", "PGDIT", "IPG", "IMT", "IMG", "BCS", "BIT", "MBA", "MTECH", "PHD", "DSC")
UNRANKED_PROGRAM = len(PROGRAM_PRIORITY) + 1
# Missing or unparseable serial numbers sort after every real one.
MISSING_SERIAL_NO = 2**63 - 1
INTEGER_TEXT_PATTERN = r"^[+-]?[0-9]{1,18}$"
INTEGER_TEXT_RE = re.compile(INTEGER_TEXT_PATTERN)
LEADING_INTEGER_RE = re.compile(r"^[+-]?[0-9]{1,18}")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 50

PUBLIC_FIELDS = (
    "rollNumber",
    "name",
    "yearOfEntry",
    "yearOfGraduation",
    "programName",
    "specialization",
    "department",
    "serialNo",
    "lastPosition",
    "lastOrganization",
    "natureOfJob",
    "currentLocationIndia",
    "currentOverseasLocation",
    "country",
)

CONTAINS_FIELDS = ("name", "lastOrganization", "lastPosition", "collegeClubs")
EXACT_FIELDS = ("rollNumber", "natureOfJob", "country", "programName", "specialization")
NUMBER_FIELDS = ("yearOfEntry", "yearOfGraduation")
CITY_FIELDS = ("currentLocationIndia", "currentOverseasLocation")


class MatchMode(str, Enum):
    CONTAINS = "contains"
    WORD_PREFIX = "word_prefix"
    EXACT = "exact"
    NUMBER = "number"


@dataclass(frozen=True, slots=True)
class FieldCondition:
    """One AND-clause: true when any of `fields` matches `value` under `mode`."""

    fields: tuple[str, ...]
    mode: MatchMode
    value: str | int

    def pattern(self) -> str:
        """Postgres ARE pattern with the user value escaped to a literal."""
        escaped = re.escape(str(self.value))
        if self.mode is MatchMode.CONTAINS:
            return escaped
        if self.mode is MatchMode.WORD_PREFIX:
            return rf"\m{escaped}"
        if self.mode is MatchMode.EXACT:
            return rf"^\s*{escaped}\s*$"
        raise ValueError("numeric conditions are compared, not pattern matched")

    def matches(self, document: Mapping[str, Any]) -> bool:
        return any(self._matches_value(document.get(name)) for name in self.fields)

    def _matches_value(self, value: Any) -> bool:
        if value is None:
            return False
        if self.mode is MatchMode.NUMBER:
            return coerce_record_int(value) == self.value

        text = str(value)
        escaped = re.escape(str(self.value))
        if self.mode is MatchMode.CONTAINS:
            return re.search(escaped, text, re.IGNORECASE) is not None
        if self.mode is MatchMode.WORD_PREFIX:
            # Same as Postgres \m: a word character not preceded by one.
            return re.search(rf"(?<!\w)(?=\w){escaped}", text, re.IGNORECASE) is not None
        return re.fullmatch(rf"\s*{escaped}\s*", text, re.IGNORECASE) is not None


@dataclass(slots=True)
class SearchQuery:
    conditions: list[FieldCondition] = field(default_factory=list)
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def is_empty(self) -> bool:
        return not self.conditions

    def matches(self, document: Mapping[str, Any]) -> bool:
        if self.is_empty:
            return False
        return all(condition.matches(document) for condition in self.conditions)


T = TypeVar("T")


@dataclass(slots=True)
class Page(Generic[T]):
    items: list[T]
    page: int
    limit: int
    total_count: int

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def has_more(self) -> bool:
        return self.skip + self.count < self.total_count


def parse_pagination(page: str | int | None, limit: str | int | None) -> tuple[int, int]:
    """Lenient page/limit parsing: bad input falls back to defaults, limit is clamped."""
    parsed_page = _coerce_int(page)
    if parsed_page is None or parsed_page < 1:
        parsed_page = DEFAULT_PAGE

    parsed_limit = _coerce_int(limit)
    if parsed_limit is None:
        parsed_limit = DEFAULT_LIMIT
    parsed_limit = min(max(parsed_limit, 1), MAX_LIMIT)
    return parsed_page, parsed_limit


def build_search_query(
    params: Mapping[str, str | None],
    *,
    page: str | int | None = None,
    limit: str | int | None = None,
) -> SearchQuery:
    """Translate raw search parameters into a conjunctive predicate.

    Blank parameters contribute nothing. Numeric parameters that do not start
    with an integer are ignored rather than rejected.
    """
    parsed_page, parsed_limit = parse_pagination(page, limit)
    conditions: list[FieldCondition] = []

    for name in CONTAINS_FIELDS:
        value = _clean(params.get(name))
        if value:
            conditions.append(FieldCondition(fields=(name,), mode=MatchMode.CONTAINS, value=value))

    city = _clean(params.get("city"))
    if city:
        conditions.append(FieldCondition(fields=CITY_FIELDS, mode=MatchMode.WORD_PREFIX, value=city))

    for name in EXACT_FIELDS:
        value = _clean(params.get(name))
        if value:
            conditions.append(FieldCondition(fields=(name,), mode=MatchMode.EXACT, value=value))

    for name in NUMBER_FIELDS:
        number = parse_leading_int(params.get(name))
        if number is not None:
            conditions.append(FieldCondition(fields=(name,), mode=MatchMode.NUMBER, value=number))

    return SearchQuery(conditions=conditions, page=parsed_page, limit=parsed_limit)


def program_rank(program_name: Any) -> int:
    if not isinstance(program_name, str):
        return UNRANKED_PROGRAM
    try:
        return PROGRAM_PRIORITY.index(program_name.strip().upper()) + 1
    except ValueError:
        return UNRANKED_PROGRAM


def serial_number(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return MISSING_SERIAL_NO
    text = str(value).strip()
    if not INTEGER_TEXT_RE.match(text):
        return MISSING_SERIAL_NO
    return int(text)


def rank_key(document: Mapping[str, Any]) -> tuple[int, int, str, str]:
    raw_serial = document.get("serialNo")
    return (
        program_rank(document.get("programName")),
        serial_number(raw_serial),
        "" if raw_serial is None else str(raw_serial),
        str(document.get("rollNumber") or ""),
    )


def project_public_fields(document: Mapping[str, Any]) -> dict[str, Any]:
    return {name: document[name] for name in PUBLIC_FIELDS if name in document}


def parse_leading_int(value: str | None) -> int | None:
    if value is None:
        return None
    match = LEADING_INTEGER_RE.match(value.strip())
    if not match:
        return None
    return int(match.group(0))


def coerce_record_int(value: Any) -> int | None:
    """Integer value of a stored field, judged on its JSON text as Postgres `->>` renders it."""
    if isinstance(value, bool):
        return None
    text = str(value).strip()
    if INTEGER_TEXT_RE.match(text):
        return int(text)
    return None


def _coerce_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None

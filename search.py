"""
Query engine over the resource collection.

Matching and ranking share one primitive, field_hits(), over the same field
tuple, so a resource that matches a non-empty query always scores above zero.
Structured filters are exact-equality predicates looked up from
FILTER_PREDICATES when the criteria object is built.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, field_validator

import database
from repositories import Repositories
from schemas import Resource, SearchFilters, SearchHistoryEntry
from utils import as_instant, file_extension, now_utc

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("title", "description", "file_name")
FIELD_WEIGHTS = {"title": 10, "description": 5, "file_name": 3}
EXACT_TITLE_BONUS = 20

MIN_SUGGESTION_LENGTH = 2
MAX_SUGGESTIONS = 8
HISTORY_LIMIT = 20

Predicate = Callable[[Resource, object], bool]


# ---------------------------
# Text matching and scoring
# ---------------------------

def normalize_query(query: Optional[str]) -> str:
    return (query or "").strip().lower()


def field_hits(resource: Resource, term: str) -> List[str]:
    """Names of the text fields that contain the (lower-cased) term."""
    return [f for f in TEXT_FIELDS if term in (getattr(resource, f) or "").lower()]


def matches_text(resource: Resource, term: str) -> bool:
    return not term or bool(field_hits(resource, term))


def relevance_score(resource: Resource, term: str) -> int:
    if not term:
        return 0
    score = sum(FIELD_WEIGHTS[f] for f in field_hits(resource, term))
    if (resource.title or "").lower() == term:
        score += EXACT_TITLE_BONUS
    return score


def sort_search_results(results: Iterable[Resource], query: Optional[str]) -> List[Resource]:
    """Newest first for an empty query, otherwise by score then newest first."""
    term = normalize_query(query)
    by_date = sorted(results, key=lambda r: r.upload_date, reverse=True)
    if not term:
        return by_date
    # sorted() is stable, so equal scores keep the date order
    return sorted(by_date, key=lambda r: relevance_score(r, term), reverse=True)


# ---------------------------
# Structured filters
# ---------------------------

FILTER_PREDICATES: Dict[str, Predicate] = {
    "department": lambda r, v: r.department_id == v,
    "course": lambda r, v: r.course_id == v,
    "lecturer": lambda r, v: r.lecturer_id == v,
    "type": lambda r, v: r.type == v,
    "year": lambda r, v: r.year == v,
    "file_type": lambda r, v: file_extension(r.file_name) == str(v).lower(),
    "date_from": lambda r, v: r.upload_date >= v,
    "date_to": lambda r, v: r.upload_date <= v,
}


def build_predicates(filters: Dict[str, object]) -> List[Callable[[Resource], bool]]:
    """Bind each active filter to its predicate; unknown keys raise KeyError."""
    bound = []
    for key, value in filters.items():
        if value is None or value == "":
            continue
        check = FILTER_PREDICATES[key]
        bound.append(lambda r, check=check, value=value: check(r, value))
    return bound


def filter_resources(resources: Iterable[Resource], filters: Dict[str, object]) -> List[Resource]:
    predicates = build_predicates(filters)
    return [r for r in resources if all(p(r) for p in predicates)]


class SearchCriteria(BaseModel):
    """Advanced search input; every set field is ANDed."""
    model_config = ConfigDict(extra="forbid")

    query: Optional[str] = None
    department: Optional[str] = None
    course: Optional[str] = None
    lecturer: Optional[str] = None
    type: Optional[str] = None
    year: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    file_type: Optional[str] = None

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def _instant(cls, v):
        if v is None or v == "":
            return None
        return as_instant(v)

    def structured(self) -> Dict[str, object]:
        return self.model_dump(exclude={"query"}, exclude_none=True)


def search_resources(resources: Iterable[Resource], query: Optional[str], filters: Optional[SearchFilters] = None) -> List[Resource]:
    term = normalize_query(query)
    active = (filters or SearchFilters()).model_dump()
    predicates = build_predicates(active)
    matched = [r for r in resources if matches_text(r, term) and all(p(r) for p in predicates)]
    return sort_search_results(matched, term)


def advanced_filter(resources: Iterable[Resource], criteria: SearchCriteria) -> List[Resource]:
    term = normalize_query(criteria.query)
    predicates = build_predicates(criteria.structured())
    return [r for r in resources if matches_text(r, term) and all(p(r) for p in predicates)]


# ---------------------------
# Engine
# ---------------------------

class QueryEngine:
    def __init__(self, repos: Repositories):
        self.repos = repos

    def search(self, query: Optional[str], filters: Optional[SearchFilters] = None) -> List[Resource]:
        return search_resources(self.repos.resources.list(), query, filters)

    def advanced_search(self, criteria: SearchCriteria) -> List[Resource]:
        return advanced_filter(self.repos.resources.list(), criteria)

    def suggest(self, query: Optional[str]) -> List[str]:
        term = normalize_query(query)
        if len(term) < MIN_SUGGESTION_LENGTH:
            return []

        found: Dict[str, None] = {}
        for resource in self.repos.resources.list():
            if term in resource.title.lower():
                found.setdefault(resource.title)
        for dept in self.repos.departments.list():
            if term in dept.name.lower():
                found.setdefault(dept.name)
        for course in self.repos.courses.list():
            if term in course.name.lower() or term in course.code.lower():
                found.setdefault(f"{course.code} - {course.name}")
        for lecturer in self.repos.lecturers.list():
            if term in lecturer.name.lower():
                found.setdefault(lecturer.name)
        return list(found)[:MAX_SUGGESTIONS]

    # ---------- history ----------
    def history(self) -> List[SearchHistoryEntry]:
        raw = self.repos.store.get(database.SEARCH_HISTORY)
        return [SearchHistoryEntry.model_validate(e) for e in raw or []]

    def record_search(self, query: Optional[str], filters: Optional[SearchFilters], results_count: int) -> bool:
        entry = SearchHistoryEntry(
            query=(query or "").strip(),
            filters=(filters or SearchFilters()).model_dump(exclude_none=True),
            timestamp=now_utc(),
            results_count=results_count,
        )
        entries: Sequence[SearchHistoryEntry] = [entry] + self.history()
        return self.repos.store.set(
            database.SEARCH_HISTORY,
            [e.model_dump(mode="json") for e in entries[:HISTORY_LIMIT]],
        )

    def clear_history(self) -> None:
        self.repos.store.remove(database.SEARCH_HISTORY)

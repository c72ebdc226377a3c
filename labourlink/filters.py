"""Job search filters and their query-string representation"""
import math
from typing import Literal, Optional

import httpx
from pydantic import BaseModel, Field, field_validator

from .logger import get_logger

logger = get_logger()

StatusFilter = Literal["all", "open", "reserved", "closed"]
STATUS_FILTERS = ("all", "open", "reserved", "closed")


class JobFilters(BaseModel):
    """Filters accepted by the job list and map endpoints"""
    min_budget: Optional[float] = None
    max_budget: Optional[float] = None
    q: Optional[str] = None
    location: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
    status: StatusFilter = "all"

    @field_validator("min_budget", "max_budget")
    @classmethod
    def _finite_budget(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not math.isfinite(v):
            raise ValueError("budget must be a finite number")
        return v

    @field_validator("q", "location")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator("skills")
    @classmethod
    def _clean_skills(cls, v: list[str]) -> list[str]:
        # Skills travel comma-joined in a single parameter
        skills = [s.strip() for s in v]
        if any("," in s for s in skills):
            raise ValueError("a skill cannot contain a comma")
        return [s for s in skills if s]


def has_active_filters(filters: JobFilters) -> bool:
    return bool(
        filters.min_budget is not None
        or filters.max_budget is not None
        or filters.q
        or filters.location
        or filters.skills
        or filters.status != "all"
    )


def _format_number(value: float) -> str:
    # 150.0 -> "150", 150.5 -> "150.5"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def to_query_params(filters: Optional[JobFilters]) -> dict[str, str]:
    """Ordered query parameters; 'all' status and empty values are left out"""
    if filters is None:
        return {}

    params = {}
    if filters.min_budget is not None:
        params["minBudget"] = _format_number(filters.min_budget)
    if filters.max_budget is not None:
        params["maxBudget"] = _format_number(filters.max_budget)
    if filters.q:
        params["q"] = filters.q
    if filters.location:
        params["location"] = filters.location
    if filters.skills:
        params["skills"] = ",".join(filters.skills)
    if filters.status and filters.status != "all":
        params["status"] = filters.status
    return params


def to_query_string(filters: Optional[JobFilters]) -> str:
    """Encode filters as a query string without the leading '?'"""
    return str(httpx.QueryParams(to_query_params(filters)))


def _parse_budget(name: str, raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name} filter: {raw!r}")
        return None
    if not math.isfinite(value):
        logger.warning(f"Ignoring non-finite {name} filter: {raw!r}")
        return None
    return value


def from_query_string(query_string: str) -> JobFilters:
    """Decode a query string into filters; unusable values are dropped"""
    params = httpx.QueryParams(query_string.lstrip("?"))

    skills_param = params.get("skills")
    skills = [s for s in skills_param.split(",") if s] if skills_param else []

    status = params.get("status") or "all"
    if status not in STATUS_FILTERS:
        logger.warning(f"Ignoring unknown status filter: {status!r}")
        status = "all"

    return JobFilters(
        min_budget=_parse_budget("minBudget", params.get("minBudget")),
        max_budget=_parse_budget("maxBudget", params.get("maxBudget")),
        q=params.get("q") or None,
        location=params.get("location") or None,
        skills=skills,
        status=status,
    )


class FilterState:
    """Current filters kept in step with their query-string form"""

    def __init__(self, query_string: str = ""):
        self.filters = from_query_string(query_string)
        self.query_string = to_query_string(self.filters)

    @property
    def has_active_filters(self) -> bool:
        return has_active_filters(self.filters)

    def set_filters(self, filters: JobFilters):
        self.filters = filters
        self.query_string = to_query_string(filters)

    def clear(self):
        self.filters = JobFilters(status="all")
        self.query_string = ""

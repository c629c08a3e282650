"""Pydantic schemas for limiter rules and quota usage."""

from __future__ import annotations

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field, model_validator


class GranularityCategory(str, Enum):
    """Time-window classes a quota can be enforced over.

    Declaration order is the evaluation order used by the atomic evaluator.
    """

    SECOND = "SECOND"
    MINUTE = "MINUTE"
    HOUR = "HOUR"
    DAY = "DAY"
    MONTH = "MONTH"
    YEAR = "YEAR"
    CUSTOM = "CUSTOM"


CATEGORY_ORDER: tuple[GranularityCategory, ...] = tuple(GranularityCategory)


class Granularity(BaseModel):
    """One window of a limiter rule."""

    category: GranularityCategory = Field(
        ..., description="Window type (SECOND, MINUTE, HOUR, DAY, MONTH, YEAR, CUSTOM)."
    )
    max_amount: int = Field(
        ...,
        ge=0,
        description="Maximum consumption allowed in the current window.",
    )
    now_amount: int | None = Field(
        default=None,
        ge=0,
        description="Consumption so far in the current window (query responses only).",
    )
    duration_seconds: int | None = Field(
        default=None,
        gt=0,
        description="Window length in seconds; required for CUSTOM, not allowed otherwise.",
    )

    @model_validator(mode="after")
    def _check_duration(self) -> "Granularity":
        if self.category is GranularityCategory.CUSTOM and self.duration_seconds is None:
            raise ValueError("CUSTOM granularity requires duration_seconds")
        if self.category is not GranularityCategory.CUSTOM and self.duration_seconds is not None:
            raise ValueError(f"duration_seconds is only valid for CUSTOM, not {self.category.value}")
        return self


class LimiterRule(BaseModel):
    """Quota rule for a single (possibly composite) key."""

    key: str = Field(
        ...,
        min_length=1,
        description="Quota subject identifier, e.g. 'api/user1'.",
    )
    granularities: list[Granularity] = Field(
        default_factory=list,
        description="Windows enforced for this key. An empty list clears the rule.",
    )
    as_of_time: int | None = Field(
        default=None,
        description="Store time (epoch ms) at which a queried snapshot was read.",
    )

    @model_validator(mode="after")
    def _check_unique_categories(self) -> "LimiterRule":
        seen: set[GranularityCategory] = set()
        for granularity in self.granularities:
            if granularity.category in seen:
                raise ValueError(f"duplicate granularity category: {granularity.category.value}")
            seen.add(granularity.category)
        return self

    def ordered_granularities(self) -> list[Granularity]:
        """Granularities in evaluation order."""
        return sorted(self.granularities, key=lambda g: CATEGORY_ORDER.index(g.category))


class RuleUpdateResponse(BaseModel):
    """Response for a rule upsert."""

    key: str
    updated: bool


class IncrementRequest(BaseModel):
    """Remote increment request."""

    keys: list[Annotated[str, Field(min_length=1)]] = Field(
        ...,
        min_length=1,
        description="Key segments joined with the configured separator.",
    )
    expire_seconds: int | None = Field(
        default=None,
        gt=0,
        description="Override window length for CUSTOM granularities.",
    )


class IncrementResponse(BaseModel):
    """Outcome of a remote increment."""

    key: str
    outcome: str = Field(..., description="accepted, no_rule, rejected or error.")
    allowed: bool
    category: GranularityCategory | None = None
    used: int | None = None
    max_amount: int | None = None


class OverageResponse(BaseModel):
    """Overage ledger entries for one key."""

    key: str
    overages: dict[str, int] = Field(
        default_factory=dict,
        description="'<CATEGORY>_<windowStartEpochSeconds>' to rejected attempt count.",
    )

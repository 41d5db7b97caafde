"""
Domain models for pload.

`ActivityRecord` is the typed, NULL-aware row bound to one INSERT tuple and
mirrors the columns of `db/activities.sql`. `IngestResult` is the
(processed, affected) tally reported by workers and summed by the aggregator.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from pydantic import BaseModel, Field

NULL_SENTINEL = "null"

# Input field order; also the destination column order after the import id.
RECORD_FIELDS: Tuple[str, ...] = (
    "marketoguid",
    "leadid",
    "activitydate",
    "activitytypeid",
    "campaignid",
    "primaryattributevalueid",
    "primaryattributevalue",
    "attributes",
)
RECORD_ARITY = len(RECORD_FIELDS)

Record = Tuple[str, ...]


def nullify(value: str) -> Optional[str]:
    """Map the textual NULL sentinel to None, pass anything else through."""
    return None if value == NULL_SENTINEL else value


class ActivityRecord(BaseModel):
    """
    One activity row ready to be bound to an INSERT statement.

    Values stay textual; PostgreSQL casts them to the column types on insert.
    The JSON attribute list is passed through untouched.
    """

    marketoguid: Optional[str] = Field(..., description="Global identifier (unique key).")
    leadid: Optional[str] = Field(..., description="Lead identifier.")
    activitydate: Optional[str] = Field(..., description="Activity timestamp.")
    activitytypeid: Optional[str] = Field(..., description="Activity type identifier.")
    campaignid: Optional[str] = Field(..., description="Campaign identifier.")
    primaryattributevalueid: Optional[str] = Field(
        ..., description="Primary attribute value identifier."
    )
    primaryattributevalue: Optional[str] = Field(..., description="Primary attribute value.")
    attributes: Optional[str] = Field(..., description="JSON-encoded attribute list.")

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": False,
    }

    @classmethod
    def from_fields(cls, fields: Sequence[str]) -> "ActivityRecord":
        if len(fields) != RECORD_ARITY:
            raise ValueError(f"expected {RECORD_ARITY} fields, got {len(fields)}")
        return cls(**{name: nullify(value) for name, value in zip(RECORD_FIELDS, fields)})

    def values(self) -> Tuple[Optional[str], ...]:
        """Column values in insert order."""
        return tuple(getattr(self, name) for name in RECORD_FIELDS)


@dataclass(frozen=True)
class IngestResult:
    """Records processed and rows actually inserted."""

    processed: int = 0
    affected: int = 0

    def __add__(self, other: "IngestResult") -> "IngestResult":
        return IngestResult(
            processed=self.processed + other.processed,
            affected=self.affected + other.affected,
        )


__all__ = [
    "ActivityRecord",
    "IngestResult",
    "NULL_SENTINEL",
    "RECORD_ARITY",
    "RECORD_FIELDS",
    "Record",
    "nullify",
]

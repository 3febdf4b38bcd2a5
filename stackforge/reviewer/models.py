"""Pydantic v2 models for review findings and reports."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    HIGH = "HIGH"
    MED = "MED"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """0 for the most severe; lower ranks sort first."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[Severity, int] = {Severity.HIGH: 0, Severity.MED: 1, Severity.LOW: 2}


class Location(BaseModel):
    """A file and optional 1-based line."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.file}:{self.line}" if self.line is not None else self.file


class ReviewFinding(BaseModel):
    """One issue reported by a domain specialist."""

    model_config = ConfigDict(frozen=True)

    domain: str = Field(..., description="Domain that reported the finding")
    severity: Severity
    message: str
    location: Location

    @property
    def key(self) -> tuple[Location, str]:
        """Identity used for de-duplication across domains."""
        return (self.location, self.message)


class ReviewReport(BaseModel):
    """De-duplicated findings grouped by domain, with summary counts."""

    groups: dict[str, list[ReviewFinding]] = Field(
        default_factory=dict, description="Domain -> findings, domains in first-seen order"
    )
    counts_by_severity: dict[Severity, int] = Field(default_factory=dict)
    counts_by_domain: dict[str, int] = Field(default_factory=dict)
    total_input: int = 0
    total_output: int = 0

    @property
    def findings(self) -> list[ReviewFinding]:
        return [finding for group in self.groups.values() for finding in group]

    @property
    def passed(self) -> bool:
        return self.counts_by_severity.get(Severity.HIGH, 0) == 0

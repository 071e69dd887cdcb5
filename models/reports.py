"""Pydantic report schemas handed to reporting collaborators."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReadingPayload(BaseModel):
    """Serializable view of a single reading."""

    model_config = ConfigDict(from_attributes=True)

    timestamp: Optional[datetime] = None
    mill_tph: float
    clinker_tph: Optional[float] = None
    gypsum_tph: Optional[float] = None
    dfa_tph: Optional[float] = None
    wfa_tph: Optional[float] = None
    mill_kw: Optional[float] = None
    mill_inlet_temp: Optional[float] = None
    mill_outlet_temp: Optional[float] = None
    sep_rpm: Optional[float] = None
    sep_kw: Optional[float] = None
    vent_fan_rpm: Optional[float] = None
    vent_fan_kw: Optional[float] = None
    ca_fan_kw: Optional[float] = None
    residue: Optional[float] = None
    reject: Optional[float] = None


class FieldSummary(BaseModel):
    """Descriptive statistics for one field.

    ``skewness`` and ``kurtosis`` are null when the field has zero variance;
    the report then carries a matching issue.
    """

    field: str
    count: int = Field(..., ge=1)
    mean: float
    min_value: float
    max_value: float
    variance: float = Field(..., ge=0)
    stddev: float = Field(..., ge=0)
    skewness: Optional[float] = None
    kurtosis: Optional[float] = None


class FenceReport(BaseModel):
    field: str
    q1: float
    q3: float
    lower: float
    upper: float


class OutlierReport(BaseModel):
    fences: List[FenceReport] = Field(default_factory=list)
    outliers: List[ReadingPayload] = Field(default_factory=list)


class CorrelationReport(BaseModel):
    x_field: str
    y_field: str
    coefficient: float = Field(..., ge=-1.0, le=1.0)


class AlertGroupReport(BaseModel):
    values: List[Optional[float]]
    occurrences: int = Field(..., ge=1)


class AlertReport(BaseModel):
    name: str
    description: str = ""
    thresholds: List[float] = Field(default_factory=list)
    flagged_count: int = Field(..., ge=0)
    readings: List[ReadingPayload] = Field(default_factory=list)
    groups: List[AlertGroupReport] = Field(default_factory=list)


class RollingPoint(BaseModel):
    timestamp: Optional[datetime] = None
    value: Optional[float] = None


class TrendPoint(BaseModel):
    month: str = Field(..., description="Calendar month formatted as YYYY-MM.")
    value: Optional[float] = None
    previous: Optional[float] = None
    growth: Optional[float] = Field(
        default=None, description="Percent change against the previous month."
    )


class TrendReport(BaseModel):
    name: str
    points: List[TrendPoint] = Field(default_factory=list)


class AnalysisIssue(BaseModel):
    """A statistic that could not be computed for this batch."""

    scope: str
    reason: str


class AnalysisReport(BaseModel):
    """Full analysis output for one batch of readings."""

    reading_count: int = Field(..., ge=0)
    generated_at: datetime
    processing_ms: Optional[int] = None
    summaries: List[FieldSummary] = Field(default_factory=list)
    outliers: Optional[OutlierReport] = None
    correlations: List[CorrelationReport] = Field(default_factory=list)
    alerts: List[AlertReport] = Field(default_factory=list)
    rolling_field: Optional[str] = None
    rolling: List[RollingPoint] = Field(default_factory=list)
    trends: List[TrendReport] = Field(default_factory=list)
    issues: List[AnalysisIssue] = Field(default_factory=list)

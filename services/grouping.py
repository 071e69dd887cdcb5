"""Per-value grouping of readings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

from models.records import Reading, present_values, require_field
from services.moments import mean

DEFAULT_RUNNING_HOURS_LIMIT = 100


@dataclass(frozen=True)
class GroupMean:
    key: float
    count: int
    mean: float


@dataclass(frozen=True)
class RunningHours:
    key: float
    hours: int
    maintenance_required: bool

    @property
    def status(self) -> str:
        return "MAINTENANCE REQUIRED" if self.maintenance_required else "RUNNING NORMALLY"


def _groups(readings: Sequence[Reading], group_field: str) -> Dict[float, List[Reading]]:
    groups: Dict[float, List[Reading]] = {}
    for reading in readings:
        key = getattr(reading, group_field)
        if key is None:
            continue
        groups.setdefault(key, []).append(reading)
    return groups


def grouped_means(
    readings: Sequence[Reading], group_field: str, value_field: str = "mill_tph"
) -> List[GroupMean]:
    """Mean of ``value_field`` for each distinct ``group_field`` value."""
    require_field(group_field)
    require_field(value_field)
    results = []
    for key, members in sorted(_groups(readings, group_field).items()):
        values = present_values(members, value_field)
        if not values:
            continue
        results.append(GroupMean(key=key, count=len(values), mean=mean(values)))
    return results


def running_hours(
    readings: Sequence[Reading],
    field: str = "mill_kw",
    limit: int = DEFAULT_RUNNING_HOURS_LIMIT,
) -> List[RunningHours]:
    """Count readings (hourly samples) per distinct value of ``field``."""
    require_field(field)
    return [
        RunningHours(key=key, hours=len(members), maintenance_required=len(members) > limit)
        for key, members in sorted(_groups(readings, field).items())
    ]

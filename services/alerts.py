"""Threshold alerting over reading fields.

An :class:`AlertRule` combines one or more :class:`Condition` objects with
``any``/``all`` logic. Each condition compares a field against
``multiplier * reference`` where the reference is either the mean of a field
or a literal constant. References are resolved once per evaluation before the
readings are scanned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from models.records import Reading, newest_first, present_values, require_field
from services.moments import mean

logger = logging.getLogger(__name__)


class Comparison(str, Enum):
    above = "above"
    below = "below"


class Combine(str, Enum):
    any = "any"
    all = "all"


@dataclass(frozen=True)
class MeanOf:
    """Mean of ``field``; ``None`` means the condition's own field."""

    field: Optional[str] = None


@dataclass(frozen=True)
class Constant:
    value: float


Reference = Union[MeanOf, Constant]


@dataclass(frozen=True)
class Condition:
    field: str
    comparison: Comparison = Comparison.above
    multiplier: float = 1.0
    reference: Reference = MeanOf()

    def reference_field(self) -> Optional[str]:
        if isinstance(self.reference, MeanOf):
            return self.reference.field or self.field
        return None

    def matches(self, reading: Reading, threshold: float) -> bool:
        value = getattr(reading, self.field)
        if value is None:
            return False
        if self.comparison == Comparison.above:
            return value > threshold
        return value < threshold


@dataclass(frozen=True)
class AlertRule:
    name: str
    conditions: Tuple[Condition, ...]
    combine: Combine = Combine.any
    group_by: Tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if not self.conditions:
            raise ValueError(f"Alert {self.name!r} has no conditions.")
        for condition in self.conditions:
            require_field(condition.field)
            reference_field = condition.reference_field()
            if reference_field is not None:
                require_field(reference_field)
        for name in self.group_by:
            require_field(name)


@dataclass(frozen=True)
class AlertGroup:
    values: Tuple[Optional[float], ...]
    occurrences: int


@dataclass(frozen=True)
class AlertResult:
    rule: AlertRule
    thresholds: Tuple[float, ...]
    readings: List[Reading] = field(default_factory=list)
    groups: List[AlertGroup] = field(default_factory=list)

    @property
    def triggered(self) -> bool:
        return bool(self.readings)


def resolve_thresholds(readings: Sequence[Reading], rule: AlertRule) -> Tuple[float, ...]:
    means: Dict[str, float] = {}
    thresholds = []
    for condition in rule.conditions:
        reference = condition.reference
        if isinstance(reference, Constant):
            base = reference.value
        else:
            name = reference.field or condition.field
            if name not in means:
                means[name] = mean(present_values(readings, name))
            base = means[name]
        thresholds.append(condition.multiplier * base)
    return tuple(thresholds)


def _group(readings: Sequence[Reading], names: Tuple[str, ...]) -> List[AlertGroup]:
    counts: Dict[Tuple[Optional[float], ...], int] = {}
    for reading in readings:
        key = tuple(getattr(reading, name) for name in names)
        counts[key] = counts.get(key, 0) + 1
    groups = [AlertGroup(values=key, occurrences=count) for key, count in counts.items()]
    return sorted(groups, key=lambda group: group.occurrences, reverse=True)


def evaluate_alert(readings: Sequence[Reading], rule: AlertRule) -> AlertResult:
    """Flag the readings matching ``rule``, most recent first."""
    thresholds = resolve_thresholds(readings, rule)
    combine = all if rule.combine == Combine.all else any
    pairs = list(zip(rule.conditions, thresholds))

    flagged = [
        reading
        for reading in readings
        if combine(condition.matches(reading, threshold) for condition, threshold in pairs)
    ]
    groups = _group(flagged, rule.group_by) if rule.group_by else []

    if flagged:
        logger.info(
            "Alert triggered",
            extra={"alert": rule.name, "flagged_count": len(flagged)},
        )
    return AlertResult(
        rule=rule,
        thresholds=thresholds,
        readings=newest_first(flagged),
        groups=groups,
    )


def reject_rate_alert(multiplier: float = 1.5) -> AlertRule:
    return AlertRule(
        name="reject_rate",
        conditions=(Condition("reject", Comparison.above, multiplier),),
        description="Reject rate well above its mean.",
    )


def high_temperature_alert(limit: float = 100.0) -> AlertRule:
    return AlertRule(
        name="high_temperature",
        conditions=(Condition("mill_outlet_temp", Comparison.above, 1.0, Constant(limit)),),
        description="Mill outlet temperature above a fixed limit.",
    )


def separator_inefficiency_alert(multiplier: float = 1.3) -> AlertRule:
    return AlertRule(
        name="separator_inefficiency",
        conditions=(Condition("sep_kw", Comparison.above, multiplier),),
        description="Separator power draw above its mean.",
    )


def maintenance_alert(multiplier: float = 1.2) -> AlertRule:
    return AlertRule(
        name="maintenance",
        conditions=(
            Condition("vent_fan_kw", Comparison.above, multiplier),
            Condition("sep_kw", Comparison.above, multiplier),
        ),
        combine=Combine.any,
        description="Vent fan or separator power rising above its mean.",
    )


def power_spike_alert(multiplier: float = 1.2) -> AlertRule:
    return AlertRule(
        name="power_spike",
        conditions=(
            Condition("mill_kw", Comparison.above, multiplier),
            Condition("sep_kw", Comparison.above, multiplier),
            Condition("ca_fan_kw", Comparison.above, multiplier),
        ),
        combine=Combine.any,
        description="Any drive drawing well above its own mean.",
    )


def fan_failure_alert(rpm_multiplier: float = 0.85, power_multiplier: float = 1.1) -> AlertRule:
    return AlertRule(
        name="fan_failure",
        conditions=(
            Condition("vent_fan_rpm", Comparison.below, rpm_multiplier),
            Condition("vent_fan_kw", Comparison.above, power_multiplier),
        ),
        combine=Combine.all,
        group_by=("vent_fan_rpm", "vent_fan_kw"),
        description="Vent fan running slow while drawing high power.",
    )


def separator_wear_alert(rpm_multiplier: float = 0.95, residue_multiplier: float = 1.1) -> AlertRule:
    return AlertRule(
        name="separator_wear",
        conditions=(
            Condition("sep_rpm", Comparison.below, rpm_multiplier),
            Condition("residue", Comparison.above, residue_multiplier),
        ),
        combine=Combine.all,
        description="Low separator speed together with coarse product.",
    )


def underperformance_alert(multiplier: float = 0.8) -> AlertRule:
    return AlertRule(
        name="underperformance",
        conditions=(Condition("mill_tph", Comparison.below, multiplier),),
        description="Mill throughput well below its mean.",
    )


def outlet_temperature_rise_alert(multiplier: float = 1.3) -> AlertRule:
    return AlertRule(
        name="outlet_temperature_rise",
        conditions=(Condition("mill_outlet_temp", Comparison.above, multiplier),),
        description="Mill outlet temperature well above its mean.",
    )


def default_alert_rules() -> List[AlertRule]:
    return [
        reject_rate_alert(),
        high_temperature_alert(),
        separator_inefficiency_alert(),
        maintenance_alert(),
        power_spike_alert(),
        fan_failure_alert(),
        separator_wear_alert(),
        underperformance_alert(),
        outlet_temperature_rise_alert(),
    ]

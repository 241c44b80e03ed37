from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from sitesched.domain.task import to_date


class ConflictError(Exception):
    """Exception raised for invalid conflict-analysis input."""

    pass


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def weight(self) -> int:
        """Ordinal used for threshold comparisons."""
        return _SEVERITY_ORDER[self]


_SEVERITY_ORDER = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}

# Score deduction per surfaced conflict
SEVERITY_PENALTIES = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 8,
    Severity.LOW: 3,
}


class ConflictType(Enum):
    SEQUENCE = "sequence"
    RESOURCE = "resource"
    SPACE = "space"
    WEATHER = "weather"
    INSPECTION = "inspection"
    SAFETY = "safety"


class Perspective(Enum):
    """
    Sensitivity dial for the conflict analysis.

    Each perspective surfaces violations at or above its minimum severity,
    so a stricter perspective always surfaces a superset.
    """

    STRICT = "strict"
    BALANCED = "balanced"
    FLEXIBLE = "flexible"

    @property
    def minimum_severity(self) -> Severity:
        return {
            Perspective.STRICT: Severity.LOW,
            Perspective.BALANCED: Severity.MEDIUM,
            Perspective.FLEXIBLE: Severity.HIGH,
        }[self]

    def surfaces(self, severity: Severity) -> bool:
        return severity.weight >= self.minimum_severity.weight

    @classmethod
    def parse(cls, value) -> "Perspective":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            valid = [p.value for p in cls]
            raise ConflictError(f"Invalid perspective: {value}. Must be one of {valid}")


class ConflictRule:
    """
    A named check evaluated against pairs of events.

    `check` receives (first, second, context) and returns True when the
    pair violates the rule. Symmetric rules are evaluated once per unordered
    pair; directional rules in both orientations.
    """

    def __init__(
        self,
        id: str,
        name: str,
        type: ConflictType,
        severity: Severity,
        description: str,
        check,
        symmetric: bool = True,
    ):
        self.id = id
        self.name = name
        self.type = type
        self.severity = severity
        self.description = description
        self.check = check
        self.symmetric = symmetric

    def __repr__(self):
        return f"ConflictRule({self.id!r}, {self.type.value}, {self.severity.value})"


class Conflict:
    """A rule violation between two events (the second may be absent for
    violations raised against the weather summary)."""

    def __init__(self, first, second, rule: ConflictRule, description: str, resolution: Optional[str]):
        self.first = first
        self.second = second
        self.rule = rule
        self.severity = rule.severity
        self.description = description
        self.resolution = resolution

    @property
    def key(self) -> Tuple:
        """
        Session ignore key: task-id pair plus rule id.

        The pair is ordered by role for directional rules and by id for
        symmetric ones, so rescheduling either event keeps the key stable.
        """
        first_id = self.first.id
        second_id = self.second.id if self.second is not None else None
        if self.rule.symmetric and second_id is not None:
            first_id, second_id = sorted((first_id, second_id), key=str)
        return (first_id, second_id, self.rule.id)

    def to_dict(self):
        return {
            "first": self.first.id,
            "second": self.second.id if self.second is not None else None,
            "rule": {
                "id": self.rule.id,
                "name": self.rule.name,
                "type": self.rule.type.value,
                "description": self.rule.description,
            },
            "severity": self.severity.value,
            "description": self.description,
            "resolution": self.resolution,
        }

    def __repr__(self):
        return f"Conflict({self.key!r}, {self.severity.value})"


class AnalysisResult:
    def __init__(self, score: int, conflicts: List[Conflict], suggestions: List[str]):
        self.score = score
        self.conflicts = conflicts
        self.suggestions = suggestions

    def count_by_severity(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in Severity}
        for conflict in self.conflicts:
            counts[conflict.severity.value] += 1
        return counts

    @property
    def rating(self) -> str:
        if self.score >= 80:
            return "Excellent"
        if self.score >= 60:
            return "Good"
        if self.score >= 40:
            return "Fair"
        return "Needs Improvement"

    def to_dict(self):
        return {
            "score": self.score,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "suggestions": list(self.suggestions),
        }


class AnalysisSettings:
    """
    Rule toggles and scoping for a conflict analysis.
    """

    def __init__(
        self,
        check_sequence: bool = True,
        check_space: bool = True,
        check_weather: bool = True,
        check_inspections: bool = True,
        check_resources: bool = True,
        check_safety: bool = True,
        project_id=None,
        auto_suggest: bool = True,
        notify_on_conflict: bool = True,
    ):
        self.check_sequence = check_sequence
        self.check_space = check_space
        self.check_weather = check_weather
        self.check_inspections = check_inspections
        self.check_resources = check_resources
        self.check_safety = check_safety
        self.project_id = project_id
        self.auto_suggest = auto_suggest
        self.notify_on_conflict = notify_on_conflict

    def enabled(self, conflict_type: ConflictType) -> bool:
        return {
            ConflictType.SEQUENCE: self.check_sequence,
            ConflictType.SPACE: self.check_space,
            ConflictType.WEATHER: self.check_weather,
            ConflictType.INSPECTION: self.check_inspections,
            ConflictType.RESOURCE: self.check_resources,
            ConflictType.SAFETY: self.check_safety,
        }[conflict_type]


ADVERSE_CONDITIONS = {
    "rain",
    "snow",
    "storm",
    "thunderstorm",
    "sleet",
    "hail",
    "freezing_rain",
    "high_wind",
}


def is_adverse(condition: Optional[str]) -> bool:
    if not condition:
        return False
    return str(condition).strip().lower().replace(" ", "_") in ADVERSE_CONDITIONS


class WeatherSummary:
    """
    Already-resolved weather for the scheduling horizon.

    `daily` maps calendar days to a condition. Without daily entries the
    overall `condition` applies to `date` when given, otherwise to every day.
    """

    def __init__(
        self,
        condition: Optional[str] = None,
        daily: Optional[Dict[Union[date, datetime], str]] = None,
        date: Optional[Union[date, datetime]] = None,
    ):
        self.condition = condition
        self.daily = {to_date(day): cond for day, cond in (daily or {}).items()}
        self.date = to_date(date) if date is not None else None

    def adverse_days(self):
        return sorted(day for day, cond in self.daily.items() if is_adverse(cond))

    def condition_on(self, day) -> Optional[str]:
        day = to_date(day)
        if day in self.daily:
            return self.daily[day]
        if self.daily:
            return None
        if self.date is None or self.date == day:
            return self.condition
        return None

"""
Construction logic conflict analysis.

Evaluates every pair of scheduled events against the trade knowledge base
and a fixed rule set, scores the schedule and proposes resolutions.
The analysis itself is a pure function of its inputs; ConflictAnalyzer
adds the session state (ignored conflicts) and the feedback side channel.
"""

import logging
from datetime import datetime, timedelta

import networkx as nx

from sitesched.domain.conflict import (
    SEVERITY_PENALTIES,
    AnalysisResult,
    AnalysisSettings,
    Conflict,
    ConflictRule,
    ConflictType,
    Perspective,
    Severity,
    is_adverse,
)
from sitesched.domain.task import to_date, to_datetime
from sitesched.domain.trades import (
    INSPECTION_TRADE,
    OVERHEAD_TRADES,
    SITE_CLEARING_TRADES,
    TRADE_DEPENDENCIES,
    WEATHER_ALERT_TRADE,
    depends_on,
    get_trade,
)
from sitesched.services.feedback import (
    ACCEPTED,
    MODIFIED,
    REJECTED,
    FeedbackChannel,
    build_feedback,
)

logger = logging.getLogger(__name__)

MAX_SCORE = 100

# Trades that describe site conditions rather than work crews
_NON_WORK_TRADES = {INSPECTION_TRADE, WEATHER_ALERT_TRADE}


class AnalysisContext:
    """Everything a rule may look at beyond the pair itself."""

    def __init__(self, events, weather=None, resources=None):
        self.events = events
        self.weather = weather
        self.resources = resources if resources is not None else {}
        self.inspections = [e for e in events if e.trade == INSPECTION_TRADE]

    def capacity(self, resource_id, day):
        resource = self.resources.get(resource_id)
        if resource is None:
            return 1.0
        return resource.capacity_on(day)


def _overlap_days(first, second):
    """Calendar days shared by two events, empty when they do not overlap."""
    start = max(to_date(first.start_date), to_date(second.start_date))
    end = min(to_date(first.end_date), to_date(second.end_date))
    days = []
    while start <= end:
        days.append(start)
        start += timedelta(days=1)
    return days


def _same_location(first, second):
    if not first.location or not second.location:
        return False
    return str(first.location).strip().lower() == str(second.location).strip().lower()


def _locations_compatible(first, second):
    """True unless both events name different locations."""
    if not first.location or not second.location:
        return True
    return _same_location(first, second)


# Rule checks. Directional checks read (first, second) as
# (predecessor trade, dependent trade).


def _check_sequence(first, second, context):
    if get_trade(first.trade) is None or get_trade(second.trade) is None:
        return False
    if depends_on(second.trade, first.trade):
        return second.start_date < first.start_date
    return False


def _check_curing_time(first, second, context):
    entry = get_trade(first.trade)
    if entry is None or get_trade(second.trade) is None:
        return False
    if entry.minimum_days_after and depends_on(second.trade, first.trade):
        days_between = (to_date(second.start_date) - to_date(first.end_date)).days - 1
        return days_between < entry.minimum_days_after
    return False


def _check_trade_overlap(first, second, context):
    entry1 = get_trade(first.trade)
    entry2 = get_trade(second.trade)
    if entry1 is None or entry2 is None:
        return False
    if (
        second.trade in entry1.cannot_overlap_with
        or first.trade in entry2.cannot_overlap_with
    ):
        return first.overlaps(second) and _locations_compatible(first, second)
    return False


def _check_shared_workspace(first, second, context):
    if first.trade in _NON_WORK_TRADES or second.trade in _NON_WORK_TRADES:
        return False
    if first.trade is not None and first.trade == second.trade:
        return False
    if not _same_location(first, second) or not first.overlaps(second):
        return False
    # Incompatible trades are already reported as an overlap violation
    entry1 = get_trade(first.trade)
    entry2 = get_trade(second.trade)
    if entry1 is not None and second.trade in entry1.cannot_overlap_with:
        return False
    if entry2 is not None and first.trade in entry2.cannot_overlap_with:
        return False
    return True


def _shared_overallocated(first, second, context):
    shared = set(first.resource_allocations) & set(second.resource_allocations)
    overallocated = []
    if not shared:
        return overallocated
    days = _overlap_days(first, second)
    for resource_id in sorted(shared, key=str):
        demand = (
            first.resource_allocations[resource_id]
            + second.resource_allocations[resource_id]
        )
        if any(demand > context.capacity(resource_id, day) for day in days):
            overallocated.append(resource_id)
    return overallocated


def _check_resource(first, second, context):
    return bool(_shared_overallocated(first, second, context))


def _adverse_days(event, context):
    weather = context.weather
    if weather is None:
        return []
    days = []
    day = to_date(event.start_date)
    while day <= to_date(event.end_date):
        if is_adverse(weather.condition_on(day)):
            days.append(day)
        day += timedelta(days=1)
    return days


def _check_weather_alert(first, second, context):
    entry = get_trade(first.trade)
    if entry is None or not entry.weather_sensitive:
        return False
    if second.trade == WEATHER_ALERT_TRADE or is_adverse(
        second.extra.get("weather_condition")
    ):
        return to_date(first.start_date) <= to_date(second.start_date) <= to_date(
            first.end_date
        )
    return False


def _check_weather_forecast(event, _unused, context):
    entry = get_trade(event.trade)
    if entry is None or not entry.weather_sensitive:
        return False
    return bool(_adverse_days(event, context))


def _check_inspection(first, second, context):
    entry1 = get_trade(first.trade)
    if entry1 is None or get_trade(second.trade) is None:
        return False
    if not (entry1.requires_inspection and depends_on(second.trade, first.trade)):
        return False
    if first.inspection_completed:
        return False
    window_start = to_date(first.end_date)
    window_end = to_date(second.start_date)
    for inspection in context.inspections:
        if not _locations_compatible(inspection, first):
            continue
        if window_start <= to_date(inspection.start_date) <= window_end:
            return False
    return True


def _check_safety(first, second, context):
    if WEATHER_ALERT_TRADE in (first.trade, second.trade):
        return False
    if not first.overlaps(second):
        return False
    if first.trade in SITE_CLEARING_TRADES or second.trade in SITE_CLEARING_TRADES:
        return True
    # Overhead work endangers anyone working below at the same spot
    if first.trade == second.trade:
        return False
    overhead = first.trade in OVERHEAD_TRADES or second.trade in OVERHEAD_TRADES
    return overhead and _same_location(first, second)


CONFLICT_RULES = [
    ConflictRule(
        "sequence_violation",
        "Construction Sequence Violation",
        ConflictType.SEQUENCE,
        Severity.CRITICAL,
        "Work scheduled out of proper construction sequence",
        _check_sequence,
        symmetric=False,
    ),
    ConflictRule(
        "curing_time",
        "Insufficient Curing/Drying Time",
        ConflictType.SEQUENCE,
        Severity.HIGH,
        "Not enough time allocated for materials to cure or dry",
        _check_curing_time,
        symmetric=False,
    ),
    ConflictRule(
        "overlap_violation",
        "Trade Overlap Conflict",
        ConflictType.SPACE,
        Severity.HIGH,
        "Trades that cannot work simultaneously are scheduled together",
        _check_trade_overlap,
    ),
    ConflictRule(
        "shared_workspace",
        "Shared Work Area",
        ConflictType.SPACE,
        Severity.LOW,
        "Different trades share the same work area at the same time",
        _check_shared_workspace,
    ),
    ConflictRule(
        "resource_conflict",
        "Resource Overallocation",
        ConflictType.RESOURCE,
        Severity.HIGH,
        "Same crew or equipment scheduled beyond its capacity",
        _check_resource,
    ),
    ConflictRule(
        "weather_conflict",
        "Weather-Sensitive Work",
        ConflictType.WEATHER,
        Severity.MEDIUM,
        "Weather-sensitive work scheduled during a weather alert",
        _check_weather_alert,
        symmetric=False,
    ),
    ConflictRule(
        "inspection_pending",
        "Inspection Required",
        ConflictType.INSPECTION,
        Severity.CRITICAL,
        "Work scheduled before required inspection",
        _check_inspection,
        symmetric=False,
    ),
    ConflictRule(
        "safety_violation",
        "Safety Protocol Violation",
        ConflictType.SAFETY,
        Severity.CRITICAL,
        "Unsafe work conditions due to concurrent activities",
        _check_safety,
    ),
]

# Rules evaluated per event against the weather summary
SINGLE_EVENT_RULES = [
    ConflictRule(
        "weather_conflict",
        "Adverse Weather Forecast",
        ConflictType.WEATHER,
        Severity.MEDIUM,
        "Weather-sensitive work scheduled on days with adverse conditions",
        _check_weather_forecast,
    ),
]


def _fmt(day):
    return to_date(day).strftime("%b %d, %Y")


def generate_resolution(first, second, rule, context=None):
    """Concrete advice for resolving one conflict."""
    if rule.id == "curing_time":
        entry = TRADE_DEPENDENCIES[first.trade]
        earliest = to_date(first.end_date) + timedelta(days=entry.minimum_days_after + 1)
        return (
            f"Move {second.title} to start on or after {_fmt(earliest)} to allow "
            f"{entry.minimum_days_after} day(s) of curing/drying after {first.title}"
        )
    if rule.type == ConflictType.SEQUENCE:
        earliest = to_date(first.end_date) + timedelta(days=1)
        return (
            f"Reschedule {second.title} to start after {first.title} is completed "
            f"(on or after {_fmt(earliest)})"
        )
    if rule.type == ConflictType.SPACE:
        return "Stagger these activities or assign them to different areas of the project"
    if rule.type == ConflictType.WEATHER:
        if second is None and context is not None:
            days = _adverse_days(first, context)
            listed = ", ".join(_fmt(d) for d in days[:3])
            return (
                f"Consider moving {first.title} to avoid adverse weather on {listed}"
            )
        return f"Consider moving {first.title} to a day with better weather conditions"
    if rule.type == ConflictType.INSPECTION:
        return f"Schedule inspection after {first.title} and before {second.title}"
    if rule.type == ConflictType.RESOURCE:
        names = []
        if context is not None:
            for resource_id in _shared_overallocated(first, second, context):
                resource = context.resources.get(resource_id)
                names.append(resource.name if resource is not None else str(resource_id))
        if names:
            return (
                f"Assign a different crew or reschedule to avoid overallocating "
                f"{', '.join(names)}"
            )
        return "Assign different crews or reschedule to avoid resource conflicts"
    if rule.type == ConflictType.SAFETY:
        return (
            f"{first.title} and {second.title} cannot occur simultaneously for "
            f"safety reasons; sequence them one after the other"
        )
    return "Review and adjust schedule to resolve conflict"


def _describe(first, second, rule):
    if second is None:
        return f"{rule.name}: {first.title}"
    return f"{rule.name}: {first.title} conflicts with {second.title}"


def _filter_events(events, project_id=None):
    kept = [e for e in events if not e.deleted]
    if project_id is not None and project_id != "all":
        kept = [e for e in kept if e.project_id == project_id]
    return sorted(kept, key=lambda e: (to_datetime(e.start_date), str(e.id)))


def _evaluate(rule, first, second, context):
    """Run one check, treating a failing check as 'no violation'."""
    try:
        return bool(rule.check(first, second, context))
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        second_id = second.id if second is not None else None
        logger.debug(
            "Rule %s skipped for (%s, %s): %s", rule.id, first.id, second_id, e
        )
        return False


def _build_suggestions(conflicts):
    suggestions = []
    if not conflicts:
        suggestions.append("Schedule looks good! No conflicts detected.")
        return suggestions

    critical_count = sum(1 for c in conflicts if c.severity == Severity.CRITICAL)
    high_count = sum(1 for c in conflicts if c.severity == Severity.HIGH)
    if critical_count:
        suggestions.append(
            f"{critical_count} critical conflicts require immediate attention"
        )
        suggestions.append(
            "Consider rescheduling work to follow proper construction sequence"
        )
    if high_count:
        suggestions.append(f"{high_count} high-priority conflicts may cause delays")
        suggestions.append("Review trade dependencies and adjust schedule accordingly")

    types = {c.rule.type for c in conflicts}
    if ConflictType.SEQUENCE in types:
        suggestions.append("Reorder tasks to follow construction best practices")
    if ConflictType.WEATHER in types:
        suggestions.append("Consider weather forecasts when scheduling outdoor work")
    if ConflictType.INSPECTION in types:
        suggestions.append("Book inspections before dependent trades mobilize")
    if ConflictType.RESOURCE in types:
        suggestions.append("Level crew and equipment assignments across the schedule")
    if ConflictType.SAFETY in types:
        suggestions.append("Keep the site clear of other trades during hazardous work")
    return suggestions


def calculate_score(conflicts):
    score = MAX_SCORE
    for conflict in conflicts:
        score -= SEVERITY_PENALTIES[conflict.severity]
    return max(0, score)


def analyze_schedule_conflicts(
    events,
    perspective="balanced",
    weather=None,
    settings=None,
    resources=None,
    ignored=None,
):
    """
    Evaluate a schedule against the construction rule set.

    Args:
        events: Iterable of Task objects (soft-deleted ones are skipped)
        perspective: "strict", "balanced" or "flexible"
        weather: Optional WeatherSummary
        settings: AnalysisSettings; all rule categories on by default. With
            auto_suggest off, conflicts carry no resolution and no
            suggestions are produced
        resources: Optional {resource_id: Resource} for capacity lookups
        ignored: Keys of conflicts to leave out (see Conflict.key)

    Returns:
        AnalysisResult: Score, conflicts (most severe first) and suggestions
    """
    perspective = Perspective.parse(perspective)
    settings = settings or AnalysisSettings()
    ignored = ignored or set()
    if isinstance(events, dict):
        events = events.values()

    filtered = _filter_events(events, settings.project_id)
    context = AnalysisContext(filtered, weather, resources)

    def active(rule):
        return settings.enabled(rule.type) and perspective.surfaces(rule.severity)

    pair_rules = [rule for rule in CONFLICT_RULES if active(rule)]
    single_rules = [rule for rule in SINGLE_EVENT_RULES if active(rule)]

    conflicts = []

    def record(first, second, rule):
        conflict = Conflict(
            first,
            second,
            rule,
            _describe(first, second, rule),
            generate_resolution(first, second, rule, context)
            if settings.auto_suggest
            else None,
        )
        if conflict.key not in ignored:
            conflicts.append(conflict)

    for i in range(len(filtered)):
        for j in range(i + 1, len(filtered)):
            event1 = filtered[i]
            event2 = filtered[j]
            for rule in pair_rules:
                orientations = [(event1, event2)]
                if not rule.symmetric:
                    orientations.append((event2, event1))
                for first, second in orientations:
                    if _evaluate(rule, first, second, context):
                        record(first, second, rule)

    if weather is not None:
        for event in filtered:
            for rule in single_rules:
                if _evaluate(rule, event, None, context):
                    record(event, None, rule)

    conflicts.sort(key=lambda c: -c.severity.weight)
    score = calculate_score(conflicts)
    logger.debug(
        "Analyzed %d events (%s): %d conflicts, score %d",
        len(filtered),
        perspective.value,
        len(conflicts),
        score,
    )
    suggestions = _build_suggestions(conflicts) if settings.auto_suggest else []
    return AnalysisResult(score, conflicts, suggestions)


class ResolutionSuggestion:
    def __init__(
        self,
        event_id,
        original_start,
        original_end,
        suggested_start,
        suggested_end,
        reason,
    ):
        self.event_id = event_id
        self.original_start = original_start
        self.original_end = original_end
        self.suggested_start = suggested_start
        self.suggested_end = suggested_end
        self.reason = reason

    def __repr__(self):
        return (
            f"ResolutionSuggestion({self.event_id!r}, "
            f"{self.suggested_start:%Y-%m-%d}..{self.suggested_end:%Y-%m-%d})"
        )


def _trade_generations():
    """Topological generation index of every trade in the knowledge base."""
    graph = nx.DiGraph()
    for trade, entry in TRADE_DEPENDENCIES.items():
        graph.add_node(trade)
        for required in entry.depends_on:
            graph.add_edge(required, trade)
    generations = {}
    for index, generation in enumerate(nx.topological_generations(graph)):
        for trade in generation:
            generations[trade] = index
    return generations


def suggest_optimal_schedule(events, preferred_work_days=None, work_hours_start=None):
    """
    Propose start dates that follow the trade sequence.

    Each event is pushed after the latest finish of the trades it depends on
    (plus their curing time); events are never pulled earlier.

    Args:
        events: Iterable of Task objects
        preferred_work_days: Weekdays allowed for starts (Monday=0)
        work_hours_start: Earliest hour of day for a start

    Returns:
        list: ResolutionSuggestion for every event whose start changes
    """
    generations = _trade_generations()
    known = [e for e in events if not e.deleted and get_trade(e.trade) is not None]
    ordered = sorted(
        known,
        key=lambda e: (generations[e.trade], to_datetime(e.start_date), str(e.id)),
    )

    planned = {}
    suggestions = []
    for event in ordered:
        entry = TRADE_DEPENDENCIES[event.trade]
        original_start = to_datetime(event.start_date)
        original_end = to_datetime(event.end_date)
        suggested_start = original_start

        for other in ordered:
            if other.id not in planned or other.trade not in entry.depends_on:
                continue
            other_end = planned[other.id][1]
            other_entry = TRADE_DEPENDENCIES[other.trade]
            earliest = datetime.combine(
                to_date(other_end) + timedelta(days=1 + other_entry.minimum_days_after),
                original_start.time(),
            )
            suggested_start = max(suggested_start, earliest)

        if preferred_work_days:
            while suggested_start.weekday() not in preferred_work_days:
                suggested_start += timedelta(days=1)
        if work_hours_start is not None and suggested_start.hour < work_hours_start:
            suggested_start = suggested_start.replace(
                hour=work_hours_start, minute=0, second=0, microsecond=0
            )

        suggested_end = suggested_start + (original_end - original_start)
        planned[event.id] = (suggested_start, suggested_end)

        if suggested_start != original_start:
            suggestions.append(
                ResolutionSuggestion(
                    event.id,
                    original_start,
                    original_end,
                    suggested_start,
                    suggested_end,
                    "Adjusted to follow construction sequence and dependencies",
                )
            )
    return suggestions


class ConflictAnalyzer:
    """
    A conflict-analysis session.

    Holds the perspective, settings and the set of conflicts the user chose
    to ignore. The ignore-set lives only as long as the analyzer.
    """

    def __init__(
        self,
        perspective="balanced",
        settings=None,
        resources=None,
        feedback=None,
        clock=datetime.now,
    ):
        self.perspective = Perspective.parse(perspective)
        self.settings = settings or AnalysisSettings()
        self.resources = resources if resources is not None else {}
        self.feedback = feedback or FeedbackChannel()
        self.clock = clock
        self._ignored = set()
        self._weather = None
        self.last_result = None

    @property
    def ignored(self):
        return frozenset(self._ignored)

    def set_perspective(self, perspective):
        self.perspective = Perspective.parse(perspective)

    def analyze(self, events, weather=None):
        self._weather = weather
        self.last_result = analyze_schedule_conflicts(
            events,
            self.perspective,
            weather,
            self.settings,
            self.resources,
            self._ignored,
        )
        critical = self.last_result.count_by_severity()[Severity.CRITICAL.value]
        if self.settings.notify_on_conflict and critical:
            logger.warning("%d critical scheduling conflicts detected", critical)
        return self.last_result

    def ignore(self, conflict, reason="user_ignored_conflict"):
        """Leave a conflict out of later analyses in this session."""
        self._ignored.add(conflict.key)
        self._report(conflict, REJECTED, reason)

    def accept(self, conflict):
        """Record that the user applied the suggested resolution."""
        self._report(conflict, ACCEPTED)

    def modify(self, conflict, reason=None):
        """Record that the user resolved the conflict differently."""
        self._report(conflict, MODIFIED, reason)

    def clear_ignored(self):
        self._ignored.clear()

    def _report(self, conflict, action, reason=None):
        event = build_feedback(conflict, action, self._weather, self.clock(), reason)
        self.feedback.send(event)

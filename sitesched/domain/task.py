import logging
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class TaskStatus(Enum):
    """
    Enum representing the possible status values of a task.
    """

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"


class Priority(Enum):
    """
    Enum representing task priority.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DependencyType(Enum):
    """
    Enum representing the four precedence relationships between tasks.
    """

    FINISH_TO_START = "finish_to_start"
    START_TO_START = "start_to_start"
    FINISH_TO_FINISH = "finish_to_finish"
    START_TO_FINISH = "start_to_finish"

    @classmethod
    def parse(cls, value) -> "DependencyType":
        """Accept enum members, full names or the FS/SS/FF/SF short codes."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.FINISH_TO_START
        text = str(value).strip().lower().replace("-", "_")
        short = {
            "fs": cls.FINISH_TO_START,
            "ss": cls.START_TO_START,
            "ff": cls.FINISH_TO_FINISH,
            "sf": cls.START_TO_FINISH,
        }
        if text in short:
            return short[text]
        return cls(text)


class TaskError(Exception):
    """Exception raised for errors in the Task class."""

    pass


def to_date(value: Union[date, datetime]) -> date:
    """Return the calendar day of a date or datetime."""
    if isinstance(value, datetime):
        return value.date()
    return value


def to_datetime(value: Union[date, datetime]) -> datetime:
    """Promote a plain date to midnight of that day."""
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp or date string into a naive datetime.

    Aware timestamps are converted to UTC first. Returns None when the value
    cannot be understood.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = to_datetime(value)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def span_days(start: Union[date, datetime], end: Union[date, datetime]) -> int:
    """Inclusive number of calendar days covered by [start, end]."""
    return (to_date(end) - to_date(start)).days + 1


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values."""
    return int(value + 0.5)


def compute_progress_status(
    start: Union[date, datetime],
    end: Union[date, datetime],
    now: Union[date, datetime],
) -> Tuple[int, str]:
    """
    Derive (progress, status) from where `now` falls relative to the task dates.

    Days are compared on the calendar, so a task ending today is still in
    progress today.

    Args:
        start: First day of the task
        end: Last day of the task (inclusive)
        now: The reference moment

    Returns:
        tuple: (progress percentage 0-100, status value)
    """
    today = to_date(now)
    first = to_date(start)
    last = to_date(end)

    if today < first:
        return 0, TaskStatus.NOT_STARTED.value
    if today > last:
        return 100, TaskStatus.COMPLETED.value

    total_days = (last - first).days + 1
    days_passed = (today - first).days + 1
    return round_half_up(100 * days_passed / total_days), TaskStatus.IN_PROGRESS.value


class Dependency:
    """
    A precedence link: `task_id` cannot be scheduled freely until
    `predecessor_id` reaches the reference point named by `type`.

    Lag is in whole days; a negative lag is a lead.
    """

    def __init__(self, task_id, predecessor_id, type="finish_to_start", lag=0):
        if task_id is None or predecessor_id is None:
            raise TaskError("Dependency needs both a task and a predecessor")
        if task_id == predecessor_id:
            raise TaskError(f"Task {task_id} cannot depend on itself")
        self.task_id = task_id
        self.predecessor_id = predecessor_id
        try:
            self.type = DependencyType.parse(type)
        except ValueError:
            raise TaskError(f"Invalid dependency type: {type}")
        if isinstance(lag, bool) or not isinstance(lag, (int, float)):
            raise TaskError("Dependency lag must be a number of days")
        self.lag = int(lag)

    def __eq__(self, other):
        if not isinstance(other, Dependency):
            return NotImplemented
        return (
            self.task_id == other.task_id
            and self.predecessor_id == other.predecessor_id
            and self.type == other.type
            and self.lag == other.lag
        )

    def __hash__(self):
        return hash((self.task_id, self.predecessor_id, self.type, self.lag))

    def __repr__(self):
        return (
            f"Dependency({self.predecessor_id!r} -> {self.task_id!r}, "
            f"{self.type.value}, lag={self.lag})"
        )


# Fields captured by Task.snapshot(); everything a drag or board move touches.
_SNAPSHOT_FIELDS = (
    "start_date",
    "end_date",
    "progress",
    "_status",
    "rank",
    "status_override",
    "updating",
)


class Task:
    """
    Represents a scheduled unit of construction work.

    A task carries its planned dates, derived duration and progress, its
    place in the work breakdown hierarchy, precedence links to other tasks
    and the resources it draws on. Fields the scheduler does not understand
    are kept in `extra` untouched.
    """

    def __init__(
        self,
        id,
        title: str,
        start_date: Union[date, datetime],
        end_date: Optional[Union[date, datetime]] = None,
        description: str = "",
        progress: int = 0,
        status: str = "not_started",
        priority: str = "medium",
        resources: Optional[Union[List[str], str, Dict[str, float]]] = None,
        predecessors: Optional[List[Dependency]] = None,
        milestone: bool = False,
        parent_id=None,
        wbs: Optional[str] = None,
        trade: Optional[str] = None,
        location: Optional[str] = None,
        project_id=None,
    ):
        """
        Initialize a new Task.

        Args:
            id: Unique identifier for the task
            title: Display name of the task
            start_date: First day of work
            end_date: Last day of work (inclusive), defaults to the start date
            description: Free text
            progress: Percent complete, 0-100
            status: One of the TaskStatus values
            priority: One of the Priority values
            resources: Resource ids, a single id, or {resource_id: units}
            predecessors: Dependency links naming this task as the dependent
            milestone: Whether the task is a point-in-time marker
            parent_id: Id of the parent task in the hierarchy
            wbs: Work breakdown structure code
            trade: Construction trade, used by the conflict rules
            location: Work area, used by the space and safety rules
            project_id: Owning project

        Raises:
            TaskError: If any input validation fails
        """
        if id is None or str(id).strip() == "":
            raise TaskError("Task ID cannot be None or empty")
        self.id = id

        if not title or not isinstance(title, str):
            raise TaskError("Task title must be a non-empty string")
        self.title = title
        self.description = description or ""

        if not isinstance(start_date, (date, datetime)):
            raise TaskError("Start date must be a date or datetime")
        if end_date is None:
            end_date = start_date
        if not isinstance(end_date, (date, datetime)):
            raise TaskError("End date must be a date or datetime")
        start_date = to_datetime(start_date)
        end_date = to_datetime(end_date)
        if to_date(end_date) < to_date(start_date):
            raise TaskError(
                f"Task {id} ends ({end_date:%Y-%m-%d}) before it starts "
                f"({start_date:%Y-%m-%d})"
            )
        self.start_date = start_date
        self.end_date = end_date

        self.progress = progress
        self._status = TaskStatus.NOT_STARTED
        self.status = status
        self._priority = Priority.MEDIUM
        self.priority = priority

        self.resource_allocations = {}
        if isinstance(resources, str):
            self.resource_allocations = {resources: 1.0}
        elif isinstance(resources, (list, tuple, set)):
            self.resource_allocations = {r: 1.0 for r in resources}
        elif isinstance(resources, dict):
            self.resource_allocations = {k: float(v) for k, v in resources.items()}

        self.predecessors = []
        for dependency in predecessors or []:
            self.add_predecessor(dependency)
        # Derived from the other tasks' predecessor lists
        self.successors = []

        self.milestone = bool(milestone)
        self.critical_path = False
        self.total_float = None

        # Variance tracking
        self.baseline_start = None
        self.baseline_end = None
        self.actual_start = None
        self.actual_end = None
        self.cost = None
        self.budget = None

        # Hierarchy
        self.parent_id = parent_id
        self.children = []
        self.level = 0
        self.wbs = wbs
        self.expanded = True

        # Scheduling constraint, e.g. ("SNET", date)
        self.constraint_type = None
        self.constraint_date = None

        # Rule engine inputs
        self.trade = trade
        self.location = location
        self.project_id = project_id
        self.deleted = False
        self.inspection_completed = False

        # Board ordering and optimistic-update state
        self.rank = 0.0
        self.status_override = False
        self.updating = False

        self.extra = {}

    @property
    def duration(self) -> int:
        """Inclusive day count; always consistent with the dates."""
        return span_days(self.start_date, self.end_date)

    @property
    def progress(self) -> int:
        return self._progress

    @progress.setter
    def progress(self, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TaskError("Progress must be a number between 0 and 100")
        if value < 0 or value > 100:
            raise TaskError("Progress must be a number between 0 and 100")
        self._progress = int(round(value))

    @property
    def status(self) -> str:
        """Get the current status of the task."""
        return self._status.value

    @status.setter
    def status(self, value):
        """Set the status of the task."""
        if isinstance(value, TaskStatus):
            self._status = value
            return
        try:
            self._status = TaskStatus(value)
        except ValueError:
            valid_statuses = [s.value for s in TaskStatus]
            raise TaskError(f"Invalid status: {value}. Must be one of {valid_statuses}")

    @property
    def priority(self) -> str:
        return self._priority.value

    @priority.setter
    def priority(self, value):
        if isinstance(value, Priority):
            self._priority = value
            return
        try:
            self._priority = Priority(value)
        except ValueError:
            valid = [p.value for p in Priority]
            raise TaskError(f"Invalid priority: {value}. Must be one of {valid}")

    @property
    def resources(self) -> List[str]:
        """Ids of the resources assigned to this task."""
        return list(self.resource_allocations.keys())

    def add_predecessor(self, predecessor, type="finish_to_start", lag=0) -> "Task":
        """
        Add a precedence link to this task.

        Args:
            predecessor: A Dependency, or the id of the predecessor task
            type: Relationship type when an id is given
            lag: Lag in days when an id is given

        Returns:
            self: For method chaining
        """
        if isinstance(predecessor, Dependency):
            dependency = predecessor
            if dependency.task_id != self.id:
                raise TaskError(
                    f"Dependency for {dependency.task_id} added to task {self.id}"
                )
        else:
            dependency = Dependency(self.id, predecessor, type, lag)
        if dependency not in self.predecessors:
            self.predecessors.append(dependency)
        return self

    def remove_predecessor(self, predecessor_id) -> "Task":
        self.predecessors = [
            d for d in self.predecessors if d.predecessor_id != predecessor_id
        ]
        return self

    @property
    def predecessor_ids(self) -> List:
        return [d.predecessor_id for d in self.predecessors]

    def move_to(self, new_start: Union[date, datetime]) -> "Task":
        """
        Shift the task to a new start, keeping its duration.

        Returns:
            self: For method chaining
        """
        duration = self.duration
        new_start = to_datetime(new_start)
        self.start_date = new_start
        self.end_date = new_start + timedelta(days=duration - 1)
        return self

    def refresh_progress(self, now: Union[date, datetime]) -> "Task":
        """
        Recompute progress and status from the dates.

        Tasks explicitly completed or put on hold keep their state.
        """
        if self.status_override:
            return self
        self.progress, self.status = compute_progress_status(
            self.start_date, self.end_date, now
        )
        return self

    def complete(self, completion_date: Optional[datetime] = None) -> "Task":
        """Mark the task completed explicitly."""
        self.status = TaskStatus.COMPLETED
        self.progress = 100
        self.status_override = True
        if completion_date is not None:
            self.actual_end = to_datetime(completion_date)
        return self

    def hold(self) -> "Task":
        """Put the task on hold explicitly."""
        self.status = TaskStatus.ON_HOLD
        self.status_override = True
        return self

    def release(self, now: Union[date, datetime]) -> "Task":
        """Drop an explicit completed/on-hold state and derive status again."""
        self.status_override = False
        return self.refresh_progress(now)

    def get_variance(self) -> Optional[int]:
        """
        Schedule variance in days against the baseline finish.

        Returns:
            int: Positive when finishing later than the baseline, or None
            when no baseline was recorded
        """
        if self.baseline_end is None:
            return None
        return (to_date(self.end_date) - to_date(self.baseline_end)).days

    def overlaps(self, other: "Task") -> bool:
        """Whether the two tasks share at least one calendar day."""
        return to_date(self.start_date) <= to_date(other.end_date) and to_date(
            other.start_date
        ) <= to_date(self.end_date)

    def snapshot(self) -> Dict[str, Any]:
        """Capture the fields a reschedule may change."""
        return {field: getattr(self, field) for field in _SNAPSHOT_FIELDS}

    def restore(self, snapshot: Dict[str, Any]) -> "Task":
        """Put back the fields captured by snapshot()."""
        for field, value in snapshot.items():
            setattr(self, field, value)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "duration": self.duration,
            "progress": self.progress,
            "status": self.status,
            "priority": self.priority,
            "resources": dict(self.resource_allocations),
            "predecessors": [
                {
                    "task_id": d.predecessor_id,
                    "type": d.type.value,
                    "lag": d.lag,
                }
                for d in self.predecessors
            ],
            "milestone": self.milestone,
            "critical_path": self.critical_path,
            "parent_id": self.parent_id,
            "level": self.level,
            "wbs": self.wbs,
            "trade": self.trade,
            "location": self.location,
            "rank": self.rank,
        }

    def __repr__(self):
        return (
            f"Task({self.id!r}, {self.title!r}, {self.start_date:%Y-%m-%d}"
            f"..{self.end_date:%Y-%m-%d})"
        )


# Record keys understood by task_from_record; everything else goes to `extra`.
_KNOWN_KEYS = {
    "id",
    "title",
    "name",
    "description",
    "start_time",
    "start_date",
    "end_time",
    "end_date",
    "event_type",
    "trade",
    "location",
    "project_id",
    "deleted",
    "parent_id",
    "dependencies",
    "predecessors",
    "resources",
    "assigned_to",
    "team_member_id",
    "priority",
    "status",
    "progress",
    "milestone",
    "wbs",
    "baseline_start",
    "baseline_end",
    "actual_start",
    "actual_end",
    "cost",
    "budget",
    "constraint_type",
    "constraint_date",
    "inspection_completed",
    "position",
    "rank",
}


def _first(record, *keys):
    for key in keys:
        if record.get(key) not in (None, ""):
            return record[key]
    return None


def _parse_dependencies(task_id, raw) -> List[Dependency]:
    dependencies = []
    if not isinstance(raw, (list, tuple)):
        logger.debug("Task %s: ignoring malformed dependencies %r", task_id, raw)
        return dependencies
    for item in raw:
        try:
            if isinstance(item, dict):
                predecessor_id = _first(
                    item, "task_id", "depends_on_task_id", "predecessor_id"
                )
                dependencies.append(
                    Dependency(
                        task_id,
                        predecessor_id,
                        _first(item, "type", "dependency_type"),
                        item.get("lag", item.get("lag_days", 0)) or 0,
                    )
                )
            else:
                dependencies.append(Dependency(task_id, item))
        except TaskError as e:
            logger.debug("Task %s: skipping dependency %r: %s", task_id, item, e)
    return dependencies


def task_from_record(record: Dict[str, Any], now: Optional[datetime] = None) -> Task:
    """
    Build a Task from a calendar event or task record.

    Defective fields are skipped and replaced by defaults; only a record
    without an id is rejected.

    Args:
        record: Mapping with event/task fields
        now: Reference moment for deriving progress and status

    Returns:
        Task: The normalized task

    Raises:
        TaskError: If the record has no id
    """
    task_id = record.get("id")
    if task_id is None or str(task_id).strip() == "":
        raise TaskError("Record has no id")
    now = now or datetime.now()

    title = _first(record, "title", "name")
    if not isinstance(title, str) or not title.strip():
        logger.debug("Task %s: missing title, using id", task_id)
        title = str(task_id)

    start = parse_timestamp(_first(record, "start_time", "start_date"))
    if start is None:
        logger.debug("Task %s: missing or malformed start, using now", task_id)
        start = datetime(now.year, now.month, now.day)
    end = parse_timestamp(_first(record, "end_time", "end_date"))
    if end is None or to_date(end) < to_date(start):
        if end is not None:
            logger.debug("Task %s: end before start, collapsing to start", task_id)
        end = start

    trade = _first(record, "trade", "event_type")
    task = Task(
        task_id,
        title,
        start,
        end,
        description=record.get("description") or "",
        milestone=bool(record.get("milestone")) or trade == "milestone",
        parent_id=record.get("parent_id") or None,
        wbs=record.get("wbs"),
        trade=trade,
        location=record.get("location"),
        project_id=record.get("project_id"),
    )

    priority = record.get("priority")
    if priority is not None:
        try:
            task.priority = priority
        except TaskError as e:
            logger.debug("Task %s: %s", task_id, e)

    resources = _first(record, "resources", "assigned_to")
    if isinstance(resources, dict):
        try:
            task.resource_allocations = {k: float(v) for k, v in resources.items()}
        except (TypeError, ValueError):
            logger.debug("Task %s: malformed resource allocations", task_id)
    elif isinstance(resources, (list, tuple)):
        task.resource_allocations = {r: 1.0 for r in resources if r}
    elif isinstance(resources, str):
        task.resource_allocations = {resources: 1.0}
    if record.get("team_member_id"):
        task.resource_allocations.setdefault(record["team_member_id"], 1.0)

    raw_dependencies = _first(record, "predecessors", "dependencies")
    if raw_dependencies is not None:
        for dependency in _parse_dependencies(task_id, raw_dependencies):
            task.add_predecessor(dependency)

    for attribute in ("baseline_start", "baseline_end", "actual_start", "actual_end"):
        parsed = parse_timestamp(record.get(attribute))
        if parsed is not None:
            setattr(task, attribute, parsed)
    for attribute in ("cost", "budget"):
        value = record.get(attribute)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            setattr(task, attribute, float(value))

    task.constraint_type = record.get("constraint_type")
    task.constraint_date = parse_timestamp(record.get("constraint_date"))
    task.deleted = bool(record.get("deleted"))
    task.inspection_completed = bool(record.get("inspection_completed"))

    rank = _first(record, "rank", "position")
    if isinstance(rank, (int, float)) and not isinstance(rank, bool):
        task.rank = float(rank)

    # Explicit completed/on-hold states win over the date-derived ones
    status = record.get("status")
    if status in (TaskStatus.COMPLETED.value, TaskStatus.ON_HOLD.value):
        task.status = status
        task.progress = 100 if status == TaskStatus.COMPLETED.value else 0
        progress = record.get("progress")
        if status == TaskStatus.ON_HOLD.value and isinstance(progress, (int, float)):
            try:
                task.progress = progress
            except TaskError as e:
                logger.debug("Task %s: %s", task_id, e)
        task.status_override = True
    else:
        task.refresh_progress(now)

    task.extra = {k: v for k, v in record.items() if k not in _KNOWN_KEYS}
    return task

"""
Drag-based rescheduling with optimistic updates.

A drop is applied to the local task immediately and persisted in the
background. Writes for the same task are debounced and merged; a newer write
supersedes the effect of an older one still in flight. When the latest write
fails the task is put back to its last confirmed state.
"""

import asyncio
import inspect
import logging
import math
from datetime import date, datetime, timedelta
from enum import Enum

from sitesched.domain.task import TaskStatus, to_date, to_datetime
from sitesched.services.ranking import column_tasks, place_in_column

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_DELAY = 0.3
DEFAULT_ACTIVATION_DISTANCE = 10


class RescheduleError(Exception):
    """Exception raised for misuse of the reschedule handler."""

    pass


class DragState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"
    ROLLING_BACK = "rolling_back"


class TimelineDropTarget:
    """A drop on the timeline: the task's new start day."""

    def __init__(self, date):
        self.date = date

    def __repr__(self):
        return f"TimelineDropTarget({self.date!r})"


class ColumnDropTarget:
    """A drop on the status board: target column and slot (None = bottom)."""

    def __init__(self, status, index=None):
        self.status = status
        self.index = index

    def __repr__(self):
        return f"ColumnDropTarget({self.status!r}, {self.index!r})"


class _Gesture:
    def __init__(self, x, y):
        self.origin = (x, y)


class _PendingWrite:
    def __init__(self):
        self.fields = {}
        # Local state this write will make the server hold
        self.snapshot = None
        self.handle = None


class RescheduleHandler:
    """
    Per-task drag state machine plus debounced optimistic persistence.

    Idle -> Dragging once the pointer travels past the activation distance;
    a drop on a resolvable target moves to Committing, and the persistence
    outcome returns the task to Idle, through RollingBack on failure.
    """

    def __init__(
        self,
        tasks,
        persist,
        refetch=None,
        on_error=None,
        debounce_delay=DEFAULT_DEBOUNCE_DELAY,
        activation_distance=DEFAULT_ACTIVATION_DISTANCE,
        clock=datetime.now,
    ):
        """
        Args:
            tasks: Dictionary of Task objects keyed by ID, updated in place
            persist: Callable (task_id, fields); may be a coroutine function
            refetch: Optional coroutine function (task_id) called after a
                rollback to reconcile with the persistence collaborator
            on_error: Optional callable (task, exception) surfacing the error
            debounce_delay: Seconds to wait for further changes to a task
            activation_distance: Pointer travel separating a click from a drag
            clock: Returns "now" for progress recomputation
        """
        if debounce_delay < 0:
            raise RescheduleError("Debounce delay cannot be negative")
        self.tasks = tasks
        self.persist = persist
        self.refetch = refetch
        self.on_error = on_error
        self.debounce_delay = debounce_delay
        self.activation_distance = activation_distance
        self.clock = clock

        self._states = {}
        self._gestures = {}
        self._pending = {}
        self._confirmed = {}
        self._generations = {}
        self._acknowledged = {}
        self._inflight = set()
        self._task_jobs = {}
        self.errors = []

    def state(self, task_id) -> DragState:
        return self._states.get(task_id, DragState.IDLE)

    # Gesture tracking

    def press(self, task_id, x, y):
        """Pointer down on a task; no drag starts yet."""
        if task_id not in self.tasks:
            return False
        self._gestures[task_id] = _Gesture(x, y)
        return True

    def move(self, task_id, x, y) -> DragState:
        """Pointer moved; starts the drag once past the activation distance."""
        gesture = self._gestures.get(task_id)
        if gesture is None:
            return self.state(task_id)
        if self.state(task_id) != DragState.DRAGGING:
            dx = x - gesture.origin[0]
            dy = y - gesture.origin[1]
            if math.hypot(dx, dy) >= self.activation_distance:
                self._states[task_id] = DragState.DRAGGING
                logger.debug("Drag started for task %s", task_id)
        return self.state(task_id)

    def cancel(self, task_id):
        """Abort a gesture before drop; nothing is changed."""
        self._gestures.pop(task_id, None)
        if self.state(task_id) == DragState.DRAGGING:
            self._states[task_id] = (
                DragState.COMMITTING if self._has_unconfirmed(task_id) else DragState.IDLE
            )

    def drop(self, task_id, target) -> bool:
        """
        Pointer released over `target`.

        Returns:
            bool: True if the drop was applied; a click (no drag) or an
            unresolvable target changes nothing
        """
        self._gestures.pop(task_id, None)
        if self.state(task_id) != DragState.DRAGGING:
            return False
        applied = self.reschedule(task_id, target)
        if not applied:
            self._states[task_id] = (
                DragState.COMMITTING if self._has_unconfirmed(task_id) else DragState.IDLE
            )
        return applied

    # Applying changes

    def reschedule(self, task_id, target) -> bool:
        """
        Apply a drop target to a task optimistically and queue the write.

        Must be called with a running event loop.
        """
        task = self.tasks.get(task_id)
        if task is None or task.deleted:
            logger.debug("Drop ignored: unknown task %s", task_id)
            return False

        if isinstance(target, TimelineDropTarget):
            changes = self._resolve_timeline(task, target)
        elif isinstance(target, ColumnDropTarget):
            changes = self._resolve_column(task, target)
        else:
            changes = None
        if changes is None:
            logger.debug("Drop ignored: unresolvable target %r", target)
            return False

        for changed_id, fields in changes:
            self._stage(self.tasks[changed_id], fields)
        return True

    def _resolve_timeline(self, task, target):
        if not isinstance(target.date, (date, datetime)):
            return None
        duration = task.duration
        day = to_date(target.date)
        if isinstance(target.date, datetime):
            new_start = target.date
        else:
            new_start = datetime.combine(day, task.start_date.time())
        new_end = datetime.combine(
            day + timedelta(days=duration - 1), task.end_date.time()
        )
        if new_end < new_start:
            new_end = new_start + timedelta(days=duration - 1)

        def apply(t):
            t.start_date = new_start
            t.end_date = new_end
            t.refresh_progress(self.clock())

        return [(task.id, apply)]

    def _resolve_column(self, task, target):
        try:
            status = TaskStatus(target.status)
        except ValueError:
            return None

        siblings = column_tasks(self.tasks, status.value, exclude=task.id)
        rank, renormalized = place_in_column([s.rank for s in siblings], target.index)

        def apply(t):
            t.status = status
            if status == TaskStatus.COMPLETED:
                t.progress = 100
            elif status == TaskStatus.NOT_STARTED:
                t.progress = 0
            # Only explicit completed/on-hold states outlive a later date change
            t.status_override = status in (TaskStatus.COMPLETED, TaskStatus.ON_HOLD)
            t.rank = rank

        changes = [(task.id, apply)]
        if renormalized is not None:
            for sibling, new_rank in zip(siblings, renormalized):
                changes.append((sibling.id, _rank_setter(new_rank)))
        return changes

    def _stage(self, task, apply):
        if task.id not in self._confirmed:
            self._confirmed[task.id] = task.snapshot()
        apply(task)
        task.updating = True
        if self.state(task.id) != DragState.DRAGGING or task.id not in self._gestures:
            self._states[task.id] = DragState.COMMITTING

        pending = self._pending.get(task.id)
        if pending is None:
            pending = self._pending[task.id] = _PendingWrite()
        pending.fields.update(_persisted_fields(task))
        pending.snapshot = task.snapshot()

        loop = asyncio.get_running_loop()
        if pending.handle is not None:
            pending.handle.cancel()
        pending.handle = loop.call_later(self.debounce_delay, self._fire, task.id)

    def _has_unconfirmed(self, task_id):
        return task_id in self._confirmed

    # Persistence

    def _fire(self, task_id):
        pending = self._pending.pop(task_id, None)
        if pending is None:
            return None
        if pending.handle is not None:
            pending.handle.cancel()
        generation = self._generations.get(task_id, 0) + 1
        self._generations[task_id] = generation
        job = asyncio.get_running_loop().create_task(
            self._write(task_id, dict(pending.fields), generation, pending.snapshot)
        )
        self._inflight.add(job)
        job.add_done_callback(self._inflight.discard)
        jobs = self._task_jobs.setdefault(task_id, set())
        jobs.add(job)
        job.add_done_callback(jobs.discard)
        return job

    def _is_current(self, task_id, generation):
        return (
            self._generations.get(task_id) == generation
            and task_id not in self._pending
        )

    def _acknowledge(self, task_id, generation, snapshot):
        """A write reached the server; its state is the new rollback target."""
        if generation <= self._acknowledged.get(task_id, 0):
            return
        self._acknowledged[task_id] = generation
        if task_id in self._confirmed and snapshot is not None:
            self._confirmed[task_id] = snapshot

    async def _write(self, task_id, fields, generation, snapshot=None):
        try:
            result = self.persist(task_id, fields)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            if self._is_current(task_id, generation):
                # Older writes still in flight may yet move the rollback target
                current = asyncio.current_task()
                older = [
                    job for job in self._task_jobs.get(task_id, ()) if job is not current
                ]
                if older:
                    await asyncio.gather(*older, return_exceptions=True)
            if not self._is_current(task_id, generation):
                logger.debug(
                    "Ignoring failure of superseded write %d for task %s: %s",
                    generation,
                    task_id,
                    e,
                )
                return
            await self._rollback(task_id, e)
            return

        self._acknowledge(task_id, generation, snapshot)
        if not self._is_current(task_id, generation):
            logger.debug(
                "Write %d for task %s superseded by a newer change", generation, task_id
            )
            return
        task = self.tasks.get(task_id)
        if task is not None:
            task.updating = False
        self._confirmed.pop(task_id, None)
        if self.state(task_id) == DragState.COMMITTING:
            self._states[task_id] = DragState.IDLE
        logger.debug("Task %s saved: %s", task_id, sorted(fields))

    async def _rollback(self, task_id, error):
        self._states[task_id] = DragState.ROLLING_BACK
        task = self.tasks.get(task_id)
        snapshot = self._confirmed.pop(task_id, None)
        logger.error("Failed to save task %s, rolling back: %s", task_id, error)
        self.errors.append((task_id, error))

        if task is not None and snapshot is not None:
            task.restore(snapshot)
        if task is not None:
            task.updating = False

        if self.refetch is not None:
            try:
                await self.refetch(task_id)
            except Exception as e:
                logger.warning("Refetch of task %s failed: %s", task_id, e)

        if self.on_error is not None and task is not None:
            try:
                self.on_error(task, error)
            except Exception as e:
                logger.warning("Error callback failed for task %s: %s", task_id, e)

        self._states[task_id] = DragState.IDLE

    async def flush(self):
        """Send every debounced write now and wait for all writes to finish."""
        for task_id in list(self._pending):
            self._fire(task_id)
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def close(self):
        """Cancel debounced writes that have not fired yet."""
        for task_id, pending in list(self._pending.items()):
            if pending.handle is not None:
                pending.handle.cancel()
            logger.debug("Discarding unsent changes for task %s", task_id)
        self._pending.clear()
        self._gestures.clear()


def _rank_setter(rank):
    def apply(task):
        task.rank = rank

    return apply


def _persisted_fields(task):
    return {
        "start_date": to_datetime(task.start_date).isoformat(),
        "end_date": to_datetime(task.end_date).isoformat(),
        "status": task.status,
        "progress": task.progress,
        "rank": task.rank,
    }

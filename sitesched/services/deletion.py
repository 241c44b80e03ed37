"""
Soft deletion with an undo window.

The registry is owned by whoever needs it (normally the ProjectScheduler);
timers and held tasks go away with it.
"""

import asyncio
import inspect
import itertools
import logging

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 10.0


class DeletionError(Exception):
    """Exception raised for invalid deletion requests."""

    pass


class PendingDeletion:
    def __init__(self, task, sequence, handle=None):
        self.task = task
        self.sequence = sequence
        self.handle = handle


class PendingDeletionRegistry:
    """
    Holds deleted tasks for a grace period before committing the deletion.

    Args:
        store: Dictionary of Task objects keyed by ID, updated in place
        commit: Callable (task_id) making the deletion permanent; may be a
            coroutine function
        grace_seconds: How long an undo remains possible
    """

    def __init__(self, store, commit, grace_seconds=DEFAULT_GRACE_SECONDS):
        if grace_seconds < 0:
            raise DeletionError("Grace period cannot be negative")
        self.store = store
        self.commit = commit
        self.grace_seconds = grace_seconds
        self._held = {}
        self._counter = itertools.count()
        self._commits = set()

    def __contains__(self, task_id):
        return task_id in self._held

    def __len__(self):
        return len(self._held)

    def delete(self, task_id):
        """
        Remove a task from the store and start its undo window.

        Must be called with a running event loop.

        Returns:
            Task: The held task

        Raises:
            DeletionError: If the task is unknown or already pending
        """
        if task_id in self._held:
            raise DeletionError(f"Task {task_id} is already pending deletion")
        if task_id not in self.store:
            raise DeletionError(f"Task {task_id} does not exist")
        loop = asyncio.get_running_loop()

        task = self.store.pop(task_id)
        entry = PendingDeletion(task, next(self._counter))
        entry.handle = loop.call_later(self.grace_seconds, self._expire, task_id)
        self._held[task_id] = entry
        logger.info(
            "Task %s deleted, undo possible for %.1fs", task_id, self.grace_seconds
        )
        return task

    def undo(self, task_id) -> bool:
        """Put a held task back unchanged; False when nothing is held."""
        entry = self._held.pop(task_id, None)
        if entry is None:
            return False
        if entry.handle is not None:
            entry.handle.cancel()
        self.store[task_id] = entry.task
        logger.info("Deletion of task %s undone", task_id)
        return True

    def pending(self):
        """Held tasks, most recently deleted first."""
        entries = sorted(self._held.values(), key=lambda e: e.sequence, reverse=True)
        return [entry.task for entry in entries]

    def _expire(self, task_id):
        job = asyncio.get_running_loop().create_task(self._commit(task_id))
        self._commits.add(job)
        job.add_done_callback(self._commits.discard)

    async def _commit(self, task_id):
        entry = self._held.pop(task_id, None)
        if entry is None:
            return
        if entry.handle is not None:
            entry.handle.cancel()
        try:
            result = self.commit(task_id)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("Failed to delete task %s, restoring it: %s", task_id, e)
            self.store[task_id] = entry.task
            return
        logger.debug("Deletion of task %s committed", task_id)

    async def flush(self):
        """Commit every held deletion now."""
        for task_id in list(self._held):
            await self._commit(task_id)
        if self._commits:
            await asyncio.gather(*list(self._commits), return_exceptions=True)

    def close(self):
        """Cancel all timers without committing; held tasks are dropped."""
        for entry in self._held.values():
            if entry.handle is not None:
                entry.handle.cancel()
        self._held.clear()

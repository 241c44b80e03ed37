import logging
from datetime import timedelta

from sitesched.domain.task import to_date
from sitesched.utils.graph import (
    build_dependency_graph,
    backward_pass,
    find_critical_path,
    forward_pass,
    topological_order,
)

logger = logging.getLogger(__name__)


class CriticalPathResult:
    """
    Outcome of a forward/backward pass over the dependency graph.

    All schedule values are day offsets from the project start.
    """

    def __init__(
        self,
        critical_ids,
        floats,
        early_start,
        early_finish,
        late_start,
        late_finish,
        project_duration,
        project_start=None,
    ):
        self.critical_ids = critical_ids
        self.floats = floats
        self.early_start = early_start
        self.early_finish = early_finish
        self.late_start = late_start
        self.late_finish = late_finish
        self.project_duration = project_duration
        self.project_start = project_start

    @property
    def project_finish(self):
        """Calendar day on which the last critical task finishes."""
        if self.project_start is None:
            return None
        return self.project_start + timedelta(days=max(0, self.project_duration - 1))

    def is_critical(self, task_id) -> bool:
        return self.floats.get(task_id) == 0


def calculate_critical_path(tasks, project_start=None):
    """
    Mark the tasks whose total float is zero.

    Args:
        tasks: Dictionary of Task objects keyed by ID
        project_start: Day offset 0; defaults to the earliest task start

    Returns:
        CriticalPathResult: Critical ids, floats and the pass tables

    Raises:
        CyclicDependencyError: If the dependency links form a cycle
    """
    graph = build_dependency_graph(tasks)
    order = topological_order(graph)

    early_start, early_finish = forward_pass(graph, order)
    late_start, late_finish, project_duration = backward_pass(
        graph, early_finish, order
    )

    floats = {
        task_id: late_start[task_id] - early_start[task_id] for task_id in order
    }
    critical_ids = find_critical_path(graph, floats, order)

    if project_start is None and tasks:
        project_start = min(to_date(task.start_date) for task in tasks.values())
    elif project_start is not None:
        project_start = to_date(project_start)

    logger.debug(
        "Critical path over %d tasks: %d critical, duration %d days",
        len(order),
        len(critical_ids),
        project_duration,
    )
    return CriticalPathResult(
        critical_ids,
        floats,
        early_start,
        early_finish,
        late_start,
        late_finish,
        project_duration,
        project_start,
    )


def apply_critical_path(tasks, result):
    """Copy the critical flag and total float onto each task."""
    for task_id, task in tasks.items():
        task.total_float = result.floats.get(task_id)
        task.critical_path = result.is_critical(task_id)
    return tasks


def clear_critical_path(tasks):
    for task in tasks.values():
        task.critical_path = False
        task.total_float = None
    return tasks

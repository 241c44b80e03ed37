import logging

import networkx as nx

from sitesched.domain.task import DependencyType

logger = logging.getLogger(__name__)


class CyclicDependencyError(ValueError):
    """Raised when task dependencies form a cycle."""

    def __init__(self, cycle):
        self.cycle = list(cycle)
        path = " -> ".join(str(u) for u, _ in self.cycle)
        if self.cycle:
            path += f" -> {self.cycle[-1][1]}"
        super().__init__(f"Task dependencies contain a cycle: {path}")


def cpm_duration(task):
    """Duration used by the passes; milestones take no time."""
    return 0 if task.milestone else task.duration


def build_dependency_graph(tasks):
    """
    Build a directed graph of task dependencies.

    Edges run predecessor -> dependent and carry the relationship `type`
    and `lag`. Links to tasks outside `tasks` are dropped.

    Raises:
        CyclicDependencyError: If the links form a cycle
    """
    G = nx.DiGraph()

    # Add task nodes
    for task_id, task in tasks.items():
        G.add_node(task_id, task=task, duration=cpm_duration(task))

    # Add task dependencies (edges)
    for task_id, task in tasks.items():
        for dependency in task.predecessors:
            if dependency.predecessor_id not in tasks:
                logger.debug(
                    "Task %s: ignoring link to unknown task %s",
                    task_id,
                    dependency.predecessor_id,
                )
                continue
            G.add_edge(
                dependency.predecessor_id,
                task_id,
                type=dependency.type,
                lag=dependency.lag,
            )

    # Check for cycles
    if not nx.is_directed_acyclic_graph(G):
        raise CyclicDependencyError(nx.find_cycle(G))

    return G


def topological_order(graph):
    try:
        return list(nx.topological_sort(graph))
    except nx.NetworkXUnfeasible:
        raise CyclicDependencyError(nx.find_cycle(graph))


def forward_pass(graph, order=None):
    """
    Calculate early start and early finish day offsets.

    Each task is visited after all its predecessors, so every lookup hits
    the memo tables.

    Returns:
        tuple: ({task_id: early_start}, {task_id: early_finish})
    """
    order = order if order is not None else topological_order(graph)
    early_start = {}
    early_finish = {}

    for task_id in order:
        duration = graph.nodes[task_id]["duration"]
        start = 0
        for pred_id in graph.predecessors(task_id):
            edge = graph.edges[pred_id, task_id]
            lag = edge["lag"]
            kind = edge["type"]
            if kind == DependencyType.FINISH_TO_START:
                bound = early_finish[pred_id] + lag
            elif kind == DependencyType.START_TO_START:
                bound = early_start[pred_id] + lag
            elif kind == DependencyType.FINISH_TO_FINISH:
                bound = early_finish[pred_id] + lag - duration
            else:  # start-to-finish
                bound = early_start[pred_id] + lag - duration
            start = max(start, bound)

        early_start[task_id] = start
        early_finish[task_id] = start + duration

    return early_start, early_finish


def backward_pass(graph, early_finish, order=None):
    """
    Calculate late start and late finish day offsets.

    Terminal tasks finish at the project finish; every other task finishes
    no later than its successors allow.

    Returns:
        tuple: ({task_id: late_start}, {task_id: late_finish}, project_duration)
    """
    order = order if order is not None else topological_order(graph)
    project_duration = max(early_finish.values()) if early_finish else 0
    late_start = {}
    late_finish = {}

    for task_id in reversed(order):
        duration = graph.nodes[task_id]["duration"]
        finish = project_duration
        for succ_id in graph.successors(task_id):
            edge = graph.edges[task_id, succ_id]
            lag = edge["lag"]
            kind = edge["type"]
            if kind == DependencyType.FINISH_TO_START:
                bound = late_start[succ_id] - lag
            elif kind == DependencyType.START_TO_START:
                bound = late_start[succ_id] - lag + duration
            elif kind == DependencyType.FINISH_TO_FINISH:
                bound = late_finish[succ_id] - lag
            else:  # start-to-finish
                bound = late_finish[succ_id] - lag + duration
            finish = min(finish, bound)

        late_finish[task_id] = finish
        late_start[task_id] = finish - duration

    return late_start, late_finish, project_duration


def find_critical_path(graph, floats, order=None):
    """Zero-float tasks in topological order."""
    order = order if order is not None else topological_order(graph)
    return [task_id for task_id in order if floats.get(task_id) == 0]

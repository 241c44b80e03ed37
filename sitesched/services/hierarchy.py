import logging
from collections import deque

logger = logging.getLogger(__name__)


def build_hierarchy(tasks):
    """
    Link tasks into a parent/child tree and assign nesting levels.

    Tasks whose parent_id is missing or names an unknown task become roots.
    Tasks caught in a parent cycle are unreachable from any root; they are
    promoted to roots as well so nothing is dropped.

    Args:
        tasks: Dictionary of Task objects keyed by ID, or a list of tasks

    Returns:
        list: Root tasks in input order, with `children` and `level` set
    """
    if isinstance(tasks, dict):
        task_list = list(tasks.values())
    else:
        task_list = list(tasks)
    task_map = {task.id: task for task in task_list}

    for task in task_list:
        task.children = []

    roots = []
    for task in task_list:
        parent_id = task.parent_id
        if parent_id is not None and parent_id in task_map and parent_id != task.id:
            task_map[parent_id].children.append(task)
        else:
            if parent_id is not None:
                logger.debug(
                    "Task %s: parent %s not found, promoting to root", task.id, parent_id
                )
            roots.append(task)

    reached = _assign_levels(roots)

    # Whatever is left hangs off a parent cycle
    for task in task_list:
        if task.id in reached:
            continue
        logger.warning(
            "Task %s is part of a parent cycle, promoting to root", task.id
        )
        parent = task_map.get(task.parent_id)
        if parent is not None and task in parent.children:
            parent.children.remove(task)
        roots.append(task)
        reached |= _assign_levels([task])

    return roots


def _assign_levels(roots):
    """Breadth-first level assignment; returns the ids reached."""
    reached = set()
    queue = deque((root, 0) for root in roots)
    while queue:
        task, level = queue.popleft()
        if task.id in reached:
            continue
        reached.add(task.id)
        task.level = level
        for child in task.children:
            queue.append((child, level + 1))
    return reached


def flatten_hierarchy(roots, include_collapsed=False):
    """
    Pre-order list of tasks for row display.

    Uses an explicit stack so deep trees do not hit the recursion limit.
    Children of collapsed tasks are skipped unless include_collapsed is set.
    """
    rows = []
    seen = set()
    stack = list(reversed(roots))
    while stack:
        task = stack.pop()
        if task.id in seen:
            continue
        seen.add(task.id)
        rows.append(task)
        if task.children and (task.expanded or include_collapsed):
            stack.extend(reversed(task.children))
    return rows


def assign_wbs_codes(roots):
    """
    Fill in missing WBS codes with dotted outline numbers.

    Explicit codes are kept; their children are numbered beneath them.
    """
    stack = [(root, str(index)) for index, root in reversed(list(enumerate(roots, 1)))]
    while stack:
        task, code = stack.pop()
        if not task.wbs:
            task.wbs = code
        prefix = task.wbs
        for index in range(len(task.children), 0, -1):
            stack.append((task.children[index - 1], f"{prefix}.{index}"))
    return roots


def find_ancestors(task_id, tasks):
    """Ids from the task's parent up to its root, stopping at a cycle."""
    ancestors = []
    seen = {task_id}
    current = tasks.get(task_id)
    while current is not None and current.parent_id in tasks:
        if current.parent_id in seen:
            break
        ancestors.append(current.parent_id)
        seen.add(current.parent_id)
        current = tasks[current.parent_id]
    return ancestors


def set_parent(task_id, parent_id, tasks):
    """
    Re-parent a task, refusing moves that would create a cycle.

    Returns:
        bool: True if the parent was changed
    """
    if task_id not in tasks:
        return False
    if parent_id is not None:
        if parent_id not in tasks or parent_id == task_id:
            return False
        if task_id in find_ancestors(parent_id, tasks):
            logger.info(
                "Refusing to move %s under its descendant %s", task_id, parent_id
            )
            return False
    tasks[task_id].parent_id = parent_id
    return True

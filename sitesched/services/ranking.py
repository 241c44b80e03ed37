"""
Fractional ranks for ordering tasks within a status column.

A task dropped between two siblings takes the midpoint of their ranks, so
only the moved task changes. Repeated insertion between the same neighbours
halves the gap every time; once it drops below MIN_RANK_GAP the column is
renumbered 1..n.
"""

import logging

logger = logging.getLogger(__name__)

MIN_RANK_GAP = 1e-9
FIRST_RANK = 1.0


def place_in_column(ranks, index=None):
    """
    Rank for a task inserted at `index` among `ranks`.

    Args:
        ranks: Ranks of the other tasks in the column
        index: Insertion position (0 = top); None or past the end appends

    Returns:
        tuple: (new_rank, renormalized) where renormalized is None, or the
        evenly spaced replacement ranks for the existing tasks in sorted
        order when the gap at the insertion point was exhausted
    """
    ordered = sorted(ranks)
    if not ordered:
        return FIRST_RANK, None
    if index is None or index >= len(ordered):
        return ordered[-1] + 1.0, None
    if index <= 0:
        return ordered[0] - 1.0, None

    before = ordered[index - 1]
    after = ordered[index]
    if after - before < MIN_RANK_GAP:
        logger.debug(
            "Rank gap %.3g between %r and %r exhausted, renormalizing %d ranks",
            after - before,
            before,
            after,
            len(ordered),
        )
        renormalized = [
            float(position if position <= index else position + 1)
            for position in range(1, len(ordered) + 1)
        ]
        return float(index + 1), renormalized
    return before + (after - before) / 2, None


def column_tasks(tasks, status, exclude=None):
    """Tasks in a status column ordered by rank, skipping deleted ones."""
    if isinstance(tasks, dict):
        tasks = tasks.values()
    column = [
        task
        for task in tasks
        if task.status == status and not task.deleted and task.id != exclude
    ]
    return sorted(column, key=lambda task: (task.rank, str(task.id)))


def renormalize(column):
    """Renumber a column's tasks 1..n in their current order."""
    for position, task in enumerate(column, 1):
        task.rank = float(position)
    return column

import logging
from datetime import datetime, timedelta
from enum import Enum

from sitesched.domain.task import to_datetime
from sitesched.utils.dates import (
    add_months,
    add_years,
    end_of_month,
    end_of_quarter,
    end_of_week,
    end_of_year,
    start_of_day,
    start_of_month,
    start_of_quarter,
    start_of_week,
    start_of_year,
)

logger = logging.getLogger(__name__)

DEFAULT_HEADER_CAP = 200
MIN_VISIBLE_WIDTH = 0.5
MAX_LEFT = 99.0


class TimeScale(Enum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


def _padded_range(start, end, scale):
    """Snap the range to the scale's boundaries and add its buffer."""
    if scale == TimeScale.HOUR:
        start = start.replace(minute=0, second=0, microsecond=0) - timedelta(days=1)
        end = end + timedelta(days=1)
    elif scale == TimeScale.DAY:
        start = start_of_day(start) - timedelta(days=7)
        end = end + timedelta(days=7)
    elif scale == TimeScale.WEEK:
        start = start_of_week(start) - timedelta(weeks=2)
        end = end_of_week(end) + timedelta(weeks=2)
    elif scale == TimeScale.MONTH:
        start = add_months(start_of_month(start), -1)
        end = add_months(end_of_month(end), 1)
    elif scale == TimeScale.QUARTER:
        start = add_months(start_of_quarter(start), -3)
        end = add_months(end_of_quarter(end), 3)
    elif scale == TimeScale.YEAR:
        start = add_years(start_of_year(start), -1)
        end = add_years(end_of_year(end), 1)
    return start, end


def _step(current, scale, index):
    if scale == TimeScale.HOUR:
        return current + timedelta(hours=index)
    if scale == TimeScale.DAY:
        return current + timedelta(days=index)
    if scale == TimeScale.WEEK:
        return current + timedelta(weeks=index)
    if scale == TimeScale.MONTH:
        return add_months(current, index)
    if scale == TimeScale.QUARTER:
        return add_months(current, 3 * index)
    return add_years(current, index)


def generate_time_headers(
    tasks,
    timescale="day",
    project_range=None,
    view_date=None,
    max_headers=DEFAULT_HEADER_CAP,
):
    """
    Build the ordered time buckets spanning the project.

    Args:
        tasks: Iterable of Task objects (or a dict of them)
        timescale: A TimeScale or its value
        project_range: Optional (start, end) declared by the project; widens
            the span when it lies outside the task dates
        view_date: Center of the axis when there are no tasks or range
        max_headers: Hard cap on the number of buckets

    Returns:
        list: datetime of each bucket start, at most max_headers long
    """
    scale = TimeScale(timescale) if not isinstance(timescale, TimeScale) else timescale
    if isinstance(tasks, dict):
        tasks = tasks.values()

    dates = []
    for task in tasks:
        dates.append(to_datetime(task.start_date))
        dates.append(to_datetime(task.end_date))

    if dates:
        project_start, project_end = min(dates), max(dates)
    else:
        anchor = to_datetime(view_date) if view_date is not None else datetime.now()
        project_start = project_end = anchor

    if project_range is not None:
        range_start, range_end = project_range
        if range_start is not None and to_datetime(range_start) < project_start:
            project_start = to_datetime(range_start)
        if range_end is not None and to_datetime(range_end) > project_end:
            project_end = to_datetime(range_end)

    start, end = _padded_range(project_start, project_end, scale)

    headers = []
    # Stepping from the anchor by index avoids month-end drift (Jan 31 -> Feb 28 -> Mar 28)
    current = start
    while current <= end:
        if len(headers) >= max_headers:
            logger.debug(
                "Time axis truncated at %d %s buckets", max_headers, scale.value
            )
            break
        headers.append(current)
        current = _step(start, scale, len(headers))

    return headers


def calculate_task_position(task, headers):
    """
    Place a task bar against the time axis.

    Returns:
        dict: {"left": percent, "width": percent}; left is clamped to
        [0, 99] and left + width never exceeds 100
    """
    if not headers or task.start_date is None or task.end_date is None:
        return {"left": 0.0, "width": 1.0}

    first = headers[0]
    last = headers[-1]
    total = max((last - first).total_seconds(), 86400.0)

    start = to_datetime(task.start_date)
    # The end date is inclusive; the bar runs to the end of that day
    end = start_of_day(to_datetime(task.end_date)) + timedelta(days=1)

    start_offset = max(0.0, (start - first).total_seconds())
    end_offset = max(start_offset, (end - first).total_seconds())

    left = min(MAX_LEFT, max(0.0, start_offset / total * 100))
    width = max(MIN_VISIBLE_WIDTH, (end_offset - start_offset) / total * 100)
    width = min(width, 100.0 - left)

    return {"left": round(left, 4), "width": round(width, 4)}

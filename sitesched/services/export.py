"""
Project interchange export.

Writes the task list as Microsoft Project XML so schedules can be opened in
external project-management tools.
"""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime

from sitesched.domain.task import DependencyType, Priority, to_datetime

logger = logging.getLogger(__name__)

PROJECT_NAMESPACE = "http://schemas.microsoft.com/project"
HOURS_PER_DAY = 8
# LinkLag is expressed in tenths of a minute
LAG_UNITS_PER_DAY = HOURS_PER_DAY * 60 * 10

PRIORITY_CODES = {
    Priority.CRITICAL.value: 1000,
    Priority.HIGH.value: 750,
}
DEFAULT_PRIORITY_CODE = 500

LINK_TYPE_CODES = {
    DependencyType.FINISH_TO_FINISH: 0,
    DependencyType.FINISH_TO_START: 1,
    DependencyType.START_TO_FINISH: 2,
    DependencyType.START_TO_START: 3,
}


class ProjectInfo:
    """Project-level metadata written alongside the tasks."""

    def __init__(
        self,
        id=None,
        name="Project",
        project_code=None,
        start_date=None,
        end_date=None,
        budget=None,
    ):
        self.id = id
        self.name = name or "Project"
        self.project_code = project_code
        self.start_date = start_date
        self.end_date = end_date
        self.budget = budget

    @property
    def file_name(self):
        return f"{self.project_code or 'project'}.xml"

    @property
    def date_range(self):
        """(start, end) for the time axis, or None when undeclared."""
        if self.start_date is None and self.end_date is None:
            return None
        return (self.start_date, self.end_date)


def _timestamp(value):
    return to_datetime(value).strftime("%Y-%m-%dT%H:%M:%S")


def _duration(days):
    return f"PT{days * HOURS_PER_DAY}H0M0S"


def _sub(parent, tag, text):
    element = ET.SubElement(parent, tag)
    element.text = str(text)
    return element


def export_project_xml(tasks, project=None):
    """
    Serialize tasks to Microsoft Project XML.

    Tasks receive sequential UIDs in export order; predecessor links refer
    to those UIDs and links to tasks outside the export are dropped.

    Args:
        tasks: Dictionary of Task objects keyed by ID, or a list of tasks
        project: Optional ProjectInfo

    Returns:
        str: The XML document
    """
    if isinstance(tasks, dict):
        tasks = list(tasks.values())
    tasks = [task for task in tasks if not task.deleted]
    project = project or ProjectInfo()

    ET.register_namespace("", PROJECT_NAMESPACE)
    root = ET.Element(f"{{{PROJECT_NAMESPACE}}}Project")

    def tag(name):
        return f"{{{PROJECT_NAMESPACE}}}{name}"

    if tasks:
        first_start = min(to_datetime(task.start_date) for task in tasks)
        last_finish = max(to_datetime(task.end_date) for task in tasks)
    else:
        first_start = last_finish = datetime.now().replace(microsecond=0)
    start = project.start_date if project.start_date is not None else first_start
    finish = project.end_date if project.end_date is not None else last_finish

    _sub(root, tag("Name"), project.name)
    _sub(root, tag("StartDate"), _timestamp(start))
    _sub(root, tag("FinishDate"), _timestamp(finish))

    uids = {task.id: uid for uid, task in enumerate(tasks, 1)}
    tasks_element = ET.SubElement(root, tag("Tasks"))
    for task in tasks:
        element = ET.SubElement(tasks_element, tag("Task"))
        _sub(element, tag("UID"), uids[task.id])
        _sub(element, tag("ID"), uids[task.id])
        _sub(element, tag("Name"), task.title)
        if task.wbs:
            _sub(element, tag("WBS"), task.wbs)
        _sub(element, tag("OutlineLevel"), task.level + 1)
        _sub(element, tag("Start"), _timestamp(task.start_date))
        _sub(element, tag("Finish"), _timestamp(task.end_date))
        _sub(element, tag("Duration"), _duration(0 if task.milestone else task.duration))
        _sub(element, tag("Milestone"), 1 if task.milestone else 0)
        _sub(element, tag("PercentComplete"), task.progress)
        _sub(
            element,
            tag("Priority"),
            PRIORITY_CODES.get(task.priority, DEFAULT_PRIORITY_CODE),
        )
        for dependency in task.predecessors:
            if dependency.predecessor_id not in uids:
                logger.debug(
                    "Task %s: predecessor %s not exported, dropping link",
                    task.id,
                    dependency.predecessor_id,
                )
                continue
            link = ET.SubElement(element, tag("PredecessorLink"))
            _sub(link, tag("PredecessorUID"), uids[dependency.predecessor_id])
            _sub(link, tag("Type"), LINK_TYPE_CODES[dependency.type])
            _sub(link, tag("LinkLag"), dependency.lag * LAG_UNITS_PER_DAY)

    body = ET.tostring(root, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n' + body

"""
Construction Site Scheduler
===========================

Task hierarchy, time axis, critical path, construction conflict analysis
and optimistic drag rescheduling for construction projects.

Available modules:
- domain: tasks, resources, the trade knowledge base and conflict types
- services: the scheduling components and the ProjectScheduler facade
- visualization: network diagram of the dependency graph
"""

from sitesched.domain.task import Dependency, Task, TaskError, task_from_record
from sitesched.services.scheduler import ProjectScheduler

__all__ = [
    "Dependency",
    "ProjectScheduler",
    "Task",
    "TaskError",
    "task_from_record",
]

import logging
from datetime import datetime

from sitesched.domain.conflict import AnalysisSettings
from sitesched.domain.task import TaskError, task_from_record, to_date
from sitesched.services.conflicts import ConflictAnalyzer, suggest_optimal_schedule
from sitesched.services.critical_path import (
    apply_critical_path,
    calculate_critical_path,
    clear_critical_path,
)
from sitesched.services.deletion import DeletionError, PendingDeletionRegistry
from sitesched.services.export import ProjectInfo, export_project_xml
from sitesched.services.feedback import FeedbackChannel
from sitesched.services.hierarchy import (
    assign_wbs_codes,
    build_hierarchy,
    flatten_hierarchy,
)
from sitesched.services.reschedule import RescheduleHandler
from sitesched.services.timeline import (
    DEFAULT_HEADER_CAP,
    TimeScale,
    calculate_task_position,
    generate_time_headers,
)
from sitesched.utils.graph import CyclicDependencyError

logger = logging.getLogger(__name__)


class ProjectScheduler:
    """
    Entry point tying the scheduling components to one project's task set.

    Each computation is an explicit call made by the host whenever the
    relevant state changes; nothing is recomputed implicitly.
    """

    def __init__(
        self,
        timescale="day",
        header_cap=DEFAULT_HEADER_CAP,
        perspective="balanced",
        debounce_delay=0.3,
        undo_grace_seconds=10.0,
        activation_distance=10,
        settings=None,
        feedback=None,
        clock=datetime.now,
    ):
        self.tasks = {}  # Dictionary of Task objects
        self.resources = {}  # Dictionary of Resource objects
        self.project = None

        self.timescale = TimeScale(timescale)
        self.header_cap = header_cap
        self.debounce_delay = debounce_delay
        self.undo_grace_seconds = undo_grace_seconds
        self.activation_distance = activation_distance
        self.clock = clock

        self.analyzer = ConflictAnalyzer(
            perspective,
            settings or AnalysisSettings(),
            self.resources,
            feedback or FeedbackChannel(),
            clock,
        )

        self.roots = []
        self.critical_path = None
        # Last CyclicDependencyError, if the dependency links are not a DAG
        self.schedule_error = None
        self.deletions = None

    @property
    def settings(self):
        return self.analyzer.settings

    @property
    def perspective(self):
        return self.analyzer.perspective

    @perspective.setter
    def perspective(self, value):
        self.analyzer.set_perspective(value)

    def add_task(self, task):
        """Add a task to the scheduler"""
        self.tasks[task.id] = task
        return self

    def load_records(self, records):
        """
        Add tasks from raw event/task records.

        Records without an id are skipped and logged.

        Returns:
            int: Number of tasks loaded
        """
        now = self.clock()
        loaded = 0
        for record in records:
            try:
                task = task_from_record(record, now)
            except TaskError as e:
                logger.warning("Skipping record %r: %s", record.get("id"), e)
                continue
            self.add_task(task)
            loaded += 1
        logger.info("Loaded %d of %d records", loaded, len(records))
        return loaded

    def set_resources(self, resources):
        """Set the resources available for the project"""
        if isinstance(resources, dict):
            resources = resources.values()
        self.resources.clear()
        for resource in resources:
            self.resources[resource.id] = resource
        return self

    def set_project(self, project: ProjectInfo):
        self.project = project
        return self

    def build_hierarchy(self, assign_wbs=False):
        self.roots = build_hierarchy(self.tasks)
        if assign_wbs:
            assign_wbs_codes(self.roots)
        return self.roots

    def rows(self, include_collapsed=False):
        """Tasks in display order."""
        if not self.roots:
            self.build_hierarchy()
        return flatten_hierarchy(self.roots, include_collapsed)

    def time_headers(self, timescale=None, view_date=None):
        scale = TimeScale(timescale) if timescale is not None else self.timescale
        project_range = self.project.date_range if self.project is not None else None
        return generate_time_headers(
            self.tasks,
            scale,
            project_range=project_range,
            view_date=view_date,
            max_headers=self.header_cap,
        )

    def task_position(self, task_id, headers=None):
        if headers is None:
            headers = self.time_headers()
        return calculate_task_position(self.tasks[task_id], headers)

    def calculate_critical_path(self):
        """
        Recompute the critical path and mark the tasks.

        Returns:
            CriticalPathResult, or None when the dependencies contain a cycle
        """
        try:
            result = calculate_critical_path(self.tasks)
        except CyclicDependencyError as e:
            logger.error("Cannot compute critical path: %s", e)
            self.schedule_error = e
            self.critical_path = None
            clear_critical_path(self.tasks)
            return None

        self.schedule_error = None
        self.critical_path = result
        apply_critical_path(self.tasks, result)
        return result

    def analyze_conflicts(self, weather=None):
        return self.analyzer.analyze(self.tasks, weather)

    def suggest_schedule(self, preferred_work_days=None, work_hours_start=None):
        return suggest_optimal_schedule(
            self.tasks.values(), preferred_work_days, work_hours_start
        )

    def create_reschedule_handler(self, persist, refetch=None, on_error=None):
        return RescheduleHandler(
            self.tasks,
            persist,
            refetch=refetch,
            on_error=on_error,
            debounce_delay=self.debounce_delay,
            activation_distance=self.activation_distance,
            clock=self.clock,
        )

    def enable_deletions(self, commit):
        """Create the undo registry; deletions are committed through `commit`."""
        if self.deletions is not None:
            self.deletions.close()
        self.deletions = PendingDeletionRegistry(
            self.tasks, commit, self.undo_grace_seconds
        )
        return self.deletions

    def delete_task(self, task_id):
        if self.deletions is None:
            raise DeletionError("Call enable_deletions() before deleting tasks")
        return self.deletions.delete(task_id)

    def undo_delete(self, task_id):
        if self.deletions is None:
            return False
        return self.deletions.undo(task_id)

    def export_xml(self):
        self.build_hierarchy()
        return export_project_xml(self.rows(include_collapsed=True), self.project)

    def refresh_progress(self, now=None):
        """Re-derive progress and status of every task from its dates."""
        now = now or self.clock()
        for task in self.tasks.values():
            task.refresh_progress(now)
        return self.tasks

    def generate_report(self, status_date=None, weather=None):
        """
        Generate a text report of the schedule.

        Args:
            status_date: The date to use for the report (defaults to now)
            weather: Optional WeatherSummary for the conflict analysis

        Returns:
            str: A formatted string with the report
        """
        status_date = status_date or self.clock()

        report = []
        title = self.project.name if self.project is not None else "Project"
        report.append(f"{title} Schedule Report")
        report.append("=" * (len(title) + 16))
        report.append(f"Report Date: {to_date(status_date):%Y-%m-%d}")
        report.append(f"Tasks: {len(self.tasks)}")

        if self.tasks:
            total = sum(task.duration for task in self.tasks.values())
            done = sum(task.duration * task.progress for task in self.tasks.values())
            report.append(f"Project Completion: {done / total:.1f}%")

        result = self.calculate_critical_path()
        report.append("\nCritical Path:")
        report.append("-------------")
        if result is None:
            report.append(f"Unavailable: {self.schedule_error}")
        else:
            for task_id in result.critical_ids:
                task = self.tasks[task_id]
                report.append(
                    f"{task.id}: {task.title} "
                    f"({task.start_date:%Y-%m-%d} - {task.end_date:%Y-%m-%d})"
                )
            if result.project_finish is not None:
                report.append(f"Project Finish: {result.project_finish:%Y-%m-%d}")
            near = [
                (task_id, slack)
                for task_id, slack in result.floats.items()
                if 0 < slack <= 2
            ]
            if near:
                report.append("Near-critical tasks:")
                for task_id, slack in near:
                    report.append(f"  {self.tasks[task_id].title}: {slack} day(s) float")

        analysis = self.analyze_conflicts(weather)
        report.append("\nConflict Analysis:")
        report.append("-----------------")
        report.append(
            f"Schedule Score: {analysis.score}/100 ({analysis.rating}, "
            f"{self.perspective.value} mode)"
        )
        for conflict in analysis.conflicts:
            report.append(f"[{conflict.severity.value.upper()}] {conflict.description}")
            if conflict.resolution:
                report.append(f"  Suggestion: {conflict.resolution}")
        for suggestion in analysis.suggestions:
            report.append(f"* {suggestion}")

        return "\n".join(report)

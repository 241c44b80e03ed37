import unittest
from datetime import date, datetime

from sitesched.domain.task import (
    Dependency,
    DependencyType,
    Task,
    TaskError,
    compute_progress_status,
    parse_timestamp,
    task_from_record,
)


class TaskTestCase(unittest.TestCase):
    """Test cases for the Task class."""

    def setUp(self):
        """Set up test cases with a sample task."""
        self.task = Task(
            id="T1",
            title="Pour foundation",
            start_date=datetime(2024, 6, 1, 7, 0),
            end_date=datetime(2024, 6, 5, 16, 0),
            resources=["crew-a"],
            trade="foundation",
        )

    def test_initialization_validation(self):
        """Test validation during task initialization."""
        with self.assertRaises(TaskError):
            Task(id=None, title="No id", start_date=date(2024, 6, 1))

        with self.assertRaises(TaskError):
            Task(id="I1", title="", start_date=date(2024, 6, 1))

        with self.assertRaises(TaskError):
            Task(
                id="I2",
                title="Backwards",
                start_date=date(2024, 6, 5),
                end_date=date(2024, 6, 1),
            )

        with self.assertRaises(TaskError):
            Task(id="I3", title="Bad progress", start_date=date(2024, 6, 1), progress=120)

        with self.assertRaises(TaskError):
            Task(id="I4", title="Bad status", start_date=date(2024, 6, 1), status="done")

        with self.assertRaises(TaskError):
            Task(id="I5", title="Bad priority", start_date=date(2024, 6, 1), priority="urgent")

        # Missing end date collapses to the start
        task = Task(id="D1", title="One day", start_date=date(2024, 6, 1))
        self.assertEqual(task.duration, 1)
        self.assertEqual(task.end_date, datetime(2024, 6, 1))

        # Resource as string becomes a single allocation
        task = Task(id="D2", title="Crew", start_date=date(2024, 6, 1), resources="crew-b")
        self.assertEqual(task.resources, ["crew-b"])
        self.assertEqual(task.resource_allocations, {"crew-b": 1.0})

    def test_duration_matches_dates(self):
        """Duration is the inclusive day count of the dates."""
        self.assertEqual(self.task.duration, 5)
        self.task.end_date = datetime(2024, 6, 10)
        self.assertEqual(self.task.duration, 10)

    def test_move_to_keeps_duration(self):
        self.task.move_to(datetime(2024, 6, 10, 7, 0))
        self.assertEqual(self.task.start_date, datetime(2024, 6, 10, 7, 0))
        self.assertEqual(self.task.end_date.date(), date(2024, 6, 14))
        self.assertEqual(self.task.duration, 5)

    def test_refresh_progress(self):
        """Progress and status follow the dates."""
        self.task.refresh_progress(datetime(2024, 6, 3, 12, 0))
        self.assertEqual(self.task.progress, 60)
        self.assertEqual(self.task.status, "in_progress")

        self.task.refresh_progress(datetime(2024, 5, 30))
        self.assertEqual((self.task.progress, self.task.status), (0, "not_started"))

        self.task.refresh_progress(datetime(2024, 6, 10))
        self.assertEqual((self.task.progress, self.task.status), (100, "completed"))

    def test_explicit_status_survives_refresh(self):
        self.task.hold()
        self.task.refresh_progress(datetime(2024, 6, 10))
        self.assertEqual(self.task.status, "on_hold")

        self.task.release(datetime(2024, 6, 10))
        self.assertEqual(self.task.status, "completed")
        self.assertFalse(self.task.status_override)

    def test_complete(self):
        self.task.complete(datetime(2024, 6, 4))
        self.assertEqual(self.task.status, "completed")
        self.assertEqual(self.task.progress, 100)
        self.assertEqual(self.task.actual_end, datetime(2024, 6, 4))

    def test_predecessors(self):
        self.task.add_predecessor("T0", "SS", 2).add_predecessor("T0", "SS", 2)
        self.assertEqual(len(self.task.predecessors), 1)
        self.assertEqual(self.task.predecessors[0].type, DependencyType.START_TO_START)
        self.assertEqual(self.task.predecessor_ids, ["T0"])

        with self.assertRaises(TaskError):
            self.task.add_predecessor("T1")
        with self.assertRaises(TaskError):
            self.task.add_predecessor(Dependency("T9", "T0"))

        self.task.remove_predecessor("T0")
        self.assertEqual(self.task.predecessors, [])

    def test_variance(self):
        self.assertIsNone(self.task.get_variance())
        self.task.baseline_end = datetime(2024, 6, 3)
        self.assertEqual(self.task.get_variance(), 2)

    def test_snapshot_restore(self):
        snapshot = self.task.snapshot()
        self.task.move_to(datetime(2024, 7, 1))
        self.task.rank = 4.5
        self.task.updating = True
        self.task.restore(snapshot)
        self.assertEqual(self.task.start_date, datetime(2024, 6, 1, 7, 0))
        self.assertEqual(self.task.end_date, datetime(2024, 6, 5, 16, 0))
        self.assertEqual(self.task.rank, 0.0)
        self.assertFalse(self.task.updating)

    def test_overlaps(self):
        other = Task("T2", "Framing", date(2024, 6, 5), date(2024, 6, 8))
        later = Task("T3", "Roofing", date(2024, 6, 6), date(2024, 6, 8))
        self.assertTrue(self.task.overlaps(other))
        self.assertFalse(self.task.overlaps(later))


class ProgressStatusTestCase(unittest.TestCase):
    def test_examples(self):
        start, end = date(2024, 6, 1), date(2024, 6, 5)
        self.assertEqual(compute_progress_status(start, end, date(2024, 6, 3)), (60, "in_progress"))
        self.assertEqual(compute_progress_status(start, end, date(2024, 5, 30)), (0, "not_started"))
        self.assertEqual(compute_progress_status(start, end, date(2024, 6, 10)), (100, "completed"))

    def test_last_day_is_in_progress(self):
        self.assertEqual(
            compute_progress_status(date(2024, 6, 1), date(2024, 6, 5), datetime(2024, 6, 5, 23)),
            (100, "in_progress"),
        )

    def test_rounds_half_up(self):
        # 1 of 8 days = 12.5%
        self.assertEqual(
            compute_progress_status(date(2024, 6, 1), date(2024, 6, 8), date(2024, 6, 1))[0],
            13,
        )


class TaskFromRecordTestCase(unittest.TestCase):
    def setUp(self):
        self.now = datetime(2024, 6, 3, 12, 0)

    def test_calendar_event(self):
        record = {
            "id": "E1",
            "title": "Frame walls",
            "start_time": "2024-06-01T07:00:00Z",
            "end_time": "2024-06-05T16:00:00Z",
            "event_type": "framing",
            "location": "Unit 4",
            "team_member_id": "crew-a",
            "dependencies": [
                {"depends_on_task_id": "E0", "dependency_type": "finish_to_start", "lag_days": 1}
            ],
            "color": "#ff0000",
        }
        task = task_from_record(record, self.now)
        self.assertEqual(task.trade, "framing")
        self.assertEqual(task.location, "Unit 4")
        self.assertEqual(task.start_date, datetime(2024, 6, 1, 7, 0))
        self.assertEqual(task.duration, 5)
        self.assertEqual(task.progress, 60)
        self.assertEqual(task.status, "in_progress")
        self.assertEqual(task.resources, ["crew-a"])
        self.assertEqual(task.predecessors, [Dependency("E1", "E0", "FS", 1)])
        self.assertEqual(task.extra, {"color": "#ff0000"})

    def test_defective_fields_use_defaults(self):
        task = task_from_record(
            {
                "id": 7,
                "start_time": "not a date",
                "end_time": "2020-01-01",
                "priority": "urgent",
                "dependencies": "E0",
                "parent_id": "",
            },
            self.now,
        )
        self.assertEqual(task.title, "7")
        self.assertEqual(task.start_date, datetime(2024, 6, 3))
        self.assertEqual(task.duration, 1)
        self.assertEqual(task.priority, "medium")
        self.assertEqual(task.predecessors, [])
        self.assertIsNone(task.parent_id)

    def test_record_priority(self):
        task = task_from_record(
            {"id": "P1", "title": "Pour slab", "start_date": "2024-06-10", "priority": "critical"},
            self.now,
        )
        self.assertEqual(task.priority, "critical")

    def test_missing_id_rejected(self):
        with self.assertRaises(TaskError):
            task_from_record({"title": "No id"}, self.now)

    def test_explicit_status(self):
        task = task_from_record(
            {"id": "C1", "title": "Done early", "start_date": "2024-06-10",
             "end_date": "2024-06-12", "status": "completed"},
            self.now,
        )
        self.assertEqual(task.status, "completed")
        self.assertEqual(task.progress, 100)
        self.assertTrue(task.status_override)

    def test_milestone_event_type(self):
        task = task_from_record(
            {"id": "M1", "title": "Handover", "start_date": "2024-06-30", "event_type": "milestone"},
            self.now,
        )
        self.assertTrue(task.milestone)

    def test_timezone_converted_to_utc(self):
        self.assertEqual(
            parse_timestamp("2024-06-01T09:00:00+02:00"), datetime(2024, 6, 1, 7, 0)
        )


if __name__ == "__main__":
    unittest.main()

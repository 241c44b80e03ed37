import unittest
from datetime import date, datetime

from sitesched.domain.task import Task
from sitesched.services.timeline import (
    TimeScale,
    calculate_task_position,
    generate_time_headers,
)


class TimeHeaderTestCase(unittest.TestCase):
    def setUp(self):
        self.tasks = [
            Task("T1", "Excavation", date(2024, 6, 1), date(2024, 6, 5)),
            Task("T2", "Foundation", date(2024, 6, 6), date(2024, 6, 10)),
        ]

    def test_day_scale_buffer(self):
        headers = generate_time_headers(self.tasks, "day")
        self.assertEqual(headers[0], datetime(2024, 5, 25))
        self.assertEqual(headers[-1], datetime(2024, 6, 17))
        self.assertEqual(len(headers), 24)

    def test_week_scale_starts_monday(self):
        headers = generate_time_headers(self.tasks, TimeScale.WEEK)
        self.assertTrue(all(h.weekday() == 0 for h in headers))
        # Monday of Jun 1 2024 is May 27; two weeks earlier
        self.assertEqual(headers[0], datetime(2024, 5, 13))

    def test_month_scale(self):
        headers = generate_time_headers(self.tasks, "month")
        self.assertEqual(
            headers,
            [datetime(2024, 5, 1), datetime(2024, 6, 1), datetime(2024, 7, 1)],
        )

    def test_quarter_and_year(self):
        quarters = generate_time_headers(self.tasks, "quarter")
        self.assertEqual(quarters[0], datetime(2024, 1, 1))
        self.assertEqual(quarters[-1], datetime(2024, 7, 1))
        years = generate_time_headers(self.tasks, "year")
        self.assertEqual(years, [datetime(2023, 1, 1), datetime(2024, 1, 1), datetime(2025, 1, 1)])

    def test_project_range_widens_span(self):
        headers = generate_time_headers(
            self.tasks, "month", project_range=(date(2024, 1, 15), None)
        )
        self.assertEqual(headers[0], datetime(2023, 12, 1))

    def test_cap_truncates(self):
        long_task = [Task("L", "Long", date(2020, 1, 1), date(2024, 1, 1))]
        headers = generate_time_headers(long_task, "day")
        self.assertEqual(len(headers), 200)
        self.assertEqual(len(generate_time_headers(long_task, "day", max_headers=10)), 10)

    def test_no_tasks_centers_on_view_date(self):
        headers = generate_time_headers([], "day", view_date=datetime(2024, 3, 10, 15))
        self.assertEqual(headers[0], datetime(2024, 3, 3))
        self.assertEqual(len(headers), 15)


class TaskPositionTestCase(unittest.TestCase):
    def test_fractions(self):
        task = Task("T1", "Excavation", date(2024, 6, 1), date(2024, 6, 5))
        headers = [datetime(2024, 5, 25 + i) for i in range(7)] + [
            datetime(2024, 6, d) for d in range(1, 13)
        ]
        position = calculate_task_position(task, headers)
        # 18-day span: starts 7 days in, runs 5 days
        self.assertAlmostEqual(position["left"], 7 / 18 * 100, places=3)
        self.assertAlmostEqual(position["width"], 5 / 18 * 100, places=3)

    def test_clamping(self):
        headers = [datetime(2024, 6, d) for d in range(1, 11)]
        late = Task("T2", "Late", date(2024, 7, 1), date(2024, 7, 3))
        position = calculate_task_position(late, headers)
        self.assertEqual(position["left"], 99.0)
        self.assertLessEqual(position["left"] + position["width"], 100.0)

        early = Task("T3", "Early", date(2024, 5, 1), date(2024, 6, 2))
        position = calculate_task_position(early, headers)
        self.assertEqual(position["left"], 0.0)
        self.assertLessEqual(position["width"], 100.0)

    def test_minimum_width(self):
        headers = generate_time_headers(
            [Task("L", "Long", date(2020, 1, 1), date(2024, 1, 1))], "year"
        )
        short = Task("S", "Short", datetime(2022, 3, 1, 8), datetime(2022, 3, 1, 9))
        self.assertEqual(calculate_task_position(short, headers)["width"], 0.5)

    def test_no_headers(self):
        task = Task("T1", "Excavation", date(2024, 6, 1))
        self.assertEqual(calculate_task_position(task, []), {"left": 0.0, "width": 1.0})


if __name__ == "__main__":
    unittest.main()

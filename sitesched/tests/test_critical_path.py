import unittest
from datetime import date, timedelta

from sitesched.domain.task import Task
from sitesched.services.critical_path import (
    apply_critical_path,
    calculate_critical_path,
    clear_critical_path,
)
from sitesched.utils.graph import CyclicDependencyError, build_dependency_graph


def make_task(task_id, start, days, milestone=False):
    return Task(
        task_id,
        f"Task {task_id}",
        start,
        start + timedelta(days=max(days, 1) - 1),
        milestone=milestone,
    )


class CriticalPathTestCase(unittest.TestCase):
    def setUp(self):
        self.start = date(2024, 6, 1)

    def build(self, durations):
        return {
            task_id: make_task(task_id, self.start, days)
            for task_id, days in durations.items()
        }

    def test_linear_chain(self):
        """A(3) -> B(2) -> C(4) from Jun 1 finishes Jun 9."""
        tasks = {
            "A": make_task("A", date(2024, 6, 1), 3),
            "B": make_task("B", date(2024, 6, 4), 2),
            "C": make_task("C", date(2024, 6, 6), 4),
        }
        tasks["B"].add_predecessor("A")
        tasks["C"].add_predecessor("B")

        result = calculate_critical_path(tasks)
        self.assertEqual(result.critical_ids, ["A", "B", "C"])
        self.assertEqual(result.project_duration, 9)
        self.assertEqual(result.project_finish, date(2024, 6, 9))
        self.assertEqual(result.early_start, {"A": 0, "B": 3, "C": 5})

    def test_diamond(self):
        tasks = self.build({"A": 2, "B": 5, "C": 2, "D": 1})
        tasks["B"].add_predecessor("A")
        tasks["C"].add_predecessor("A")
        tasks["D"].add_predecessor("B").add_predecessor("C")

        result = calculate_critical_path(tasks)
        self.assertEqual(set(result.critical_ids), {"A", "B", "D"})
        self.assertEqual(result.floats["C"], 3)
        self.assertFalse(result.is_critical("C"))

    def test_multiple_terminal_tasks(self):
        """A short branch ending early is not critical."""
        tasks = self.build({"A": 2, "B": 6, "C": 1})
        tasks["B"].add_predecessor("A")
        tasks["C"].add_predecessor("A")

        result = calculate_critical_path(tasks)
        self.assertEqual(result.critical_ids, ["A", "B"])
        self.assertEqual(result.floats["C"], 5)

    def test_start_to_start(self):
        tasks = self.build({"A": 5, "B": 3})
        tasks["B"].add_predecessor("A", "SS", 2)

        result = calculate_critical_path(tasks)
        self.assertEqual(result.early_start["B"], 2)
        self.assertEqual(result.project_duration, 5)
        self.assertEqual(set(result.critical_ids), {"A", "B"})

    def test_finish_to_finish(self):
        tasks = self.build({"A": 5, "B": 2})
        tasks["B"].add_predecessor("A", "FF", 1)

        result = calculate_critical_path(tasks)
        self.assertEqual(result.early_finish["B"], 6)
        self.assertEqual(result.project_duration, 6)
        self.assertEqual(result.floats["A"], 0)

    def test_start_to_finish(self):
        tasks = self.build({"A": 3, "B": 2})
        tasks["B"].add_predecessor("A", "SF", 4)

        result = calculate_critical_path(tasks)
        self.assertEqual(result.early_start["B"], 2)
        self.assertEqual(result.early_finish["B"], 4)
        self.assertEqual(set(result.critical_ids), {"A", "B"})

    def test_lag_and_lead(self):
        tasks = self.build({"A": 2, "B": 2, "C": 1})
        tasks["B"].add_predecessor("A", "FS", 3)
        tasks["C"].add_predecessor("A", "SS", -5)

        result = calculate_critical_path(tasks)
        self.assertEqual(result.early_start["B"], 5)
        self.assertEqual(result.project_duration, 7)
        self.assertEqual(result.early_start["C"], 0)

    def test_milestone_takes_no_time(self):
        tasks = self.build({"A": 4})
        tasks["M"] = make_task("M", self.start, 1, milestone=True)
        tasks["M"].add_predecessor("A")

        result = calculate_critical_path(tasks)
        self.assertEqual(result.project_duration, 4)
        self.assertEqual(result.early_start["M"], 4)
        self.assertIn("M", result.critical_ids)

    def test_unknown_predecessor_ignored(self):
        tasks = self.build({"A": 2})
        tasks["A"].add_predecessor("ghost")
        result = calculate_critical_path(tasks)
        self.assertEqual(result.critical_ids, ["A"])

    def test_cycle_detected(self):
        tasks = self.build({"A": 1, "B": 1, "C": 1})
        tasks["B"].add_predecessor("A")
        tasks["C"].add_predecessor("B")
        tasks["A"].add_predecessor("C")

        with self.assertRaises(CyclicDependencyError) as ctx:
            calculate_critical_path(tasks)
        self.assertEqual(len(ctx.exception.cycle), 3)
        self.assertIsInstance(ctx.exception, ValueError)

    def test_long_chain(self):
        tasks = {}
        for i in range(5000):
            tasks[i] = make_task(i, self.start, 1)
            if i:
                tasks[i].add_predecessor(i - 1)
        result = calculate_critical_path(tasks)
        self.assertEqual(result.project_duration, 5000)
        self.assertEqual(len(result.critical_ids), 5000)

    def test_apply_and_clear(self):
        tasks = self.build({"A": 2, "B": 5, "C": 1})
        tasks["B"].add_predecessor("A")
        tasks["C"].add_predecessor("A")
        apply_critical_path(tasks, calculate_critical_path(tasks))
        self.assertTrue(tasks["B"].critical_path)
        self.assertFalse(tasks["C"].critical_path)
        self.assertEqual(tasks["C"].total_float, 4)

        clear_critical_path(tasks)
        self.assertFalse(tasks["B"].critical_path)
        self.assertIsNone(tasks["B"].total_float)

    def test_graph_edges_carry_type_and_lag(self):
        tasks = self.build({"A": 2, "B": 2})
        tasks["B"].add_predecessor("A", "FF", 2)
        G = build_dependency_graph(tasks)
        self.assertEqual(G.edges["A", "B"]["lag"], 2)
        self.assertEqual(G.edges["A", "B"]["type"].value, "finish_to_finish")


if __name__ == "__main__":
    unittest.main()

import unittest
from datetime import date

from sitesched.domain.task import Task
from sitesched.services.ranking import (
    MIN_RANK_GAP,
    column_tasks,
    place_in_column,
    renormalize,
)


class PlaceInColumnTestCase(unittest.TestCase):
    def test_between_siblings(self):
        rank, renormalized = place_in_column([1.0, 2.0], 1)
        self.assertTrue(1.0 < rank < 2.0)
        self.assertEqual(rank, 1.5)
        self.assertIsNone(renormalized)

    def test_at_end(self):
        rank, _ = place_in_column([1.0, 2.0, 3.0], None)
        self.assertGreater(rank, 3.0)
        rank, _ = place_in_column([1.0, 2.0, 3.0], 10)
        self.assertEqual(rank, 4.0)

    def test_at_start(self):
        rank, _ = place_in_column([1.0, 2.0], 0)
        self.assertLess(rank, 1.0)

    def test_empty_column(self):
        self.assertEqual(place_in_column([], 0), (1.0, None))

    def test_unsorted_input(self):
        rank, _ = place_in_column([3.0, 1.0, 2.0], 2)
        self.assertEqual(rank, 2.5)

    def test_repeated_insertion_renormalizes(self):
        low, high = 1.0, 2.0
        renormalized = None
        for _ in range(200):
            rank, renormalized = place_in_column([low, high], 1)
            if renormalized is not None:
                break
            self.assertTrue(low < rank < high)
            high = rank
        self.assertIsNotNone(renormalized)
        self.assertLess(high - low, MIN_RANK_GAP * 2)
        self.assertEqual(rank, 2.0)
        self.assertEqual(renormalized, [1.0, 3.0])


class ColumnTestCase(unittest.TestCase):
    def test_column_order(self):
        tasks = {}
        for task_id, rank in [("a", 2.0), ("b", 1.0), ("c", 3.0)]:
            tasks[task_id] = Task(task_id, task_id, date(2024, 6, 1))
            tasks[task_id].rank = rank
        tasks["c"].deleted = True
        tasks["d"] = Task("d", "d", date(2024, 6, 1), status="completed")

        column = column_tasks(tasks, "not_started")
        self.assertEqual([t.id for t in column], ["b", "a"])
        self.assertEqual([t.id for t in column_tasks(tasks, "not_started", exclude="b")], ["a"])

        renormalize(column)
        self.assertEqual([t.rank for t in column], [1.0, 2.0])


if __name__ == "__main__":
    unittest.main()

import asyncio
import unittest
from datetime import date

from sitesched.domain.task import Task
from sitesched.services.deletion import DeletionError, PendingDeletionRegistry


class PendingDeletionRegistryTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = {
            task_id: Task(task_id, f"Task {task_id}", date(2024, 6, 1))
            for task_id in ("A", "B", "C")
        }
        self.committed = []
        self.registry = PendingDeletionRegistry(
            self.store, self.committed.append, grace_seconds=0.02
        )

    async def asyncTearDown(self):
        self.registry.close()

    async def test_undo_restores_identical_task(self):
        task = self.store["A"]
        self.registry.delete("A")
        self.assertNotIn("A", self.store)
        self.assertIn("A", self.registry)

        self.assertTrue(self.registry.undo("A"))
        self.assertIs(self.store["A"], task)
        await asyncio.sleep(0.05)
        self.assertEqual(self.committed, [])
        self.assertFalse(self.registry.undo("A"))

    async def test_expiry_commits(self):
        self.registry.delete("B")
        await asyncio.sleep(0.05)
        await self.registry.flush()
        self.assertEqual(self.committed, ["B"])
        self.assertNotIn("B", self.store)
        self.assertEqual(len(self.registry), 0)

    async def test_pending_newest_first(self):
        registry = PendingDeletionRegistry(self.store, self.committed.append, 60)
        registry.delete("A")
        registry.delete("C")
        self.assertEqual([t.id for t in registry.pending()], ["C", "A"])
        registry.close()

    async def test_failed_commit_restores(self):
        async def commit(task_id):
            raise ConnectionError("delete failed")

        registry = PendingDeletionRegistry(self.store, commit, 60)
        registry.delete("A")
        with self.assertLogs("sitesched.services.deletion", level="ERROR"):
            await registry.flush()
        self.assertIn("A", self.store)

    async def test_flush_commits_now(self):
        registry = PendingDeletionRegistry(self.store, self.committed.append, 60)
        registry.delete("A")
        registry.delete("B")
        await registry.flush()
        self.assertEqual(sorted(self.committed), ["A", "B"])
        self.assertEqual(registry.pending(), [])

    async def test_close_drops_without_commit(self):
        self.registry.delete("A")
        self.registry.close()
        await asyncio.sleep(0.05)
        self.assertEqual(self.committed, [])
        self.assertNotIn("A", self.store)

    async def test_invalid_requests(self):
        with self.assertRaises(DeletionError):
            self.registry.delete("missing")
        self.registry.delete("A")
        with self.assertRaises(DeletionError):
            self.registry.delete("A")


if __name__ == "__main__":
    unittest.main()

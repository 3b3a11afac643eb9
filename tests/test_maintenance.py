"""
Tests for memory decay and deduplication.
"""
import shutil
import tempfile
import unittest
from datetime import timedelta

from nexi.memory import maintenance
from nexi.memory.models import MemoryRow, MemoryType
from nexi.memory.records import MemoryDraft, utcnow
from nexi.memory.store import MemoryStore


class MaintenanceTestCase(unittest.TestCase):

    def setUp(self):
        self.data_dir = tempfile.mkdtemp()
        self.store = MemoryStore(data_dir=self.data_dir)

    def tearDown(self):
        self.store.close()
        shutil.rmtree(self.data_dir, ignore_errors=True)

    def add(self, content, memory_type=MemoryType.FACT, importance=5, tags=None):
        return self.store.create(MemoryDraft(
            type=memory_type, content=content, importance=importance, tags=tags or [],
        ))

    def age(self, record, days, created_days=None):
        """Pretend a memory was last accessed ``days`` ago."""
        then = utcnow() - timedelta(days=days)
        created = utcnow() - timedelta(days=created_days if created_days is not None else days)

        def apply(session):
            row = session.get(MemoryRow, record.id)
            row.last_accessed = then
            row.created_at = created

        self.store.run(apply)

    def ids(self):
        return self.store.run(lambda session: {row.id for row in session.query(MemoryRow).all()})


class TestDecay(MaintenanceTestCase):
    """Forgetting stale, unimportant memories."""

    def test_removes_only_old_unimportant_unprotected(self):
        stale = self.add("Stale trivia", importance=2)
        important = self.add("Old but important", importance=8)
        fresh = self.add("Fresh trivia", importance=1)
        milestone = self.add("First conversation", memory_type=MemoryType.MILESTONE, importance=1)
        request = self.add("Call mom on Sunday", memory_type=MemoryType.REQUEST, importance=2)
        for record in (stale, important, milestone, request):
            self.age(record, 45)

        deleted = self.store.run(maintenance.decay)

        self.assertEqual(deleted, 1)
        self.assertEqual(self.ids(), {important.id, fresh.id, milestone.id, request.id})

    def test_boundary_importance_is_included(self):
        record = self.add("Borderline", importance=3)
        self.age(record, 31)

        self.assertEqual(self.store.run(lambda s: maintenance.decay(s, 30, 3)), 1)

    def test_custom_age(self):
        record = self.add("A week old", importance=1)
        self.age(record, 7)

        self.assertEqual(self.store.run(lambda s: maintenance.decay(s, max_age_days=30)), 0)
        self.assertEqual(self.store.run(lambda s: maintenance.decay(s, max_age_days=5)), 1)

    def test_decay_is_not_an_access(self):
        record = self.add("Recent", importance=1)
        self.store.run(maintenance.decay)
        self.assertEqual(self.store.read(record.id).access_count, 1)


class TestDeduplication(MaintenanceTestCase):
    """Finding and merging duplicates."""

    def test_find_duplicates_pairs_oldest_first(self):
        first = self.add("I love pizza")
        second = self.add("i LOVE pizza!")
        self.add("Works night shifts")
        self.age(first, 2)
        self.age(second, 1)

        pairs = self.store.run(maintenance.find_duplicates)

        self.assertEqual(len(pairs), 1)
        self.assertEqual((pairs[0].original_id, pairs[0].duplicate_id), (first.id, second.id))
        self.assertEqual(pairs[0].similarity, 1.0)

    def test_threshold(self):
        self.add("I love pizza")
        self.add("I really love pizza")

        self.assertEqual(self.store.run(lambda s: maintenance.find_duplicates(s, 0.8)), [])
        self.assertEqual(len(self.store.run(lambda s: maintenance.find_duplicates(s, 0.6))), 1)

    def test_near_duplicates_merge_below_default_threshold(self):
        first = self.add("I love pizza", tags=["food"])
        second = self.add("I really love pizza", tags=["fav"])
        self.age(first, 2)
        self.age(second, 1)

        self.assertEqual(self.store.run(maintenance.deduplicate), 0)
        pairs = self.store.run(lambda s: maintenance.find_duplicates(s, 0.6))
        self.assertAlmostEqual(pairs[0].similarity, 2 / 3)

        removed = self.store.run(lambda s: maintenance.deduplicate(s, 2 / 3))

        self.assertEqual(removed, 1)
        self.assertIsNone(self.store.read(second.id))
        self.assertEqual(set(self.store.read(first.id).tags), {"food", "fav"})

    def test_lower_importance_loses_and_tags_merge(self):
        keeper = self.add("Favorite color is blue", importance=8, tags=["color", "prefs"])
        loser = self.add("favorite color is BLUE", importance=4, tags=["prefs", "blue"])
        self.age(keeper, 2)
        self.age(loser, 1)

        removed = self.store.run(maintenance.deduplicate)

        self.assertEqual(removed, 1)
        self.assertIsNone(self.store.read(loser.id))
        self.assertEqual(self.store.read(keeper.id).tags, ["color", "prefs", "blue"])

    def test_older_record_can_lose(self):
        older = self.add("Lives in Lisbon", importance=3, tags=["home"])
        newer = self.add("Lives in Lisbon", importance=6)
        self.age(older, 2)
        self.age(newer, 1)

        self.store.run(maintenance.deduplicate)

        self.assertIsNone(self.store.read(older.id))
        self.assertEqual(self.store.read(newer.id).tags, ["home"])

    def test_tie_removes_later_record(self):
        first = self.add("Drinks green tea", importance=5)
        second = self.add("Drinks green tea", importance=5)
        self.age(first, 2)
        self.age(second, 1)

        self.store.run(maintenance.deduplicate)

        self.assertEqual(self.ids(), {first.id})

    def test_chain_of_duplicates(self):
        records = [self.add("Plays chess online", importance=5) for _ in range(3)]
        for days, record in zip((3, 2, 1), records):
            self.age(record, days)

        removed = self.store.run(maintenance.deduplicate)

        self.assertEqual(removed, 2)
        self.assertEqual(self.ids(), {records[0].id})

    def test_nothing_to_merge(self):
        self.add("Likes cats")
        self.add("Plays the violin")
        self.assertEqual(self.store.run(maintenance.deduplicate), 0)

    def test_merge_tags(self):
        self.assertEqual(maintenance.merge_tags(["a", "b"], ["b", "c", "a"]), ["a", "b", "c"])
        self.assertEqual(maintenance.merge_tags([], []), [])


if __name__ == '__main__':
    unittest.main()

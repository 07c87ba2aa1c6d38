import random
import unittest

from reorganize_library.topk import TopKFileTracker


class TestTopKFileTracker(unittest.TestCase):
    def test_keeps_largest_in_order(self):
        tracker = TopKFileTracker(3)
        for size, name in [(10, "a"), (50, "b"), (5, "c"), (40, "d"), (70, "e")]:
            tracker.observe(size, name)
        self.assertEqual(tracker.result(), ["e", "b", "d"])
        self.assertEqual(len(tracker), 3)

    def test_fewer_than_k(self):
        tracker = TopKFileTracker(5)
        tracker.observe(1, "small")
        tracker.observe(2, "big")
        self.assertEqual(tracker.result(), ["big", "small"])

    def test_ties_prefer_earlier_observation(self):
        tracker = TopKFileTracker(2)
        for name in ["first", "second", "third"]:
            tracker.observe(100, name)
        self.assertEqual(tracker.result(), ["first", "second"])

    def test_zero_k(self):
        tracker = TopKFileTracker(0)
        tracker.observe(100, "x")
        self.assertEqual(tracker.result(), [])

    def test_matches_full_sort(self):
        rng = random.Random(42)
        items = [(rng.randint(0, 1000), f"f{i}") for i in range(500)]
        tracker = TopKFileTracker(5)
        for size, name in items:
            tracker.observe(size, name)

        order = {name: i for i, (_, name) in enumerate(items)}
        expected = sorted(items, key=lambda t: (-t[0], order[t[1]]))[:5]
        self.assertEqual(tracker.result(), [name for _, name in expected])


if __name__ == "__main__":
    unittest.main()

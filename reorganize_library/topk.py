"""
Bounded tracker for the largest files seen during a directory walk.
"""

import heapq

DEFAULT_TOP_K = 5


class TopKFileTracker:
    """
    Keep the K largest (size, name) pairs seen so far.

    A min-heap of K items: the root is the weakest kept entry, so each
    observation costs O(log K). On equal size the earlier observation ranks
    higher, which keeps results stable across repeated scans.
    """

    def __init__(self, k: int = DEFAULT_TOP_K):
        self.k = k
        self._heap: list[tuple[int, int, str]] = []
        self._seq = 0

    def observe(self, size: int, name: str) -> None:
        # Heap key (size, -seq): among equal sizes, the latest observation is the weakest
        item = (size, -self._seq, name)
        self._seq += 1
        if self.k <= 0:
            return
        if len(self._heap) < self.k:
            heapq.heappush(self._heap, item)
        elif item[:2] > self._heap[0][:2]:
            heapq.heapreplace(self._heap, item)

    def result(self) -> list[str]:
        """Names ordered largest first, ties by observation order."""
        return [name for _, _, name in sorted(self._heap, key=lambda t: (t[0], t[1]), reverse=True)]

    def __len__(self) -> int:
        return len(self._heap)

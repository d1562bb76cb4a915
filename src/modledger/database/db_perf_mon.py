"""
Performance monitoring for case ledger queries.

Tracks execution times per query name and logs slow queries.
"""

import time
from contextlib import contextmanager
from typing import Dict, Iterator
from modledger.util.logger import get_logger

logger = get_logger("database_perf_mon")


class DatabasePerformanceMonitor:
    """
    Records execution times for each query name and reports count, average,
    min and max.
    """

    def __init__(self, slow_query_threshold_ms: float = 100.0):
        self._query_stats: Dict[str, Dict[str, float]] = {}
        self._slow_query_threshold = slow_query_threshold_ms / 1000.0

    def track(self, query_name: str, duration: float) -> None:
        """
        Record one execution of ``query_name`` that took ``duration`` seconds.
        """
        stats = self._query_stats.setdefault(query_name, {
            'count': 0,
            'total_time': 0.0,
            'min_time': float('inf'),
            'max_time': 0.0,
        })
        stats['count'] += 1
        stats['total_time'] += duration
        stats['min_time'] = min(stats['min_time'], duration)
        stats['max_time'] = max(stats['max_time'], duration)

        if duration > self._slow_query_threshold:
            logger.warning(
                "[PERFORMANCE] Slow query: %s took %.2fms",
                query_name, duration * 1000
            )

    @contextmanager
    def timed(self, query_name: str) -> Iterator[None]:
        """Context manager that tracks the time spent inside its body."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.track(query_name, time.perf_counter() - start)

    def get_statistics(self) -> Dict[str, Dict[str, float]]:
        """
        Return per-query statistics with times in milliseconds.
        """
        result = {}
        for query_name, stats in self._query_stats.items():
            count = stats['count']
            result[query_name] = {
                'count': count,
                'avg_ms': (stats['total_time'] / count) * 1000 if count else 0.0,
                'min_ms': stats['min_time'] * 1000 if count else 0.0,
                'max_ms': stats['max_time'] * 1000,
                'total_ms': stats['total_time'] * 1000,
            }
        return result

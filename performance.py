"""
Request timing: per-name aggregates plus a bounded buffer of slow samples.
"""
import logging
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    def __init__(self, slow_threshold_ms: float = 1000, max_slow_samples: int = 100):
        self.slow_threshold_ms = slow_threshold_ms
        self.metrics: Dict[str, Dict[str, float]] = {}
        self.slow_samples = deque(maxlen=max_slow_samples)

    def start(self) -> float:
        return time.perf_counter()

    def record(self, name: str, started: float) -> float:
        duration = (time.perf_counter() - started) * 1000
        return self.observe(name, duration)

    def observe(self, name: str, duration_ms: float) -> float:
        metric = self.metrics.setdefault(name, {
            "count": 0, "totalTime": 0.0, "avgTime": 0.0,
            "minTime": float("inf"), "maxTime": 0.0,
        })
        metric["count"] += 1
        metric["totalTime"] += duration_ms
        metric["avgTime"] = metric["totalTime"] / metric["count"]
        metric["minTime"] = min(metric["minTime"], duration_ms)
        metric["maxTime"] = max(metric["maxTime"], duration_ms)

        if duration_ms > self.slow_threshold_ms:
            self.slow_samples.append({
                "name": name,
                "duration": duration_ms,
                "timestamp": datetime.now(timezone.utc),
            })
            logger.warning("Slow request: %s took %.2fms", name, duration_ms)
        return duration_ms

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {k: (round(v, 2) if isinstance(v, float) else v) for k, v in data.items()}
            for name, data in self.metrics.items()
        }

    def get_slow_samples(self, limit: int = 10) -> List[Dict[str, Any]]:
        return sorted(self.slow_samples, key=lambda s: s["duration"], reverse=True)[:limit]

    def reset(self) -> None:
        self.metrics.clear()
        self.slow_samples.clear()

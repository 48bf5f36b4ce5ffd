"""
Metrics Collection for the messaging API.

In-process counters; each worker process keeps its own.
"""

import threading
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict


class MetricsCollector:
    """Collects and manages messaging metrics."""

    def __init__(self):
        """Initialize metrics collector."""
        self.metrics = defaultdict(int)
        self.lock = threading.Lock()

        # Initialize counters
        self.metrics["messages_sent_total"] = 0
        self.metrics["send_forbidden_total"] = 0
        self.metrics["read_marks_total"] = 0
        self.metrics["moderation_actions_total"] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric."""
        with self.lock:
            self.metrics[metric_name] += value

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timestamp": datetime.utcnow().isoformat()
            }

    def message_sent(self):
        self.increment_counter("messages_sent_total")

    def send_forbidden(self):
        self.increment_counter("send_forbidden_total")

    def read_marked(self):
        self.increment_counter("read_marks_total")

    def moderation_action(self):
        self.increment_counter("moderation_actions_total")


# Global metrics instance
metrics_collector = MetricsCollector()

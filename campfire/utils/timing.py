"""Elapsed-time logging for bulk resolution runs."""
import time
from typing import Optional
from campfire.utils.logging import log_structured


class RunTimer:
    """
    Context manager that logs how long a batch of forest lookups took.

    Call `record(resolved)` once per forest; the closing log line carries
    the totals and the average time per forest.
    """

    def __init__(self, name: str):
        self.name = name
        self.start: Optional[float] = None
        self.elapsed = 0.0
        self.resolved = 0
        self.unresolved = 0

    @property
    def total(self) -> int:
        return self.resolved + self.unresolved

    def record(self, resolved: bool):
        if resolved:
            self.resolved += 1
        else:
            self.unresolved += 1

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - self.start
        log_structured(
            "info" if exc_type is None else "error",
            f"{self.name} finished",
            elapsed_seconds=round(self.elapsed, 3),
            forests=self.total,
            resolved=self.resolved,
            unresolved=self.unresolved,
            seconds_per_forest=round(self.elapsed / self.total, 3) if self.total else None,
        )
        return False

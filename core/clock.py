"""
Time source used for error timestamps, backup keys and the current year.
"""
import time
from datetime import datetime


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now()

    def epoch_millis(self) -> int:
        return int(time.time() * 1000)

    def current_year(self) -> int:
        return self.now().year

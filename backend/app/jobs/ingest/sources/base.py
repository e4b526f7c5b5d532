from abc import ABC, abstractmethod
from typing import Sequence

from app.delay_monitor.types import TrainRecord


class FeedSource(ABC):
    @abstractmethod
    def fetch_current_feed(self, timeout: float) -> Sequence[TrainRecord]:
        """
        Return the latest real-time snapshot. Must give up after `timeout` seconds
        and raise PollError on any fetch failure.
        """
        raise NotImplementedError

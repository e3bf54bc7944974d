"""Identifier and clock sources injected into the planner and ledger"""

import itertools
import threading
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional


class IdGenerator(ABC):
    """Produces identifiers for plans, results, grants and alerts"""

    @abstractmethod
    def new_id(self, prefix: str) -> str:
        pass


class UuidIdGenerator(IdGenerator):
    """Random identifiers, used outside tests"""

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{uuid.uuid4().hex[:12]}"


class SequentialIdGenerator(IdGenerator):
    """Deterministic per-prefix counters ("plan-1", "plan-2", ...)"""

    def __init__(self):
        self._counters: Dict[str, Iterator[int]] = defaultdict(lambda: itertools.count(1))
        self._lock = threading.Lock()

    def new_id(self, prefix: str) -> str:
        with self._lock:
            return f"{prefix}-{next(self._counters[prefix])}"


class Clock(ABC):
    """Source of the current time"""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    """Clock frozen at a given instant; `advance_to` moves it"""

    def __init__(self, instant: datetime):
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance_to(self, instant: datetime) -> None:
        self._instant = instant


def resolve_clock(clock: Optional[Clock]) -> Clock:
    return clock if clock is not None else SystemClock()


def resolve_id_generator(ids: Optional[IdGenerator]) -> IdGenerator:
    return ids if ids is not None else UuidIdGenerator()

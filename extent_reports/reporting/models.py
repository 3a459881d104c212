"""
Data models for test reporting.
"""

import itertools
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Mapping, Optional
from enum import Enum

from extent_reports.core.errors import InvalidTestState


class LogStatus(Enum):
    """Severity marker of a log event, and the derived status of a test."""
    PASS = "pass"
    FAIL = "fail"
    FATAL = "fatal"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SKIP = "skip"
    UNKNOWN = "unknown"


# Highest priority first; a test reports the worst status found in its subtree
STATUS_PRIORITY = [
    LogStatus.FATAL,
    LogStatus.FAIL,
    LogStatus.ERROR,
    LogStatus.WARNING,
    LogStatus.SKIP,
    LogStatus.PASS,
    LogStatus.INFO,
    LogStatus.UNKNOWN,
]


class RunState(Enum):
    """Lifecycle of a test."""
    RUNNING = "running"
    ENDED = "ended"


class SequenceAllocator:
    """Process-wide, strictly increasing sequence numbers."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            return next(self._counter)


_SEQUENCES = SequenceAllocator()


def next_sequence() -> int:
    return _SEQUENCES.next()


def parse_status(value) -> LogStatus:
    """Accept a LogStatus or its name/value in any case."""
    if isinstance(value, LogStatus):
        return value
    try:
        return LogStatus(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown log status: {value!r}") from None


def worst_status(statuses) -> LogStatus:
    """Return the highest-priority status in ``statuses`` (UNKNOWN if empty)."""
    present = set(statuses)
    for status in STATUS_PRIORITY:
        if status in present:
            return status
    return LogStatus.UNKNOWN


@dataclass(frozen=True)
class LogEvent:
    """A single log line attached to a test."""
    status: LogStatus
    details: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(eq=False)
class Test:
    """A unit of reported work.

    ``sequence`` is allocated on creation and never changes afterwards.
    Tests rebuilt from an existing artifact are created with
    ``sequence=None`` and numbered once by the engine that adopts them.
    """
    __test__ = False

    name: str
    description: str = ""
    is_child_node: bool = False
    sequence: Optional[int] = field(default_factory=next_sequence)
    uid: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: RunState = RunState.RUNNING
    started_at: datetime = field(default_factory=datetime.now)
    ended_at: Optional[datetime] = None
    logs: List[LogEvent] = field(default_factory=list)
    children: List["Test"] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    authors: List[str] = field(default_factory=list)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)
    _sealed: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("Test name must be a non-empty string")

    @property
    def has_ended(self) -> bool:
        return self.state == RunState.ENDED

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def status(self) -> LogStatus:
        """Worst status among this test's events and its children."""
        with self._lock:
            statuses = [event.status for event in self.logs]
            children = list(self.children)
        statuses.extend(child.status for child in children)
        return worst_status(statuses)

    def assign_sequence(self, sequence: int) -> None:
        if self.sequence is not None:
            raise InvalidTestState(f"Test '{self.name}' already has sequence {self.sequence}")
        self.sequence = sequence

    def end(self, when: Optional[datetime] = None) -> None:
        """Transition RUNNING -> ENDED. A second call raises InvalidTestState."""
        with self._lock:
            self._check_open()
            if self.state == RunState.ENDED:
                raise InvalidTestState(f"Test '{self.name}' has already ended")
            self.state = RunState.ENDED
            self.ended_at = when or datetime.now()

    def add_log(self, status: LogStatus, details: str, timestamp: Optional[datetime] = None) -> LogEvent:
        event = LogEvent(status=parse_status(status), details=str(details), timestamp=timestamp or datetime.now())
        with self._lock:
            self._check_open()
            self.logs.append(event)
        return event

    def add_child(self, child: "Test") -> "Test":
        if any(t is self for t in child.walk()):
            raise InvalidTestState(f"Test '{child.name}' cannot be nested under itself")
        if not child.is_child_node:
            raise InvalidTestState(f"Test '{child.name}' is top-level and cannot be nested")
        with self._lock:
            self._check_open()
            self.children.append(child)
        return child

    def add_labels(self, attribute: str, names) -> None:
        with self._lock:
            self._check_open()
            target = getattr(self, attribute)
            for name in names:
                name = str(name).strip()
                if name and name not in target:
                    target.append(name)

    def seal(self) -> None:
        """Forbid any further mutation of this test and its subtree."""
        for test in self.walk():
            with test._lock:
                test._sealed = True

    def walk(self) -> Iterator["Test"]:
        """Yield this test followed by all descendants, depth first."""
        yield self
        with self._lock:
            children = list(self.children)
        for child in children:
            yield from child.walk()

    def _check_open(self) -> None:
        if self._sealed:
            raise InvalidTestState(f"Test '{self.name}' belongs to a closed report")


class SystemInfo:
    """Environment key/value pairs; the last write for a key wins."""

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        self._entries: Dict[str, str] = {}
        if entries:
            self.update(entries)

    def set(self, key: str, value: str) -> None:
        self._entries[str(key)] = "" if value is None else str(value)

    def update(self, entries: Mapping[str, str]) -> None:
        for key, value in entries.items():
            self.set(key, value)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key) -> bool:
        return key in self._entries

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

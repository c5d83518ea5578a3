"""
Data models for logtags.

This module contains pure data structures with no business logic:
- Line / Interval: raw lines and closed-open index ranges (cache windows)
- TagRule variants: how a tag value is extracted from a line
- Operation variants: the steps a View applies to its lines
- Result containers handed back to the caller
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

__all__ = [
    'Line',
    'Interval',
    'CacheWindow',
    'TagValue',
    'Comparator',
    'RegexRule',
    'ScriptRule',
    'TagRule',
    'Tag',
    'Filter',
    'ScriptFilter',
    'Transform',
    'Distinct',
    'Group',
    'Count',
    'Take',
    'Operation',
    'TaggedLine',
    'TakeResult',
    'CountResult',
    'GroupResult',
    'ViewResult',
    'MessageResult',
    'Result',
]


# Closed variant of dynamic tag values: absent, string or number
TagValue = Union[None, str, int, float]


@dataclass(frozen=True)
class Line:
    """A raw log line and its zero-based index in the source file"""
    index: int
    text: str


@dataclass(frozen=True)
class Interval:
    """A closed-open interval [start, end) of line indices"""
    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid interval [{self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        return f"[{self.start}, {self.end})"

    def is_empty(self) -> bool:
        return self.start == self.end

    def contains(self, other: 'Interval') -> bool:
        """True when every index of `other` lies inside this interval"""
        return other.is_empty() or (
            self.missing_before(other).is_empty() and self.missing_after(other).is_empty()
        )

    def missing_before(self, other: 'Interval') -> 'Interval':
        """Part of `other` lying before this interval (empty if none)"""
        if other.start < self.start:
            return Interval(other.start, self.start)
        return Interval(self.start, self.start)

    def missing_after(self, other: 'Interval') -> 'Interval':
        """Part of `other` lying after this interval (empty if none)"""
        if other.end > self.end:
            return Interval(self.end, other.end)
        return Interval(self.end, self.end)

    def hull(self, other: 'Interval') -> 'Interval':
        """Smallest interval covering both, gaps included"""
        return Interval(min(self.start, other.start), max(self.end, other.end))

    def indices(self) -> range:
        return range(self.start, self.end)


# A LineStore's single materialized window is just an Interval
CacheWindow = Interval


class Comparator(Enum):
    """Comparison operators accepted by direct filters"""
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    GREATER_THAN = ">"
    LESS_THAN_EQUAL = "<="
    GREATER_THAN_EQUAL = ">="

    @classmethod
    def from_symbol(cls, symbol: str) -> 'Comparator':
        for comparator in cls:
            if comparator.value == symbol:
                return comparator
        raise ValueError(f"Unknown comparator: {symbol!r}")

    @property
    def is_ordering(self) -> bool:
        return self not in (Comparator.EQUAL, Comparator.NOT_EQUAL)


# --- Tag rules ---------------------------------------------------------------

@dataclass(frozen=True)
class RegexRule:
    """Tag value is a capture group of `pattern` (group 1 by default)"""
    pattern: str
    group: int = 1


@dataclass(frozen=True)
class ScriptRule:
    """Tag value is the result of a script evaluated per line"""
    source: str
    setup: Optional[str] = None


TagRule = Union[RegexRule, ScriptRule]


# --- Operations --------------------------------------------------------------

@dataclass(frozen=True)
class Tag:
    """Annotate lines with `name`; without a rule the whole line text is used"""
    name: str
    rule: Optional[TagRule] = None


@dataclass(frozen=True)
class Filter:
    """Keep lines whose tag value satisfies `comparator` against `value`"""
    tag: str
    comparator: Comparator
    value: str


@dataclass(frozen=True)
class ScriptFilter:
    """Keep lines for which the script returns a truthy value"""
    tag: str
    source: str
    setup: Optional[str] = None


@dataclass(frozen=True)
class Transform:
    """Replace a tag's value with the script's result"""
    tag: str
    source: str
    setup: Optional[str] = None


@dataclass(frozen=True)
class Distinct:
    tag: str


@dataclass(frozen=True)
class Group:
    tag: str


@dataclass(frozen=True)
class Count:
    tag: Optional[str] = None


@dataclass(frozen=True)
class Take:
    count: int

    def __post_init__(self):
        if self.count < 0:
            raise ValueError(f"take() needs a non-negative count, got {self.count}")


Operation = Union[Tag, Filter, ScriptFilter, Transform, Distinct, Group, Count, Take]


# --- Results -----------------------------------------------------------------

@dataclass
class TaggedLine:
    """A line together with the tags computed for it by one evaluation"""
    line: Line
    tags: Dict[str, TagValue] = field(default_factory=dict)

    @property
    def index(self) -> int:
        return self.line.index

    @property
    def text(self) -> str:
        return self.line.text


@dataclass
class TakeResult:
    """Ordered lines produced by a pipeline"""
    lines: List[TaggedLine]
    requested: Optional[int]
    window: Interval
    scanned_count: int
    execution_time: float

    @property
    def exhausted(self) -> bool:
        """True when the source ran out before `requested` lines were found"""
        return self.requested is not None and len(self.lines) < self.requested

    def __repr__(self):
        return (f"TakeResult(lines={len(self.lines)}, scanned={self.scanned_count}, "
                f"window={self.window}, time={self.execution_time:.4f}s)")


@dataclass
class CountResult:
    """Total count, or per-value counts when `tag` is set"""
    tag: Optional[str]
    total: int
    counts: Dict[TagValue, int]
    window: Interval
    execution_time: float


@dataclass
class GroupResult:
    """Lines bucketed by tag value, buckets in first-occurrence order"""
    tag: str
    groups: Dict[TagValue, List[TaggedLine]]
    window: Interval
    execution_time: float


@dataclass
class ViewResult:
    """A pipeline that only defined (and possibly named) a view"""
    names: Tuple[str, ...]
    operations: Tuple[Operation, ...]
    message: str


@dataclass
class MessageResult:
    """Outcome of commands that produce no lines (load, script)"""
    message: str


Result = Union[TakeResult, CountResult, GroupResult, ViewResult, MessageResult]

"""
LineStore: windowed lazy-load cache over a log file's lines

The store materializes lines on demand and keeps exactly one contiguous
CacheWindow [start, end). The window only grows: `start` moves toward 0,
`end` never decreases, and no gap is ever left inside it. Lines before
`start` have simply never been scanned.

Growth for a request anchored at 0 (`ensure_range(n)`):
- missing_before = [0, start)              backfilled whenever start > 0
- missing_after  = [end, max(end, n))      empty when n <= end
Both gaps are read in index order into temporary lists and merged only
after every read succeeded, so a failed read leaves the window untouched.
"""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from logtags.context.reading import LineReader
from logtags.exceptions import SourceExhausted, SourceUnavailable
from logtags.models import CacheWindow, Interval, Line, RegexRule, TagValue
from logtags.protocols import LineReaderProtocol

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Reads performed by a store, for debug output"""
    reads: List[Interval] = field(default_factory=list)
    lines_read: int = 0
    memo_hits: int = 0
    memo_misses: int = 0

    def record_read(self, interval: Interval, count: int):
        self.reads.append(interval)
        self.lines_read += count


class LineStore:
    """
    Growable, index-addressable range of raw lines backed by a file

    Args:
        path: Backing log file
        reader: Line reader to use instead of opening `path` directly
        memoize_tags: Remember regex tag values per line across evaluations
    """

    def __init__(self, path: Union[str, Path], reader: Optional[LineReaderProtocol] = None,
                 memoize_tags: bool = True):
        self.path = Path(path)
        self._reader = reader if reader is not None else LineReader(self.path)
        self._start = 0
        self._lines: List[Line] = []
        self.line_count: Optional[int] = None
        self.memoize_tags = memoize_tags
        self.stats = CacheStats()
        self._tag_memo: Dict[RegexRule, Dict[int, TagValue]] = {}

    def __repr__(self):
        return f"LineStore({str(self.path)!r}, window={self.window})"

    # --- window -----------------------------------------------------------

    @property
    def window(self) -> CacheWindow:
        return Interval(self._start, self._start + len(self._lines))

    @property
    def exhausted(self) -> bool:
        """True once the whole file is inside the window"""
        return self.line_count is not None and self.window.end >= self.line_count

    def gaps(self, n: int) -> Tuple[Interval, Interval]:
        """The (missing_before, missing_after) intervals `ensure_range(n)` would read"""
        window = self.window
        if window.is_empty():
            return Interval(0, 0), Interval(0, n)
        missing_before = Interval(0, window.start)
        missing_after = Interval(window.end, max(window.end, n))
        return missing_before, missing_after

    def ensure_range(self, n: int, strict: bool = False) -> CacheWindow:
        """
        Guarantee the first `n` lines are materialized

        Args:
            n: Number of lines wanted, counted from the start of the file
            strict: Raise SourceExhausted when the request grows the window
                but not a single new line could be read

        Returns:
            The window after the call, [0, max(end, n)) clipped to the file
        """
        previous = self.window
        window = self.materialize(Interval(0, n))
        if strict and n > previous.end and len(window) == len(previous):
            raise SourceExhausted(
                f"{self.path} has only {window.end} lines",
                operation='take',
                value=n,
            )
        return window

    def materialize(self, interval: Interval) -> CacheWindow:
        """
        Grow the window to cover `interval`

        An empty store adopts the interval as its window (leading lines are
        skipped, not cached). Otherwise the window becomes the hull of the
        window and the interval, so any gap between them is read as well.
        """
        window = self.window
        target = interval if window.is_empty() else window.hull(interval)
        if self.line_count is not None:
            target = Interval(min(target.start, self.line_count),
                              min(target.end, self.line_count))

        if window.contains(target) and not window.is_empty():
            return window
        if window.is_empty() and target.is_empty():
            return window

        if window.is_empty():
            missing_before = Interval(target.start, target.start)
            missing_after = target
        else:
            missing_before = window.missing_before(target)
            missing_after = window.missing_after(target)

        prefix = self._read(missing_before)
        if len(prefix) < len(missing_before):
            raise SourceUnavailable(
                f"{self.path} ended before line {missing_before.end}; was it truncated?",
                operation='read',
                value=str(missing_before),
            )
        suffix = self._read(missing_after)

        if window.is_empty():
            self._start = target.start
            self._lines = suffix
        else:
            self._start = missing_before.start if prefix else self._start
            self._lines = prefix + self._lines + suffix

        reader_count = getattr(self._reader, 'line_count', None)
        if len(suffix) < len(missing_after):
            self.line_count = reader_count if reader_count is not None else missing_after.start + len(suffix)
            if window.is_empty() and not suffix:
                self._start = min(self._start, self.line_count)

        logger.debug("%s window %s -> %s", self.path.name, window, self.window)
        return self.window

    def _read(self, interval: Interval) -> List[Line]:
        if interval.is_empty():
            return []
        texts = self._reader.read(interval)
        self.stats.record_read(interval, len(texts))
        return [Line(index, text) for index, text in zip(interval.indices(), texts)]

    # --- access -----------------------------------------------------------

    def lines(self, interval: Optional[Interval] = None) -> List[Line]:
        """Materialized lines inside `interval` (the whole window by default)"""
        if interval is None:
            return list(self._lines)
        start = max(interval.start, self._start) - self._start
        end = min(interval.end, self._start + len(self._lines)) - self._start
        if end <= start:
            return []
        return self._lines[start:end]

    def line(self, index: int) -> Line:
        if not self._start <= index < self._start + len(self._lines):
            raise IndexError(f"Line {index} is outside the cache window {self.window}")
        return self._lines[index - self._start]

    def memoized_tag(self, rule: RegexRule, line: Line,
                     compute: Callable[[Line], TagValue]) -> TagValue:
        """Regex tag value for `line`, computed at most once per store"""
        if not self.memoize_tags:
            return compute(line)
        column = self._tag_memo.setdefault(rule, {})
        if line.index in column:
            self.stats.memo_hits += 1
            return column[line.index]
        self.stats.memo_misses += 1
        value = compute(line)
        column[line.index] = value
        return value

    def cache_size(self) -> int:
        """Approximate bytes held by cached lines and memoized tags"""
        size = sys.getsizeof(self._lines) + sum(sys.getsizeof(l.text) for l in self._lines)
        for column in self._tag_memo.values():
            size += sys.getsizeof(column)
        return size

    def close(self):
        self._reader.close()

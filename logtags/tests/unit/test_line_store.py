"""
Unit tests for the windowed lazy-load line cache
"""

import pytest

from logtags.context.reading import LineReader
from logtags.exceptions import SourceExhausted, SourceUnavailable
from logtags.models import Interval, RegexRule
from logtags.protocols import LineReaderProtocol
from logtags.services.line_store import LineStore


class ListReader(LineReaderProtocol):
    """In-memory reader that records every interval it is asked for"""

    def __init__(self, count, fail_on=None):
        self.texts = [f"line {i}" for i in range(count)]
        self.requests = []
        self.fail_on = fail_on

    def read(self, interval):
        self.requests.append(interval)
        if self.fail_on is not None and interval.start <= self.fail_on < interval.end:
            raise SourceUnavailable("disk error", operation='read', value=str(interval))
        return self.texts[interval.start:interval.end]

    def close(self):
        pass


def make_store(count=100, **kwargs):
    reader = ListReader(count, **kwargs)
    return LineStore("memory.log", reader=reader), reader


class TestInterval:
    """Interval arithmetic used for cache gaps"""

    def test_gaps_around_window(self):
        window = Interval(4, 12)
        assert window.missing_before(Interval(0, 5)) == Interval(0, 4)
        assert window.missing_after(Interval(0, 5)).is_empty()
        assert window.missing_after(Interval(0, 15)) == Interval(12, 15)

    def test_hull_covers_gap(self):
        assert Interval(10, 12).hull(Interval(0, 3)) == Interval(0, 12)

    def test_rejects_reversed_bounds(self):
        with pytest.raises(ValueError):
            Interval(5, 2)

    def test_str(self):
        assert str(Interval(0, 12)) == "[0, 12)"


class TestEnsureRange:
    """ensure_range(n) growth scenarios"""

    def test_backfill_when_request_inside_window(self):
        store, reader = make_store()
        store.materialize(Interval(4, 12))
        assert store.window == Interval(4, 12)

        assert store.gaps(5) == (Interval(0, 4), Interval(12, 12))
        window = store.ensure_range(5)

        assert window == Interval(0, 12)
        assert reader.requests[-1] == Interval(0, 4)

    def test_backfill_and_extend(self):
        store, reader = make_store()
        store.materialize(Interval(4, 12))

        assert store.gaps(15) == (Interval(0, 4), Interval(12, 15))
        window = store.ensure_range(15)

        assert window == Interval(0, 15)
        assert reader.requests[-2:] == [Interval(0, 4), Interval(12, 15)]

    def test_empty_store(self):
        store, reader = make_store()
        assert store.window.is_empty()

        before, after = store.gaps(1)
        assert before.is_empty()
        assert after == Interval(0, 1)
        assert store.ensure_range(1) == Interval(0, 1)

    def test_lines_keep_their_indices(self):
        store, _ = make_store()
        store.materialize(Interval(4, 12))
        store.ensure_range(15)

        lines = store.lines()
        assert [line.index for line in lines] == list(range(15))
        assert all(line.text == f"line {line.index}" for line in lines)

    def test_cached_lines_never_change(self):
        store, _ = make_store()
        store.ensure_range(10)
        before = store.lines()

        store.ensure_range(40)

        assert store.lines(Interval(0, 10)) == before

    def test_idempotent(self):
        store, reader = make_store()
        store.ensure_range(20)
        reads = len(reader.requests)

        store.ensure_range(20)
        store.ensure_range(5)

        assert len(reader.requests) == reads
        assert store.window == Interval(0, 20)

    def test_window_only_grows(self):
        store, _ = make_store()
        previous = store.window
        for n in (3, 1, 17, 9, 40, 40, 2):
            window = store.ensure_range(n)
            assert window.start <= max(previous.start, 0)
            assert window.end >= previous.end
            previous = window


class TestExhaustion:
    """Behaviour when the file is shorter than the request"""

    def test_short_file_returns_fewer_lines(self):
        store, _ = make_store(count=7)

        window = store.ensure_range(10)

        assert window == Interval(0, 7)
        assert store.line_count == 7
        assert store.exhausted

    def test_strict_raises_when_nothing_new(self):
        store, _ = make_store(count=7)
        store.ensure_range(10)

        with pytest.raises(SourceExhausted):
            store.ensure_range(12, strict=True)

    def test_strict_passes_when_some_lines_arrive(self):
        store, _ = make_store(count=7)
        store.ensure_range(5)

        assert store.ensure_range(10, strict=True) == Interval(0, 7)

    def test_strict_passes_when_only_backfilled(self):
        store, reader = make_store(count=12)
        store.materialize(Interval(4, 12))

        assert store.ensure_range(15, strict=True) == Interval(0, 12)
        assert reader.requests[-2:] == [Interval(0, 4), Interval(12, 15)]

    def test_strict_allows_non_growing_request(self):
        store, _ = make_store(count=7)
        store.ensure_range(10)

        assert store.ensure_range(3, strict=True) == Interval(0, 7)

    def test_known_length_skips_reads(self):
        store, reader = make_store(count=7)
        store.ensure_range(10)
        reads = len(reader.requests)

        store.ensure_range(50)

        assert len(reader.requests) == reads


class TestAtomicity:
    """A failed read must not advance the window"""

    def test_failed_suffix_read_leaves_window(self):
        store, _ = make_store(fail_on=30)
        store.ensure_range(10)

        with pytest.raises(SourceUnavailable):
            store.ensure_range(40)

        assert store.window == Interval(0, 10)
        assert len(store.lines()) == 10

    def test_failed_backfill_leaves_window(self):
        store, _ = make_store(fail_on=2)
        store.materialize(Interval(4, 12))

        with pytest.raises(SourceUnavailable):
            store.ensure_range(15)

        assert store.window == Interval(4, 12)


class TestTagMemo:
    """Regex tag values are computed once per store"""

    def test_memo_hits(self):
        store, _ = make_store()
        store.ensure_range(3)
        rule = RegexRule(r"line (\d+)")
        calls = []

        def compute(line):
            calls.append(line.index)
            return line.text.split()[1]

        for _ in range(2):
            values = [store.memoized_tag(rule, line, compute) for line in store.lines()]

        assert values == ["0", "1", "2"]
        assert calls == [0, 1, 2]
        assert store.stats.memo_hits == 3
        assert store.stats.memo_misses == 3

    def test_memo_disabled(self):
        reader = ListReader(5)
        store = LineStore("memory.log", reader=reader, memoize_tags=False)
        store.ensure_range(2)
        calls = []

        for _ in range(2):
            for line in store.lines():
                store.memoized_tag(RegexRule("x"), line, lambda l: calls.append(l.index))

        assert calls == [0, 1, 0, 1]


class TestFileBacked:
    """LineStore over real files through LineReader"""

    def test_reads_apache_log(self, apache_log, apache_lines):
        store = LineStore(apache_log)
        try:
            store.ensure_range(3)
            assert [line.text for line in store.lines()] == apache_lines[:3]
            assert store.stats.reads == [Interval(0, 3)]
        finally:
            store.close()

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceUnavailable) as excinfo:
            LineStore(tmp_path / "nope.log")
        assert excinfo.value.operation == 'load'

    def test_empty_file(self, test_data_dir):
        store = LineStore(test_data_dir / "empty.log")
        try:
            assert store.ensure_range(5) == Interval(0, 0)
            assert store.line_count == 0
            with pytest.raises(SourceExhausted):
                store.ensure_range(5, strict=True)
        finally:
            store.close()

    def test_crlf_and_missing_final_newline(self, test_data_dir):
        with LineReader(test_data_dir / "crlf.log") as reader:
            assert reader.read(Interval(0, 10)) == ["first", "second", "third"]
            assert reader.line_count == 3

    def test_reader_rewinds_for_backfill(self, numbers_log):
        with LineReader(numbers_log) as reader:
            assert reader.read(Interval(10, 12)) == ["line 10 value=3", "line 11 value=4"]
            assert reader.read(Interval(0, 1)) == ["line 0 value=0"]

    def test_store_backfill_from_file(self, numbers_log):
        store = LineStore(numbers_log)
        try:
            store.materialize(Interval(500, 510))
            store.ensure_range(5)
            assert store.window == Interval(0, 510)
            assert store.line(250).text == "line 250 value=5"
        finally:
            store.close()

"""
Reading: sequential access to the backing log file.

Lines are read strictly in index order from the start of the file. There is
no line-indexed seek; going backwards rewinds the handle to byte 0 and skips
forward, which only happens when a cache window is backfilled.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from logtags.exceptions import SourceUnavailable
from logtags.models import Interval
from logtags.protocols import LineReaderProtocol

__all__ = ['LineReader']

logger = logging.getLogger(__name__)


class LineReader(LineReaderProtocol):
    """
    Sequential reader over a line-oriented file

    Only b'\\n' separates lines; a trailing '\\r' is stripped so CRLF files
    read the same as LF files. Undecodable bytes are replaced, never fatal.
    """

    def __init__(self, path: Union[str, Path], encoding: str = 'utf-8'):
        self.path = Path(path)
        self.encoding = encoding
        self.line_count: Optional[int] = None  # known once EOF has been seen
        self._index = 0  # index of the next line the handle yields
        self._handle = None
        self._open()

    def _open(self):
        try:
            self._handle = open(self.path, 'rb')
        except OSError as e:
            raise SourceUnavailable(
                f"Cannot open {self.path}: {e.strerror or e}",
                operation='load',
                value=str(self.path),
            ) from e

    def _decode(self, raw: bytes) -> str:
        text = raw.decode(self.encoding, errors='replace')
        if text.endswith('\n'):
            text = text[:-1]
        if text.endswith('\r'):
            text = text[:-1]
        return text

    def _rewind(self):
        logger.debug("Rewinding %s from line %d", self.path, self._index)
        self._handle.seek(0)
        self._index = 0

    def _readline(self) -> Optional[bytes]:
        raw = self._handle.readline()
        if not raw:
            self.line_count = self._index
            return None
        self._index += 1
        return raw

    def read(self, interval: Interval) -> List[str]:
        """
        Read the lines of `interval`, skipping (not keeping) earlier lines

        Args:
            interval: Closed-open range of line indices

        Returns:
            Decoded lines without their terminators; fewer than requested
            when the file ends inside the interval
        """
        if interval.is_empty():
            return []
        if self._handle is None:
            self._open()

        try:
            if interval.start < self._index:
                self._rewind()

            while self._index < interval.start:
                if self._readline() is None:
                    return []

            lines = []
            for _ in interval.indices():
                raw = self._readline()
                if raw is None:
                    break
                lines.append(self._decode(raw))
            return lines
        except OSError as e:
            raise SourceUnavailable(
                f"Failed reading {self.path}: {e.strerror or e}",
                operation='read',
                value=str(interval),
            ) from e

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            self._index = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self):
        return f"LineReader({str(self.path)!r}, position={self._index})"

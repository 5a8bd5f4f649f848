"""
Line Cursor Module

This module contains the LineCursor class, a forward-only line reader over a
text stream with a single-level mark/rewind used for one-line lookahead.
"""

from typing import Iterator, List, Optional, TextIO

from .exceptions import CursorError, TruncatedInputError


class LineCursor:
    """
    Forward line reader with a single rewindable mark.

    Lines read after ``mark()`` are remembered; ``rewind()`` pushes them back
    so the next ``readline()`` returns them again. The underlying stream is
    never seeked.

    Attributes
    ----------
    line_number : int
        1-based number of the last line returned (0 before the first read)
    """

    def __init__(self, stream: TextIO):
        self._stream = stream
        self._pushback: List[str] = []
        self._since_mark: Optional[List[str]] = None
        self.line_number = 0

    def readline(self) -> Optional[str]:
        """Return the next line without its newline, or None at end of stream."""
        if self._pushback:
            line = self._pushback.pop(0)
        else:
            raw = self._stream.readline()
            if raw == '':
                return None
            line = raw.rstrip('\r\n')

        self.line_number += 1
        if self._since_mark is not None:
            self._since_mark.append(line)
        return line

    def require_line(self, context: str) -> str:
        """Return the next line, raising TruncatedInputError at end of stream."""
        line = self.readline()
        if line is None:
            raise TruncatedInputError(
                f"unexpected end of file while reading {context}",
                self.line_number,
            )
        return line

    def mark(self) -> None:
        """Remember the current position, replacing any previous mark."""
        self._since_mark = []

    def rewind(self) -> None:
        """Return to the most recent mark."""
        if self._since_mark is None:
            raise CursorError("rewind() called without a preceding mark()")
        self._pushback = self._since_mark + self._pushback
        self.line_number -= len(self._since_mark)
        self._since_mark = None

    def peek(self) -> Optional[str]:
        """Return the next line without consuming it."""
        self.mark()
        line = self.readline()
        self.rewind()
        return line

    def __iter__(self) -> Iterator[str]:
        while True:
            line = self.readline()
            if line is None:
                return
            yield line

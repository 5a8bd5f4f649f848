"""
Exceptions Module

Error taxonomy for CRYSTAL output parsing. Every error aborts the parse;
no partial SystemInfo is ever returned.
"""

from typing import Optional


class CrystalParseError(ValueError):
    """Base class for errors raised while parsing a CRYSTAL output file."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class SectionOrderError(CrystalParseError):
    """A section was reached before the state it depends on was parsed."""


class LineFormatError(CrystalParseError):
    """A line does not tokenize into the expected shape."""

    def __init__(self, expected: str, line: str, line_number: Optional[int] = None):
        self.expected = expected
        self.line = line
        actual = f"{len(line.split())} token(s): {line.strip()!r}"
        super().__init__(f"expected {expected}, got {actual}", line_number)


class TruncatedInputError(CrystalParseError):
    """The stream ended in the middle of a section."""


class IncompleteMatrixError(CrystalParseError):
    """A dense matrix reached its final entry with other entries unwritten."""


class CellAlignmentError(CrystalParseError):
    """Overlap and Fock stacks no longer refer to the same unit cells."""


class MissingSectionError(CrystalParseError):
    """A section required to build the system record never appeared."""


class UnsupportedModeError(CrystalParseError):
    """The calculation mode is recognised but cannot be assembled."""


class CursorError(RuntimeError):
    """Misuse of the line cursor (rewind without a mark)."""

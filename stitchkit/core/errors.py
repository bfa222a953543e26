"""
Exception hierarchy for stitchkit.

Every error raised for bad pattern data, bad colors, or malformed binary
input derives from StitchkitError. Value-shaped failures also derive from
ValueError so callers that already guard with ``except ValueError`` keep
working. Argument errors that are not about pattern data (a threshold out of
range, a non-positive limit in a settings object) are raised as plain
ValueError by the function that rejects them.
"""

from __future__ import annotations

from typing import Optional


class StitchkitError(Exception):
    """Base class for all stitchkit errors.

    Attributes:
        detail: Human-readable description of the failure.
        index: Position of the offending stitch, when the failure is tied to one.
        offset: Byte offset into the input, when decoding binary data.
    """

    def __init__(
        self,
        detail: str,
        *,
        index: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> None:
        location = ""
        if index is not None:
            location = f" (stitch {index})"
        elif offset is not None:
            location = f" (offset {offset})"
        super().__init__(f"{detail}{location}")
        self.detail = detail
        self.index = index
        self.offset = offset


class InvalidColorError(StitchkitError, ValueError):
    """A color string could not be parsed."""


class InvalidPatternError(StitchkitError, ValueError):
    """A pattern violates a structural invariant."""


class RangeExceededError(StitchkitError, ValueError):
    """A value does not fit the encoding it is being written to."""


class TruncatedDataError(StitchkitError, ValueError):
    """Binary input ended before a complete value could be read."""


class CorruptDataError(StitchkitError, ValueError):
    """Binary input is internally inconsistent."""


class SingularMatrixError(StitchkitError, ValueError):
    """An affine transform has no inverse."""


class UnsupportedFormatError(StitchkitError, KeyError):
    """No format is registered under the requested name or extension."""

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return self.args[0] if self.args else ""

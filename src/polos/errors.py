"""
Exception hierarchy for the Polos package.

Every error raised through the query facade derives from ``QueryError``, so a
caller can handle "the query failed" in one place while still being able to
tell a malformed file from a coverage gap.  Several classes also derive from
the closest builtin exception (``ValueError``, ``IndexError``,
``LookupError``) so generic handlers keep working.

Hierarchy
---------
QueryError
    FormatError (ValueError)
        BadMagic
        Truncated
        OutOfRange (IndexError)
        UnsupportedSegmentType
    CoverageError (LookupError)
        NoCoverage
        MissingConstants
    InterpError (ArithmeticError)
        EpochOutOfWindow
        DegenerateWindow
    GraphError
        NoPath
        UnknownFrame
        UnknownBody
    TimeError (ValueError)
        UnknownLeapSecondEra
    AberrationDidNotConverge
"""


class QueryError(Exception):
    """Base class of every error surfaced by the kernel engine."""


# ========== BINARY CONTAINER AND CATALOG ==========
class FormatError(QueryError, ValueError):
    """Malformed or unsupported binary structure."""

    def __init__(self, message, source=None):
        super().__init__(message)
        self.source = source


class BadMagic(FormatError):
    """File identification word or header fields are not a DAF file record."""


class Truncated(FormatError):
    """Buffer is shorter than the records the file record declares."""

    def __init__(self, message, source=None, expected=None, actual=None):
        super().__init__(message, source)
        self.expected = expected
        self.actual = actual


class OutOfRange(FormatError, IndexError):
    """Record number or address outside the kernel buffer."""


class UnsupportedSegmentType(FormatError):
    """Segment data type code that the interpolation engine does not handle."""

    def __init__(self, message, source=None, type_code=None):
        super().__init__(message, source)
        self.type_code = type_code


# ========== LOOKUP ==========
class CoverageError(QueryError, LookupError):
    """No loaded data satisfies the request."""


class NoCoverage(CoverageError):
    """No segment covers the requested epoch for the requested body pair."""

    def __init__(self, message, target=None, center=None, epoch=None):
        super().__init__(message)
        self.target = target
        self.center = center
        self.epoch = epoch


class MissingConstants(CoverageError):
    """Body has no gravitational parameter or shape registered."""

    def __init__(self, message, body=None):
        super().__init__(message)
        self.body = body


# ========== INTERPOLATION ==========
class InterpError(QueryError, ArithmeticError):
    """Numerical evaluation failure."""


class EpochOutOfWindow(InterpError):
    """Epoch lies outside the coverage of the segment being evaluated."""


class DegenerateWindow(InterpError):
    """Interpolation window with zero width or repeated abscissae."""


# ========== FRAMES ==========
class GraphError(QueryError):
    """Frame or ephemeris tree cannot connect the requested nodes."""


class NoPath(GraphError):
    """No common ancestor between the two nodes."""

    def __init__(self, message, from_node=None, to_node=None):
        super().__init__(message)
        self.from_node = from_node
        self.to_node = to_node


class UnknownFrame(GraphError, KeyError):
    """Frame name or id not registered."""

    def __str__(self):
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class UnknownBody(GraphError, KeyError):
    """Body name not registered."""

    def __str__(self):
        return str(self.args[0]) if self.args else ""


# ========== TIME ==========
class TimeError(QueryError, ValueError):
    """Time conversion failure."""


class UnknownLeapSecondEra(TimeError):
    """Epoch predates or postdates the loaded leap-second table."""


# ========== FACADE ==========
class AberrationDidNotConverge(QueryError):
    """Light-time fixed-point iteration exceeded its iteration limit."""

    def __init__(self, message, iterations=None, light_time=None):
        super().__init__(message)
        self.iterations = iterations
        self.light_time = light_time

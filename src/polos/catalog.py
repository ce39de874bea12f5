'''Segment catalog for DAF kernels
SegmentType, SegmentDescriptor and SegmentCatalog class definitions

The summary chain of a kernel is decoded once into an arena of immutable
descriptors plus sorted per-key lookup vectors, so a query never walks the
file structure.'''

import logging
from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .container import KernelFile, Summary
from .epoch import Epoch
from .errors import (FormatError, NoCoverage, OutOfRange,
                     UnsupportedSegmentType)
from .utils import validation_error

logger = logging.getLogger(__name__)

# Type 9/13 segments keep every 100th epoch in a directory
EPOCH_DIRECTORY_STRIDE = 100
STATE_SIZE = 6


# define the kernel kinds the catalog understands
class KernelKind(Enum):
    SPK = 'SPK'     # trajectories: target relative to center
    PCK = 'PCK'     # orientation: body-fixed frame relative to inertial frame

    @property
    def summary_format(self) -> Tuple[int, int]:
        """(ND, NI) required for this kind."""
        return (2, 6) if self is KernelKind.SPK else (2, 5)


class InterpolationFamily(Enum):
    CHEBYSHEV = 'chebyshev'
    LAGRANGE = 'lagrange'
    HERMITE = 'hermite'


# define the closed set of supported segment types
class SegmentType(Enum):
    CHEBYSHEV_POSITION = (KernelKind.SPK, 2)      # position coefficients
    CHEBYSHEV_STATE = (KernelKind.SPK, 3)         # position and velocity coefficients
    LAGRANGE_EQUAL = (KernelKind.SPK, 8)          # states, fixed step
    LAGRANGE_UNEQUAL = (KernelKind.SPK, 9)        # states, epoch table
    HERMITE_EQUAL = (KernelKind.SPK, 12)          # states, fixed step
    HERMITE_UNEQUAL = (KernelKind.SPK, 13)        # states, epoch table
    CHEBYSHEV_ANGLES = (KernelKind.PCK, 2)        # Euler angle coefficients
    CHEBYSHEV_ANGLES_RATES = (KernelKind.PCK, 3)  # angle and rate coefficients

    @property
    def kind(self) -> KernelKind:
        return self.value[0]

    @property
    def code(self) -> int:
        return self.value[1]

    @property
    def family(self) -> InterpolationFamily:
        return _FAMILIES[self]

    @property
    def is_orientation(self) -> bool:
        return self.kind is KernelKind.PCK

    @classmethod
    def from_code(cls, kind: KernelKind, code: int, source=None) -> 'SegmentType':
        """
        Classify a summary type code.

        Raises
        ------
        UnsupportedSegmentType
            If the (kind, code) pair is not one of the supported types
        """
        try:
            return cls((kind, int(code)))
        except ValueError:
            raise UnsupportedSegmentType(
                f"{kind.value} segment type {code} is not supported. Supported: "
                f"{sorted(t.code for t in cls if t.kind is kind)}",
                source, type_code=code) from None


_FAMILIES = {
    SegmentType.CHEBYSHEV_POSITION: InterpolationFamily.CHEBYSHEV,
    SegmentType.CHEBYSHEV_STATE: InterpolationFamily.CHEBYSHEV,
    SegmentType.LAGRANGE_EQUAL: InterpolationFamily.LAGRANGE,
    SegmentType.LAGRANGE_UNEQUAL: InterpolationFamily.LAGRANGE,
    SegmentType.HERMITE_EQUAL: InterpolationFamily.HERMITE,
    SegmentType.HERMITE_UNEQUAL: InterpolationFamily.HERMITE,
    SegmentType.CHEBYSHEV_ANGLES: InterpolationFamily.CHEBYSHEV,
    SegmentType.CHEBYSHEV_ANGLES_RATES: InterpolationFamily.CHEBYSHEV,
}


# ========== SEGMENT LAYOUTS ==========
@dataclass(frozen=True)
class ChebyshevLayout:
    """
    Directory of a fixed-length Chebyshev record segment.

    Attributes
    ----------
    init : float
        Start of the first record's interval [s TDB]
    interval_length : float
        Length of each record's interval [s]
    record_size : int
        Doubles per record (MID, RADIUS and coefficients)
    n_records : int
        Number of records
    n_sets : int
        Coefficient sets per record (3 for values only, 6 with rates)
    """
    init: float
    interval_length: float
    record_size: int
    n_records: int
    n_sets: int

    @property
    def degree(self) -> int:
        return (self.record_size - 2) // self.n_sets - 1

    @property
    def n_coefficients(self) -> int:
        return self.degree + 1


@dataclass(frozen=True)
class TabulatedLayout:
    """
    Directory of a discrete-state segment (Lagrange or Hermite).

    Attributes
    ----------
    n_states : int
        Number of tabulated states
    window_size : int
        Number of states used per interpolation
    first_epoch : float
        Epoch of the first state, equal-step segments only
    step : float
        Spacing of the states, equal-step segments only
    epochs_offset : int
        Word offset of the epoch table from the segment start,
        unequal-step segments only
    """
    n_states: int
    window_size: int
    first_epoch: Optional[float] = None
    step: Optional[float] = None
    epochs_offset: Optional[int] = None

    @property
    def equal_steps(self) -> bool:
        return self.step is not None


SegmentLayout = Union[ChebyshevLayout, TabulatedLayout]


def _read_layout(kernel: KernelFile, seg_type: SegmentType, begin: int, end: int,
                 source=None) -> SegmentLayout:
    """Decode and check the trailer of a segment."""
    length = end - begin + 1
    family = seg_type.family

    if family is InterpolationFamily.CHEBYSHEV:
        if length < 4:
            raise FormatError(f"Chebyshev segment of {length} words has no directory",
                              source)
        init, intlen, rsize, n = (float(v) for v in kernel.double_array(end - 3, 4))
        rsize, n = int(round(rsize)), int(round(n))
        n_sets = 6 if seg_type in (SegmentType.CHEBYSHEV_STATE,
                                   SegmentType.CHEBYSHEV_ANGLES_RATES) else 3
        if n < 1 or rsize < 2 + n_sets or (rsize - 2) % n_sets:
            raise FormatError(
                f"Invalid Chebyshev directory RSIZE={rsize}, N={n}", source)
        if not intlen > 0:
            raise FormatError(f"Non-positive Chebyshev interval length {intlen}",
                              source)
        if rsize * n + 4 != length:
            raise FormatError(
                f"Chebyshev segment holds {length} words, directory implies "
                f"{rsize * n + 4}", source)
        return ChebyshevLayout(init, intlen, rsize, n, n_sets)

    if seg_type in (SegmentType.LAGRANGE_UNEQUAL, SegmentType.HERMITE_UNEQUAL):
        stored, n = (float(v) for v in kernel.double_array(end - 1, 2))
        n = int(round(n))
        if n < 1:
            raise FormatError(f"Segment declares {n} states", source)
        n_dir = (n - 1) // EPOCH_DIRECTORY_STRIDE
        expected = STATE_SIZE * n + n + n_dir + 2
        if expected != length:
            raise FormatError(
                f"Tabulated segment holds {length} words, {n} states imply "
                f"{expected}", source)
        window = _window_from_stored(seg_type, stored, source)
        return TabulatedLayout(n, window, epochs_offset=STATE_SIZE * n)

    first, step, stored, n = (float(v) for v in kernel.double_array(end - 3, 4))
    n = int(round(n))
    if n < 1:
        raise FormatError(f"Segment declares {n} states", source)
    if STATE_SIZE * n + 4 != length:
        raise FormatError(
            f"Equal-step segment holds {length} words, {n} states imply "
            f"{STATE_SIZE * n + 4}", source)
    if n > 1 and not step > 0:
        raise FormatError(f"Non-positive step size {step}", source)
    window = _window_from_stored(seg_type, stored, source)
    return TabulatedLayout(n, window, first_epoch=first, step=step)


def _window_from_stored(seg_type: SegmentType, stored: float, source) -> int:
    value = int(round(stored))
    # Lagrange types store the polynomial degree, Hermite types the window size - 1
    window = value + 1
    if window < 1:
        raise FormatError(f"Invalid interpolation window {window} "
                          f"(stored {value})", source)
    if seg_type.family is InterpolationFamily.HERMITE and window < 2:
        window = 2
    return window


# ========== SEGMENT DESCRIPTOR ==========
@dataclass(frozen=True)
class SegmentDescriptor:
    """
    Immutable description of one segment of a loaded kernel.

    For SPK segments ``target_id``/``center_id`` are NAIF body ids and
    ``frame_id`` the reference frame of the data. For PCK segments
    ``target_id`` is the body-fixed frame id, and ``center_id`` and
    ``frame_id`` both hold the inertial base frame id.

    Start and end epochs are TDB seconds past J2000, inclusive.
    ``data_offset`` is the 1-based word address of the first data word.
    """
    target_id: int
    center_id: int
    frame_id: int
    segment_type: SegmentType
    start_epoch: float
    end_epoch: float
    data_offset: int
    data_length: int
    name: str = ''
    layout: Optional[SegmentLayout] = None
    handle: int = 0
    index: int = 0
    kernel: Optional[KernelFile] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self.start_epoch > self.end_epoch:
            raise FormatError(
                f"Segment '{self.name}' starts after it ends "
                f"({self.start_epoch} > {self.end_epoch})")

    @property
    def kind(self) -> KernelKind:
        return self.segment_type.kind

    @property
    def interpolation_type(self) -> SegmentType:
        return self.segment_type

    @property
    def start(self) -> Epoch:
        return Epoch.from_et(self.start_epoch)

    @property
    def end(self) -> Epoch:
        return Epoch.from_et(self.end_epoch)

    @property
    def end_address(self) -> int:
        return self.data_offset + self.data_length - 1

    def contains(self, epoch) -> bool:
        """True if the closed coverage interval contains the epoch."""
        return self.start_epoch <= epoch <= self.end_epoch

    def data(self, offset: int = 0, count: Optional[int] = None):
        """Doubles of this segment starting ``offset`` words into the data."""
        if count is None:
            count = self.data_length - offset
        if offset < 0 or offset + count > self.data_length:
            raise OutOfRange(
                f"Words [{offset}, {offset + count}) outside segment '{self.name}' "
                f"of {self.data_length} words")
        return self.kernel.double_array(self.data_offset + offset, count)

    def summary(self) -> Dict[str, object]:
        """Flat dictionary used by inspection tools."""
        degree = None
        window = None
        if isinstance(self.layout, ChebyshevLayout):
            degree = self.layout.degree
        elif isinstance(self.layout, TabulatedLayout):
            window = self.layout.window_size
        return {
            'handle': self.handle,
            'index': self.index,
            'name': self.name,
            'kind': self.kind.value,
            'type': self.segment_type.code,
            'family': self.segment_type.family.value,
            'target': self.target_id,
            'center': self.center_id,
            'frame': self.frame_id,
            'start_et': self.start_epoch,
            'end_et': self.end_epoch,
            'data_offset': self.data_offset,
            'data_length': self.data_length,
            'degree': degree,
            'window': window,
        }

    @classmethod
    def from_summary(cls, summary: Summary, kind: KernelKind,
                     kernel: KernelFile, handle: int = 0) -> 'SegmentDescriptor':
        """
        Decode a raw summary into a descriptor.

        Raises
        ------
        FormatError
            Inconsistent summary, including ``UnsupportedSegmentType`` and
            ``OutOfRange`` for addresses outside the buffer
        """
        source = kernel.source
        start, end = summary.doubles[:2]
        if kind is KernelKind.SPK:
            target, center, frame, code, begin, last = summary.integers[:6]
        else:
            target, frame, code, begin, last = summary.integers[:5]
            center = frame
        seg_type = SegmentType.from_code(kind, code, source)

        total_words = kernel.size // 8
        if begin < 1 or last < begin or last > total_words:
            raise OutOfRange(
                f"Segment '{summary.name}' addresses [{begin}, {last}] outside the "
                f"{total_words}-word buffer", source)
        layout = _read_layout(kernel, seg_type, begin, last, source)
        return cls(
            target_id=target,
            center_id=center,
            frame_id=frame,
            segment_type=seg_type,
            start_epoch=start,
            end_epoch=end,
            data_offset=begin,
            data_length=last - begin + 1,
            name=summary.name,
            layout=layout,
            handle=handle,
            index=summary.index,
            kernel=kernel,
        )


# ========== LOOKUP INDEX ==========
@dataclass(frozen=True)
class _Entry:
    start: float
    end: float
    rank: Tuple[int, float, int]
    segment: SegmentDescriptor


class _SortedIndex:
    """Descriptors of one key sorted by start epoch, with running max end."""

    def __init__(self, entries: List[_Entry]):
        self._entries = sorted(entries, key=lambda e: (e.start, e.rank))
        self._starts = [e.start for e in self._entries]
        self._max_end = []
        running = float('-inf')
        for entry in self._entries:
            running = max(running, entry.end)
            self._max_end.append(running)

    def __len__(self):
        return len(self._entries)

    def __iter__(self) -> Iterator[_Entry]:
        return iter(self._entries)

    def find(self, epoch, handle: Optional[int] = None) -> Optional[SegmentDescriptor]:
        """Highest-ranked segment whose closed interval contains epoch."""
        i = bisect_right(self._starts, epoch) - 1
        best = None
        # Only the tail of segments starting before the epoch whose running
        # maximum end still reaches it can contain it
        while i >= 0 and self._max_end[i] >= epoch:
            entry = self._entries[i]
            if entry.end >= epoch and (handle is None or entry.segment.handle == handle):
                if best is None or entry.rank > best.rank:
                    best = entry
            i -= 1
        return None if best is None else best.segment


# ========== CATALOG ==========
class SegmentCatalog:
    """
    Immutable index of segments from one or more kernels.

    Each kernel contributes a layer; layers are ordered by load order and a
    later layer masks earlier ones wherever their coverage intersects.
    Within a layer the later-starting segment wins, then the later segment
    in the file.

    Parameters
    ----------
    layers : sequence of sequences of SegmentDescriptor
        Segments grouped per kernel, earliest loaded first
    errors : sequence of FormatError, optional
        Problems skipped during a best-effort build
    """

    def __init__(self, layers: Iterable[Iterable[SegmentDescriptor]] = (),
                 errors: Iterable[FormatError] = ()):
        self._layers = tuple(tuple(layer) for layer in layers)
        self._errors = tuple(errors)
        by_pair: Dict[Tuple[int, int], List[_Entry]] = {}
        by_target: Dict[int, List[_Entry]] = {}
        for rank, layer in enumerate(self._layers):
            for seg in layer:
                entry = _Entry(seg.start_epoch, seg.end_epoch,
                               (rank, seg.start_epoch, seg.index), seg)
                by_pair.setdefault((seg.target_id, seg.center_id), []).append(entry)
                by_target.setdefault(seg.target_id, []).append(entry)
        self._by_pair = {k: _SortedIndex(v) for k, v in by_pair.items()}
        self._by_target = {k: _SortedIndex(v) for k, v in by_target.items()}

    # ========== PROPERTY ACCESS ==========
    @property
    def segments(self) -> Tuple[SegmentDescriptor, ...]:
        """All segments in load order."""
        return tuple(seg for layer in self._layers for seg in layer)

    @property
    def layers(self) -> Tuple[Tuple[SegmentDescriptor, ...], ...]:
        return self._layers

    @property
    def errors(self) -> Tuple[FormatError, ...]:
        """Errors skipped while building in best-effort mode."""
        return self._errors

    def targets(self) -> List[int]:
        return sorted(self._by_target)

    def has_target(self, target: int) -> bool:
        return target in self._by_target

    def pairs(self) -> List[Tuple[int, int]]:
        return sorted(self._by_pair)

    # ========== LOOKUP ==========
    def lookup(self, target: int, center: int, epoch,
               kernel: Optional[int] = None) -> SegmentDescriptor:
        """
        Find the segment for (target, center) covering ``epoch``.

        Parameters
        ----------
        target, center : int
            Key of the segment
        epoch : Epoch or float
            Query epoch (floats are TDB seconds past J2000)
        kernel : int, optional
            Restrict the search to one kernel handle, bypassing masking

        Raises
        ------
        NoCoverage
            If no segment covers the epoch
        """
        index = self._by_pair.get((target, center))
        seg = index.find(epoch, kernel) if index is not None else None
        if seg is None:
            raise NoCoverage(
                f"No segment for target {target} relative to {center} covers "
                f"{_describe(epoch)}", target=target, center=center, epoch=epoch)
        return seg

    def lookup_any_center(self, target: int, epoch,
                          kernel: Optional[int] = None) -> SegmentDescriptor:
        """
        Find the highest-priority segment for ``target`` at ``epoch``,
        whatever its center.

        Raises
        ------
        NoCoverage
            If no segment for the target covers the epoch
        """
        index = self._by_target.get(target)
        seg = index.find(epoch, kernel) if index is not None else None
        if seg is None:
            raise NoCoverage(
                f"No segment for target {target} covers {_describe(epoch)}",
                target=target, epoch=epoch)
        return seg

    def segments_for(self, target: int,
                     center: Optional[int] = None) -> List[SegmentDescriptor]:
        """Segments of a target (and optionally center) sorted by start."""
        if center is None:
            index = self._by_target.get(target)
        else:
            index = self._by_pair.get((target, center))
        return [] if index is None else [e.segment for e in index]

    def coverage(self, target: int,
                 center: Optional[int] = None) -> List[Tuple[float, float]]:
        """Union of the coverage intervals of a target as sorted (start, end)."""
        windows: List[Tuple[float, float]] = []
        for seg in self.segments_for(target, center):
            if windows and seg.start_epoch <= windows[-1][1]:
                windows[-1] = (windows[-1][0], max(windows[-1][1], seg.end_epoch))
            else:
                windows.append((seg.start_epoch, seg.end_epoch))
        return windows

    def masked_segments(self) -> List[Tuple[SegmentDescriptor, SegmentDescriptor]]:
        """
        Pairs (masked, masking) where a later kernel overrides part of the
        coverage of an earlier kernel's segment with the same key.
        """
        pairs = []
        for index in self._by_pair.values():
            entries = list(index)
            for a in entries:
                for b in entries:
                    if b.rank[0] > a.rank[0] and b.start <= a.end and a.start <= b.end:
                        pairs.append((a.segment, b.segment))
        return pairs

    # ========== COMBINATION ==========
    def merge(self, other: 'SegmentCatalog') -> 'SegmentCatalog':
        """Return a new catalog with ``other``'s layers loaded after this one's."""
        return SegmentCatalog(self._layers + other._layers,
                              self._errors + other._errors)

    def without(self, handle: int) -> 'SegmentCatalog':
        """Return a new catalog without the segments of one kernel handle."""
        layers = [tuple(s for s in layer if s.handle != handle)
                  for layer in self._layers]
        return SegmentCatalog([layer for layer in layers if layer], self._errors)

    # ========== SPECIAL METHODS ==========
    def __len__(self):
        return sum(len(layer) for layer in self._layers)

    def __iter__(self) -> Iterator[SegmentDescriptor]:
        return iter(self.segments)

    def __repr__(self):
        return (f"SegmentCatalog(kernels={len(self._layers)}, segments={len(self)}, "
                f"targets={len(self._by_target)})")


def _describe(epoch) -> str:
    if isinstance(epoch, Epoch):
        return f"{epoch!s} (ET {epoch.et!r})"
    return f"ET {epoch!r}"


def build_catalog(kernel: KernelFile, strict: Optional[bool] = None,
                  handle: int = 0) -> SegmentCatalog:
    """
    Decode every summary of a kernel into a single-layer catalog.

    Parameters
    ----------
    kernel : KernelFile
        Opened kernel
    strict : bool, optional
        Fail on the first bad segment (True) or skip it with a warning
        (False). Defaults to ``config.STRICT_LOADING``.
    handle : int, optional
        Kernel handle recorded in each descriptor

    Raises
    ------
    FormatError
        Kernel kind or summary format not supported, or, in strict mode,
        any malformed segment
    """
    try:
        kind = KernelKind(kernel.kind)
    except ValueError:
        raise UnsupportedSegmentType(
            f"Kernel kind {kernel.kind!r} is not supported "
            f"(expected one of {[k.value for k in KernelKind]})",
            kernel.source) from None
    fr = kernel.file_record
    if (fr.nd, fr.ni) != kind.summary_format:
        raise FormatError(
            f"{kind.value} kernel has ND={fr.nd}, NI={fr.ni}, expected "
            f"{kind.summary_format}", kernel.source)

    segments = []
    errors = []
    for summary in kernel.summaries():
        try:
            segments.append(SegmentDescriptor.from_summary(summary, kind, kernel,
                                                           handle))
        except FormatError as exc:
            errors.append(exc)
            validation_error(
                f"Skipping segment {summary.index} ('{summary.name}') of "
                f"{kernel.source}: {exc}", error=exc, strict=strict)
    logger.debug("Catalogued %d segments from %s (%d skipped)",
                 len(segments), kernel.source, len(errors))
    return SegmentCatalog([segments], errors)

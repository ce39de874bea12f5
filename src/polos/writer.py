'''Kernel writer
KernelWriter class definition

Produces structurally valid DAF kernels: SPK types 2, 3, 8, 9, 12 and 13,
and binary PCK types 2 and 3. The writer favours simplicity over the
compact layout of the reference toolkit: all summary and name records are
written first, followed by the segment data.'''

import logging
import math
import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Union

import numpy as np

from .catalog import EPOCH_DIRECTORY_STRIDE, KernelKind, SegmentType
from .container import (DOUBLES_PER_RECORD, FTP_OFFSET, FTP_STRING,
                        INTERNAL_NAME_LENGTH, RECORD_LENGTH, SUMMARY_CONTROL_SIZE,
                        Endianness, KernelFile, Metadata)
from .epoch import Epoch
from ._version import __version__

logger = logging.getLogger(__name__)

COMMENT_CHARS_PER_RECORD = 1000


@dataclass(frozen=True)
class _PendingSegment:
    start: float
    end: float
    integers: tuple      # summary integers without the begin/end addresses
    name: str
    data: np.ndarray


class KernelWriter:
    """
    Accumulate segments and write them as a DAF kernel.

    Parameters
    ----------
    kind : str or KernelKind, optional
        ``'SPK'`` (default) or ``'PCK'``
    internal_name : str, optional
        Internal file name stored in the file record (60 characters max)
    comments : str, optional
        Text for the comment area
    endianness : Endianness, optional
        Binary format of the numeric data (default little endian)
    metadata : Metadata, optional
        Provenance written at the top of the comment area. The version and
        creation date are filled in when left unset.

    Examples
    --------
    >>> writer = KernelWriter('SPK', comments='Test ephemeris',
    ...                       metadata=Metadata(originator='Flight Dynamics'))
    >>> writer.add_spk_chebyshev(399, 3, 1, coefficients, init=0.0,
    ...                          interval_length=86400.0)
    >>> writer.write('test.bsp')
    """

    def __init__(self, kind: Union[str, KernelKind] = KernelKind.SPK,
                 internal_name: str = '', comments: str = '',
                 endianness: Endianness = Endianness.LITTLE,
                 metadata: Optional[Metadata] = None):
        self.kind = KernelKind(kind) if isinstance(kind, str) else kind
        if len(internal_name) > INTERNAL_NAME_LENGTH:
            raise ValueError(f"Internal name longer than {INTERNAL_NAME_LENGTH} characters")
        self.internal_name = internal_name
        self.comments = comments
        self.endianness = endianness
        if metadata is not None:
            metadata = replace(
                metadata, version=metadata.version or __version__,
                creation_date=metadata.creation_date or Epoch.from_datetime(
                    datetime.now(timezone.utc)))
        self.metadata = metadata
        self._segments: List[_PendingSegment] = []

    @property
    def nd(self) -> int:
        return self.kind.summary_format[0]

    @property
    def ni(self) -> int:
        return self.kind.summary_format[1]

    @property
    def summary_size(self) -> int:
        return self.nd + (self.ni + 1) // 2

    def __len__(self):
        return len(self._segments)

    # ========== LOW LEVEL ==========
    def add_segment(self, segment_type: SegmentType, ids: Sequence[int],
                    start: float, end: float, data, name: str = ''):
        """
        Append a segment with already laid out data words.

        ``ids`` are (target, center, frame) for SPK and (frame, base frame)
        for PCK segments.
        """
        if segment_type.kind is not self.kind:
            raise ValueError(f"{segment_type.name} segment in a {self.kind.value} kernel")
        expected = 3 if self.kind is KernelKind.SPK else 2
        if len(ids) != expected:
            raise ValueError(f"{self.kind.value} segments need {expected} ids, got {len(ids)}")
        if not start <= end:
            raise ValueError(f"Segment start {start} is after its end {end}")
        if len(name) > 8 * self.summary_size:
            raise ValueError(f"Segment name longer than {8 * self.summary_size} characters")
        data = np.asarray(data, dtype=float).ravel()
        if not np.all(np.isfinite(data)):
            raise ValueError("Segment data must be finite")
        integers = tuple(int(i) for i in ids) + (segment_type.code,)
        self._segments.append(_PendingSegment(float(start), float(end), integers,
                                              name, data))

    # ========== CHEBYSHEV ==========
    @staticmethod
    def _chebyshev_data(coefficients, init: float, interval_length: float,
                        n_sets: int) -> np.ndarray:
        coefficients = np.asarray(coefficients, dtype=float)
        if coefficients.ndim != 3 or coefficients.shape[1] != n_sets:
            raise ValueError(f"Coefficients must have shape (records, {n_sets}, "
                             f"degree + 1), got {coefficients.shape}")
        if not interval_length > 0:
            raise ValueError("Interval length must be positive")
        n_records = coefficients.shape[0]
        radius = interval_length / 2.0
        records = []
        for i in range(n_records):
            mid = init + (i + 0.5) * interval_length
            records.append(np.concatenate([[mid, radius], coefficients[i].ravel()]))
        rsize = records[0].size
        return np.concatenate(records + [np.array([init, interval_length, rsize,
                                                   n_records], dtype=float)])

    def add_spk_chebyshev(self, target: int, center: int, frame: int, coefficients,
                          init: float, interval_length: float,
                          start: Optional[float] = None, end: Optional[float] = None,
                          rates: bool = False, name: str = ''):
        """
        Add a Chebyshev segment (type 2, or type 3 when ``rates``).

        Parameters
        ----------
        coefficients : array-like
            Shape (records, 3, degree + 1) of position coefficients [km], or
            (records, 6, degree + 1) with velocity coefficients [km/s] too
        init : float
            Start of the first record [s TDB past J2000]
        interval_length : float
            Length of every record [s]
        start, end : float, optional
            Coverage, defaults to the span of the records
        """
        n_sets = 6 if rates else 3
        data = self._chebyshev_data(coefficients, init, interval_length, n_sets)
        n_records = np.shape(coefficients)[0]
        start = init if start is None else start
        end = init + n_records * interval_length if end is None else end
        seg_type = SegmentType.CHEBYSHEV_STATE if rates else SegmentType.CHEBYSHEV_POSITION
        self.add_segment(seg_type, (target, center, frame), start, end, data, name)

    def add_pck_chebyshev(self, frame: int, base_frame: int, coefficients,
                          init: float, interval_length: float,
                          start: Optional[float] = None, end: Optional[float] = None,
                          rates: bool = False, name: str = ''):
        """
        Add an orientation segment of Chebyshev Euler angles (PCK type 2,
        or type 3 when ``rates``).

        ``coefficients`` has shape (records, 3, degree + 1) for the angles
        (phi, delta, w) [rad], or (records, 6, degree + 1) with the rates.
        """
        n_sets = 6 if rates else 3
        data = self._chebyshev_data(coefficients, init, interval_length, n_sets)
        n_records = np.shape(coefficients)[0]
        start = init if start is None else start
        end = init + n_records * interval_length if end is None else end
        seg_type = (SegmentType.CHEBYSHEV_ANGLES_RATES if rates
                    else SegmentType.CHEBYSHEV_ANGLES)
        self.add_segment(seg_type, (frame, base_frame), start, end, data, name)

    # ========== DISCRETE STATES ==========
    @staticmethod
    def _check_states(epochs, states):
        epochs = np.asarray(epochs, dtype=float).ravel()
        states = np.asarray(states, dtype=float)
        if states.ndim != 2 or states.shape[1] != 6:
            raise ValueError(f"States must have shape (n, 6), got {states.shape}")
        if epochs.size != states.shape[0]:
            raise ValueError(f"{epochs.size} epochs for {states.shape[0]} states")
        if epochs.size == 0:
            raise ValueError("At least one state is required")
        if np.any(np.diff(epochs) <= 0):
            raise ValueError("Epochs must be strictly increasing")
        return epochs, states

    def _add_states(self, seg_type: SegmentType, target, center, frame, epochs,
                    states, stored: int, start, end, name):
        epochs, states = self._check_states(epochs, states)
        n = epochs.size
        if seg_type in (SegmentType.LAGRANGE_EQUAL, SegmentType.HERMITE_EQUAL):
            step = float(epochs[1] - epochs[0]) if n > 1 else 1.0
            if n > 1 and not np.allclose(np.diff(epochs), step, rtol=1e-12, atol=0.0):
                raise ValueError("Equal-step segments need uniformly spaced epochs")
            data = np.concatenate([states.ravel(),
                                   [epochs[0], step, float(stored), float(n)]])
        else:
            directory = epochs[EPOCH_DIRECTORY_STRIDE - 1:n - 1:EPOCH_DIRECTORY_STRIDE]
            data = np.concatenate([states.ravel(), epochs, directory,
                                   [float(stored), float(n)]])
        start = float(epochs[0]) if start is None else start
        end = float(epochs[-1]) if end is None else end
        self.add_segment(seg_type, (target, center, frame), start, end, data, name)

    def add_spk_lagrange(self, target: int, center: int, frame: int, epochs, states,
                         degree: int, equal_steps: bool = False,
                         start: Optional[float] = None, end: Optional[float] = None,
                         name: str = ''):
        """
        Add a Lagrange segment of discrete states (type 9, or type 8 when
        ``equal_steps``). ``degree + 1`` states are used per interpolation.
        """
        if degree < 0:
            raise ValueError("Degree must be non-negative")
        seg_type = SegmentType.LAGRANGE_EQUAL if equal_steps else SegmentType.LAGRANGE_UNEQUAL
        self._add_states(seg_type, target, center, frame, epochs, states, degree,
                         start, end, name)

    def add_spk_hermite(self, target: int, center: int, frame: int, epochs, states,
                        window: int, equal_steps: bool = False,
                        start: Optional[float] = None, end: Optional[float] = None,
                        name: str = ''):
        """
        Add a Hermite segment of discrete states (type 13, or type 12 when
        ``equal_steps``), interpolating over ``window`` states.
        """
        if window < 2:
            raise ValueError("Hermite window must hold at least 2 states")
        seg_type = SegmentType.HERMITE_EQUAL if equal_steps else SegmentType.HERMITE_UNEQUAL
        self._add_states(seg_type, target, center, frame, epochs, states, window - 1,
                         start, end, name)

    # ========== OUTPUT ==========
    def _comment_text(self) -> str:
        parts = [self.metadata.to_comments()] if self.metadata is not None else []
        if self.comments:
            parts.append(self.comments)
        return '\n\n'.join(parts)

    def _comment_bytes(self) -> bytes:
        text = self._comment_text()
        if not text:
            return b''
        return text.replace('\r\n', '\n').replace('\n', '\x00').encode('latin-1') + b'\x04'

    def to_bytes(self) -> bytes:
        """Serialize the kernel."""
        prefix = self.endianness.prefix
        f8 = np.dtype(prefix + 'f8')
        i4 = np.dtype(prefix + 'i4')
        ss = self.summary_size
        per_record = (DOUBLES_PER_RECORD - SUMMARY_CONTROL_SIZE) // ss
        name_length = 8 * ss

        comment = self._comment_bytes()
        comment_records = math.ceil(len(comment) / COMMENT_CHARS_PER_RECORD)
        forward = 2 + comment_records
        n_summary_records = max(1, math.ceil(len(self._segments) / per_record))
        backward = forward + 2 * (n_summary_records - 1)
        address = (forward + 2 * n_summary_records - 1) * DOUBLES_PER_RECORD + 1

        addresses = []
        for seg in self._segments:
            addresses.append((address, address + seg.data.size - 1))
            address += seg.data.size
        free = address
        n_records = max(forward + 2 * n_summary_records - 1,
                        math.ceil((free - 1) / DOUBLES_PER_RECORD))
        out = bytearray(n_records * RECORD_LENGTH)

        # file record
        out[0:8] = f"DAF/{self.kind.value}".ljust(8).encode('ascii')
        out[8:16] = np.array([self.nd, self.ni], dtype=i4).tobytes()
        out[16:16 + INTERNAL_NAME_LENGTH] = self.internal_name.ljust(
            INTERNAL_NAME_LENGTH).encode('latin-1')
        out[76:88] = np.array([forward, backward, free], dtype=i4).tobytes()
        out[88:96] = self.endianness.value.encode('ascii')
        out[FTP_OFFSET:FTP_OFFSET + len(FTP_STRING)] = FTP_STRING

        # comment area
        for i in range(comment_records):
            chunk = comment[i * COMMENT_CHARS_PER_RECORD:(i + 1) * COMMENT_CHARS_PER_RECORD]
            base = (1 + i) * RECORD_LENGTH
            out[base:base + len(chunk)] = chunk

        # summary and name records
        for j in range(n_summary_records):
            record = forward + 2 * j
            batch = list(range(j * per_record,
                               min((j + 1) * per_record, len(self._segments))))
            next_record = record + 2 if j < n_summary_records - 1 else 0
            prev_record = record - 2 if j > 0 else 0
            base = (record - 1) * RECORD_LENGTH
            out[base:base + 24] = np.array([next_record, prev_record, len(batch)],
                                           dtype=f8).tobytes()
            names_base = record * RECORD_LENGTH
            for slot, k in enumerate(batch):
                seg = self._segments[k]
                begin, last = addresses[k]
                offset = base + 8 * (SUMMARY_CONTROL_SIZE + slot * ss)
                out[offset:offset + 8 * self.nd] = np.array(
                    [seg.start, seg.end], dtype=f8).tobytes()
                ints = np.zeros(2 * (ss - self.nd), dtype=i4)
                ints[:self.ni] = seg.integers + (begin, last)
                out[offset + 8 * self.nd:offset + 8 * ss] = ints.tobytes()
                out[names_base + slot * name_length:
                    names_base + (slot + 1) * name_length] = seg.name.ljust(
                        name_length).encode('latin-1')

        # segment data
        for seg, (begin, last) in zip(self._segments, addresses):
            out[(begin - 1) * 8:last * 8] = seg.data.astype(f8).tobytes()

        logger.debug("Wrote %s kernel with %d segments, %d records",
                     self.kind.value, len(self._segments), n_records)
        return bytes(out)

    def write(self, path: Union[str, os.PathLike]) -> str:
        """Write the kernel to ``path`` and return the path."""
        data = self.to_bytes()
        with open(path, 'wb') as handle:
            handle.write(data)
        logger.info("Wrote %s kernel %s (%d bytes)", self.kind.value, path, len(data))
        return str(path)

    def to_kernel(self) -> KernelFile:
        """Serialize and open the result in memory."""
        return KernelFile(self.to_bytes(), source='<writer>')

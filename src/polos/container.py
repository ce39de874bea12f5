'''Binary kernel container reader
KernelFile class definition

Structural access to DAF (double precision array file) kernels: the file
record, the chain of summary records with their name records, comment
records and double precision data addressed by 1-based word addresses.
Nothing in this module knows what a segment means.'''

import hashlib
import logging
import math
import mmap
import os
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import numpy as np

from .epoch import Epoch
from .errors import BadMagic, FormatError, OutOfRange, TimeError, Truncated

logger = logging.getLogger(__name__)

# ========== FORMAT CONSTANTS ==========
RECORD_LENGTH = 1024                       # bytes per record
DOUBLE_SIZE = 8
DOUBLES_PER_RECORD = RECORD_LENGTH // DOUBLE_SIZE
SUMMARY_CONTROL_SIZE = 3                   # NEXT, PREV, NSUM
MAX_SUMMARY_SIZE = DOUBLES_PER_RECORD - SUMMARY_CONTROL_SIZE
ID_WORD_LENGTH = 8
INTERNAL_NAME_LENGTH = 60
FTP_OFFSET = 699
FTP_STRING = b"FTPSTR:\r:\n:\r\n:\r\x00:\x81:\x10\xce:ENDFTP"

# Legacy files have no format word; guess the kind from ND/NI
_LEGACY_KINDS = {(2, 6): "SPK", (2, 5): "PCK"}


class Endianness(Enum):
    LITTLE = 'LTL-IEEE'
    BIG = 'BIG-IEEE'

    @property
    def prefix(self) -> str:
        """numpy byte order character"""
        return '<' if self is Endianness.LITTLE else '>'


@dataclass(frozen=True)
class FileRecord:
    """
    Decoded DAF file record (record 1).

    Attributes
    ----------
    id_word : str
        Identification word, e.g. ``'DAF/SPK'``
    nd : int
        Number of double precision components in each summary
    ni : int
        Number of integer components in each summary
    internal_name : str
        Internal file name
    forward : int
        Record number of the first summary record
    backward : int
        Record number of the last summary record
    free : int
        First free double precision address
    endianness : Endianness
        Binary format of numeric data
    """
    id_word: str
    nd: int
    ni: int
    internal_name: str
    forward: int
    backward: int
    free: int
    endianness: Endianness

    @property
    def kind(self) -> str:
        """Kernel kind from the id word ('SPK', 'PCK', 'CK', ...)."""
        if self.id_word.startswith('DAF/'):
            return self.id_word[4:].strip()
        return _LEGACY_KINDS.get((self.nd, self.ni), 'DAF')

    @property
    def summary_size(self) -> int:
        """Size of one summary in double precision words."""
        return self.nd + (self.ni + 1) // 2

    @property
    def summaries_per_record(self) -> int:
        return MAX_SUMMARY_SIZE // self.summary_size

    @property
    def name_length(self) -> int:
        """Number of characters in each segment name."""
        return DOUBLE_SIZE * self.summary_size

    @property
    def record_length(self) -> int:
        return RECORD_LENGTH


@dataclass(frozen=True)
class Summary:
    """One raw summary with its name, as stored in the file."""
    doubles: Tuple[float, ...]
    integers: Tuple[int, ...]
    name: str
    record: int
    index: int


def _decode_text(raw: bytes) -> str:
    return raw.decode('latin-1').rstrip(' \x00')


def parse_file_record(raw: bytes, source=None) -> FileRecord:
    """
    Decode and validate the 1024-byte file record.

    Raises
    ------
    BadMagic
        If the identification word or the ND/NI fields are not those of a
        DAF file
    """
    id_word = _decode_text(raw[:ID_WORD_LENGTH])
    if not (id_word.startswith('DAF/') or id_word == 'NAIF/DAF'):
        raise BadMagic(
            f"Not a DAF kernel: identification word {raw[:ID_WORD_LENGTH]!r}",
            source)

    fmt_word = raw[88:96].decode('latin-1')
    if fmt_word == Endianness.LITTLE.value:
        endianness = Endianness.LITTLE
    elif fmt_word == Endianness.BIG.value:
        endianness = Endianness.BIG
    elif fmt_word.strip(' \x00') == '':
        # Pre-N0050 files carry no format word: pick the byte order that
        # gives a sensible ND
        nd_little = int(np.frombuffer(raw, dtype='<i4', count=1, offset=8)[0])
        endianness = (Endianness.LITTLE if 0 <= nd_little <= MAX_SUMMARY_SIZE
                      else Endianness.BIG)
    else:
        raise BadMagic(f"Unsupported binary file format {fmt_word!r}", source)

    ints = np.frombuffer(raw, dtype=endianness.prefix + 'i4', count=2, offset=8)
    nd, ni = int(ints[0]), int(ints[1])
    pointers = np.frombuffer(raw, dtype=endianness.prefix + 'i4', count=3,
                             offset=76)
    forward, backward, free = (int(p) for p in pointers)

    if not 0 <= nd <= MAX_SUMMARY_SIZE or not 2 <= ni <= 2 * MAX_SUMMARY_SIZE:
        raise BadMagic(f"Invalid summary format ND={nd}, NI={ni}", source)
    if nd + (ni + 1) // 2 > MAX_SUMMARY_SIZE:
        raise BadMagic(
            f"Summary size {nd + (ni + 1) // 2} exceeds record capacity", source)
    if forward < 2 or backward < 2 or free < 1:
        raise BadMagic(
            f"Invalid record pointers FWARD={forward}, BWARD={backward}, "
            f"FREE={free}", source)

    ftp = raw[FTP_OFFSET:FTP_OFFSET + len(FTP_STRING)]
    if any(ftp) and ftp != FTP_STRING:
        raise BadMagic("FTP validation string is corrupt: the file was "
                       "transferred in text mode", source)

    return FileRecord(
        id_word=id_word,
        nd=nd,
        ni=ni,
        internal_name=_decode_text(raw[16:16 + INTERNAL_NAME_LENGTH]),
        forward=forward,
        backward=backward,
        free=free,
        endianness=endianness,
    )


# ========== METADATA ==========
@dataclass(frozen=True)
class Metadata:
    """
    Provenance of a kernel, kept as ``KEY = value`` lines in its comment area.

    Attributes
    ----------
    version : str
        Version of the software that wrote the file
    creation_date : Epoch, optional
        When the file was written
    originator : str
        Organization, person or tool that produced the file
    metadata_uri : str
        Link to further metadata about the file
    """
    version: str = ''
    creation_date: Optional[Epoch] = None
    originator: str = ''
    metadata_uri: str = ''

    _KEYS = (('version', 'POLOS_VERSION'), ('creation_date', 'CREATION_DATE'),
             ('originator', 'ORIGINATOR'), ('metadata_uri', 'METADATA_URI'))

    @classmethod
    def from_comments(cls, text: str) -> 'Metadata':
        """Read the metadata lines of a comment area; missing keys stay unset."""
        keys = {key: attr for attr, key in cls._KEYS}
        values = {}
        for line in text.splitlines():
            key, sep, value = line.partition('=')
            attr = keys.get(key.strip().upper())
            if sep and attr is not None and attr not in values:
                values[attr] = value.strip()
        if values.get('creation_date'):
            try:
                values['creation_date'] = Epoch.from_isoformat(values['creation_date'])
            except TimeError:
                logger.warning("Ignoring unreadable creation date %r",
                               values['creation_date'])
                values['creation_date'] = None
        else:
            values.pop('creation_date', None)
        return cls(**values)

    def to_comments(self) -> str:
        """Metadata lines for a comment area."""
        lines = []
        for attr, key in self._KEYS:
            value = getattr(self, attr)
            if isinstance(value, Epoch):
                value = value.isoformat(scale='TDB')
            if value:
                lines.append(f"{key} = {value}")
        return '\n'.join(lines)

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, attr) for attr, _ in self._KEYS)

    def __str__(self):
        created = (self.creation_date.isoformat(scale='TDB') if self.creation_date
                   else '(not set)')
        return (f"Polos version {self.version or '(not set)'}\n"
                f"Originator: {self.originator or '(not set)'}\n"
                f"Creation date: {created}\n"
                f"Metadata URI: {self.metadata_uri or '(not set)'}")


class KernelFile:
    """
    Immutable view over a DAF kernel buffer.

    Created by :func:`open_kernel`; the buffer is never written after the
    file record has been validated, so a KernelFile can be shared between
    threads freely.

    Parameters
    ----------
    buffer : bytes, bytearray, memoryview or mmap.mmap
        Complete kernel contents
    source : str, optional
        Path or label used in messages
    """

    def __init__(self, buffer, source: Optional[str] = None):
        if isinstance(buffer, bytearray):
            buffer = bytes(buffer)
        self._buffer = buffer
        self._view = memoryview(buffer)
        self._source = source
        self._closed = False

        if len(self._view) < RECORD_LENGTH:
            raise Truncated(
                f"Buffer of {len(self._view)} bytes is shorter than one "
                f"{RECORD_LENGTH}-byte record", source,
                expected=RECORD_LENGTH, actual=len(self._view))

        self._file_record = parse_file_record(
            bytes(self._view[:RECORD_LENGTH]), source)
        self._double_dtype = np.dtype(self._file_record.endianness.prefix + 'f8')
        self._int_dtype = np.dtype(self._file_record.endianness.prefix + 'i4')

        self._summary_chain = self._walk_summary_chain()
        self._check_declared_length()

    # ========== PROPERTY ACCESS ==========
    @property
    def file_record(self) -> FileRecord:
        return self._file_record

    @property
    def source(self) -> Optional[str]:
        return self._source

    @property
    def kind(self) -> str:
        return self._file_record.kind

    @property
    def endianness(self) -> Endianness:
        return self._file_record.endianness

    @property
    def num_records(self) -> int:
        """Number of complete records in the buffer."""
        return len(self._view) // RECORD_LENGTH

    @property
    def declared_records(self) -> int:
        """Record count implied by the first free address and summary chain."""
        data_records = math.ceil((self._file_record.free - 1) / DOUBLES_PER_RECORD)
        chain_records = max((r + 1 for r, _, _, _ in self._summary_chain),
                            default=1)
        return max(data_records, chain_records, 1)

    @property
    def size(self) -> int:
        return len(self._view)

    @cached_property
    def checksum(self) -> str:
        """SHA-256 of the buffer contents."""
        return hashlib.sha256(self._view).hexdigest()

    # ========== STRUCTURAL CHECKS ==========
    def _walk_summary_chain(self) -> List[Tuple[int, int, int, int]]:
        """Follow the forward pointers, returning (record, next, prev, nsum)."""
        chain = []
        visited = set()
        record = self._file_record.forward
        per_record = self._file_record.summaries_per_record
        while record != 0:
            if record in visited:
                raise FormatError(
                    f"Summary record chain loops back to record {record}",
                    self._source)
            visited.add(record)
            if record + 1 > self.num_records:
                raise Truncated(
                    f"Summary record {record} (and its name record) lies beyond "
                    f"the end of the buffer ({self.num_records} records)",
                    self._source, expected=(record + 1) * RECORD_LENGTH,
                    actual=len(self._view))
            control = np.frombuffer(self._view, dtype=self._double_dtype,
                                    count=SUMMARY_CONTROL_SIZE,
                                    offset=(record - 1) * RECORD_LENGTH)
            next_record, prev_record, nsum = (int(round(c)) for c in control)
            if not 0 <= nsum <= per_record:
                raise FormatError(
                    f"Summary record {record} declares {nsum} summaries, at most "
                    f"{per_record} fit", self._source)
            chain.append((record, next_record, prev_record, nsum))
            record = next_record
        return chain

    def _check_declared_length(self):
        expected = self.declared_records * RECORD_LENGTH
        if len(self._view) < expected:
            raise Truncated(
                f"Kernel declares {self.declared_records} records "
                f"({expected} bytes) but the buffer holds {len(self._view)} bytes",
                self._source, expected=expected, actual=len(self._view))

    # ========== RECORD ACCESS ==========
    def record(self, number: int) -> memoryview:
        """
        Return the fixed-size byte window of record ``number`` (1-based).

        Raises
        ------
        OutOfRange
            If the record is not fully contained in the buffer
        """
        if number < 1 or number > self.num_records:
            raise OutOfRange(
                f"Record {number} outside [1, {self.num_records}]", self._source)
        start = (number - 1) * RECORD_LENGTH
        return self._view[start:start + RECORD_LENGTH]

    def double_array(self, address: int, count: int) -> np.ndarray:
        """
        Read ``count`` doubles starting at the 1-based word ``address``.

        The returned array is a read-only view honoring the file byte order.

        Raises
        ------
        OutOfRange
            If any requested word lies outside the buffer
        """
        if count < 0:
            raise OutOfRange(f"Negative word count {count}", self._source)
        offset = (address - 1) * DOUBLE_SIZE
        if address < 1 or offset + count * DOUBLE_SIZE > len(self._view):
            raise OutOfRange(
                f"Words [{address}, {address + count - 1}] outside buffer of "
                f"{len(self._view) // DOUBLE_SIZE} words", self._source)
        return np.frombuffer(self._view, dtype=self._double_dtype, count=count,
                             offset=offset)

    def integer_array(self, byte_offset: int, count: int) -> np.ndarray:
        """Read ``count`` 32-bit integers starting at a 0-based byte offset."""
        if byte_offset < 0 or byte_offset + 4 * count > len(self._view):
            raise OutOfRange(
                f"Integers at byte {byte_offset} (count {count}) outside buffer",
                self._source)
        return np.frombuffer(self._view, dtype=self._int_dtype, count=count,
                             offset=byte_offset)

    # ========== SUMMARIES ==========
    def summary_records(self) -> Iterator[Tuple[int, int, int, int]]:
        """Iterate (record, next, prev, nsum) along the summary chain."""
        return iter(self._summary_chain)

    def summaries(self) -> Iterator[Summary]:
        """Iterate every summary in file order together with its name."""
        fr = self._file_record
        ss = fr.summary_size
        nc = fr.name_length
        index = 0
        for record, _, _, nsum in self._summary_chain:
            base = (record - 1) * RECORD_LENGTH
            names = self.record(record + 1)
            for i in range(nsum):
                offset = base + DOUBLE_SIZE * (SUMMARY_CONTROL_SIZE + i * ss)
                doubles = np.frombuffer(self._view, dtype=self._double_dtype,
                                        count=fr.nd, offset=offset)
                integers = self.integer_array(offset + DOUBLE_SIZE * fr.nd, fr.ni)
                name = _decode_text(bytes(names[i * nc:(i + 1) * nc]))
                yield Summary(
                    doubles=tuple(float(d) for d in doubles),
                    integers=tuple(int(n) for n in integers),
                    name=name,
                    record=record,
                    index=index,
                )
                index += 1

    def comments(self) -> str:
        """
        Return the comment area text.

        Comment records sit between the file record and the first summary
        record; lines end with NUL and the text ends with EOT.
        """
        chunks = []
        for number in range(2, self._file_record.forward):
            raw = bytes(self.record(number))[:1000]
            end = raw.find(b'\x04')
            if end >= 0:
                chunks.append(raw[:end])
                break
            chunks.append(raw)
        return b''.join(chunks).replace(b'\x00', b'\n').decode('latin-1').rstrip('\n')

    def metadata(self) -> Metadata:
        return Metadata.from_comments(self.comments())

    # ========== LIFECYCLE ==========
    def close(self):
        """
        Release the memory map backing this kernel, if any.

        Arrays previously returned by :meth:`double_array` keep the map alive;
        in that case the map is released when the last of them is collected.
        """
        if self._closed:
            return
        self._closed = True
        if not isinstance(self._buffer, mmap.mmap):
            return
        try:
            self._view.release()
            self._buffer.close()
        except BufferError:
            logger.debug("%s still has live array views; deferring unmap",
                         self._source)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ========== SPECIAL METHODS ==========
    def __len__(self):
        return len(self._view)

    def __repr__(self):
        return (f"KernelFile(kind={self.kind!r}, source={self._source!r}, "
                f"records={self.num_records}, "
                f"endianness={self.endianness.value})")


def open_kernel(source: Union[str, os.PathLike, bytes, bytearray, memoryview],
                use_mmap: bool = True) -> KernelFile:
    """
    Open a DAF kernel from a path or an in-memory buffer.

    Parameters
    ----------
    source : path-like or bytes-like
        Kernel file path, or the complete kernel contents
    use_mmap : bool, optional
        Memory-map files instead of reading them (default True). Ignored for
        in-memory buffers.

    Returns
    -------
    KernelFile

    Raises
    ------
    FormatError
        ``BadMagic`` or ``Truncated`` for malformed content
    OSError
        If the file cannot be read
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        return KernelFile(source, source='<memory>')

    path = Path(source)
    if use_mmap and path.stat().st_size > 0:
        with open(path, 'rb') as handle:
            buffer = mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ)
        return KernelFile(buffer, source=str(path))
    return KernelFile(path.read_bytes(), source=str(path))

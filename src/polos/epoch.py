'''Time system for the kernel engine
Epoch and LeapSecondTable class definitions

Epochs are carried internally as an exact integer count of nanoseconds past
J2000 (2000-01-01T12:00:00 TDB). Every numerical layer works in that single
continuous scale; civil (UTC) and atomic (TAI, TT) readings are produced
only at the boundary.'''

import re
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from fractions import Fraction
from numbers import Real
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from .config import config
from .errors import TimeError, UnknownLeapSecondEra

# ========== CONSTANTS ==========
NANOS_PER_SECOND = 1_000_000_000
SECONDS_PER_DAY = 86400
NANOS_PER_DAY = SECONDS_PER_DAY * NANOS_PER_SECOND
J2000_JD = 2451545.0
MJD_OFFSET = 2400000.5
_J2000_ORDINAL = date(2000, 1, 1).toordinal()
_HALF_DAY_NANOS = NANOS_PER_DAY // 2

_MONTHS = ('JAN', 'FEB', 'MAR', 'APR', 'MAY', 'JUN',
           'JUL', 'AUG', 'SEP', 'OCT', 'NOV', 'DEC')


# define an enumerated list of time scales
class TimeScale(Enum):
    UTC = 'UTC'     # civil time, leap seconds
    TAI = 'TAI'     # international atomic time
    TT = 'TT'       # terrestrial time, TAI + 32.184 s
    TDB = 'TDB'     # barycentric dynamical time (ephemeris time)

    @classmethod
    def parse(cls, value) -> 'TimeScale':
        """Accept a TimeScale, or its name ('utc', 'TDB', 'ET', 'TDT')."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper()
            aliases = {'ET': 'TDB', 'TDT': 'TT', 'Z': 'UTC'}
            name = aliases.get(name, name)
            try:
                return cls(name)
            except ValueError:
                pass
        raise TimeError(
            f"Unknown time scale {value!r}. Valid: {[s.value for s in cls]}")


@dataclass(frozen=True)
class CalendarDate:
    """Broken-down calendar reading of an epoch in one time scale."""
    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    second: float = 0.0
    scale: TimeScale = TimeScale.UTC

    def isoformat(self, precision: int = 3) -> str:
        whole = int(self.second)
        text = f"{self.year:04d}-{self.month:02d}-{self.day:02d}T" \
               f"{self.hour:02d}:{self.minute:02d}:{whole:02d}"
        if precision > 0:
            frac = self.second - whole
            rounded = f"{frac:.{precision}f}"
            if rounded.startswith('1'):
                # rounding never carries into the seconds field
                rounded = '0.' + '9' * precision
            text += rounded[1:]
        return f"{text} {self.scale.value}"


# ========== LEAP SECONDS ==========
@dataclass(frozen=True)
class LeapSecondTable:
    """
    Table of TAI - UTC offsets plus the TDB model constants.

    Parameters
    ----------
    entries : list of (date, int)
        UTC dates at which a new TAI - UTC offset (seconds) takes effect,
        in increasing order
    expires : date, optional
        Last UTC date for which the table is known to be complete.
        ``None`` means the table never expires.
    delta_t_a : float
        TT - TAI [s]
    k, eb, m0, m1 : float
        Constants of the periodic TDB - TT approximation
    """
    entries: Tuple[Tuple[date, int], ...]
    expires: Optional[date] = None
    delta_t_a: float = 32.184
    k: float = 1.657e-3
    eb: float = 1.671e-2
    m0: float = 6.239996
    m1: float = 1.99096871e-7
    _starts: Tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.entries:
            raise TimeError("Leap second table has no entries")
        ordered = tuple(sorted(self.entries))
        object.__setattr__(self, 'entries', ordered)
        object.__setattr__(self, '_starts',
                           tuple(d.toordinal() for d, _ in ordered))

    @property
    def first_date(self) -> date:
        return self.entries[0][0]

    def offset_for_day(self, ordinal: int) -> int:
        """TAI - UTC in effect during the UTC day with the given ordinal."""
        i = bisect_right(self._starts, ordinal) - 1
        if i < 0:
            raise UnknownLeapSecondEra(
                f"{date.fromordinal(ordinal)} predates the leap second table "
                f"(starts {self.first_date})")
        if (config.LEAP_SECOND_EXPIRY_CHECK and self.expires is not None
                and ordinal > self.expires.toordinal()):
            raise UnknownLeapSecondEra(
                f"{date.fromordinal(ordinal)} postdates the leap second table "
                f"(expires {self.expires})")
        return self.entries[i][1]

    def is_leap_day(self, ordinal: int) -> bool:
        """True if a positive leap second is inserted at the end of the day."""
        i = bisect_right(self._starts, ordinal + 1) - 1
        if i <= 0 or self._starts[i] != ordinal + 1:
            return False
        return self.entries[i][1] > self.entries[i - 1][1]

    def day_length(self, ordinal: int) -> int:
        """Length in SI seconds of the UTC day with the given ordinal."""
        i = bisect_right(self._starts, ordinal + 1) - 1
        if i <= 0 or self._starts[i] != ordinal + 1:
            return SECONDS_PER_DAY
        return SECONDS_PER_DAY + self.entries[i][1] - self.entries[i - 1][1]

    @classmethod
    def from_lsk(cls, source: Union[str, Path],
                 expires: Optional[date] = None) -> 'LeapSecondTable':
        """
        Parse a NAIF leap-seconds text kernel (e.g. ``naif0012.tls``).

        Parameters
        ----------
        source : str or Path
            Path to the kernel, or its text if it contains a newline
        expires : date, optional
            Expiry to attach to the table

        Raises
        ------
        TimeError
            If the kernel has no DELTET/DELTA_AT assignment
        """
        text = source if isinstance(source, str) and '\n' in source \
            else Path(source).read_text(encoding='latin-1')
        data = _lsk_data_blocks(text)

        match = re.search(r'DELTET/DELTA_AT\s*=\s*\((.*?)\)', data, re.S)
        if match is None:
            raise TimeError("No DELTET/DELTA_AT assignment in leap second kernel")
        pairs = re.findall(r'([-+]?\d+(?:\.\d*)?)\s*,?\s*@(\d{4})-([A-Za-z]{3})-(\d{1,2})',
                           match.group(1))
        if not pairs:
            raise TimeError("DELTET/DELTA_AT holds no (offset, @date) pairs")
        entries = []
        for offset, year, month, day in pairs:
            month_index = _MONTHS.index(month.upper()) + 1
            entries.append((date(int(year), month_index, int(day)),
                            int(round(float(offset)))))

        kwargs = {}
        for key, name in (('delta_t_a', 'DELTA_T_A'), ('k', 'K'), ('eb', 'EB')):
            value = re.search(rf'DELTET/{name}\s*=\s*([-+0-9.DdEe]+)', data)
            if value is not None:
                kwargs[key] = _fortran_float(value.group(1))
        m = re.search(r'DELTET/M\s*=\s*\(\s*([-+0-9.DdEe]+)[\s,]+([-+0-9.DdEe]+)\s*\)',
                      data)
        if m is not None:
            kwargs['m0'] = _fortran_float(m.group(1))
            kwargs['m1'] = _fortran_float(m.group(2))
        return cls(tuple(entries), expires=expires, **kwargs)


def _fortran_float(text: str) -> float:
    return float(text.replace('D', 'E').replace('d', 'e'))


def _lsk_data_blocks(text: str) -> str:
    """Concatenate the \\begindata sections of a text kernel."""
    blocks = []
    in_data = False
    for line in text.splitlines():
        token = line.strip()
        if token.startswith('\\begindata'):
            in_data = True
            continue
        if token.startswith('\\begintext'):
            in_data = False
            continue
        if in_data:
            blocks.append(line)
    return '\n'.join(blocks)


DEFAULT_LEAP_SECONDS = LeapSecondTable(
    entries=(
        (date(1972, 1, 1), 10), (date(1972, 7, 1), 11), (date(1973, 1, 1), 12),
        (date(1974, 1, 1), 13), (date(1975, 1, 1), 14), (date(1976, 1, 1), 15),
        (date(1977, 1, 1), 16), (date(1978, 1, 1), 17), (date(1979, 1, 1), 18),
        (date(1980, 1, 1), 19), (date(1981, 7, 1), 20), (date(1982, 7, 1), 21),
        (date(1983, 7, 1), 22), (date(1985, 7, 1), 23), (date(1988, 1, 1), 24),
        (date(1990, 1, 1), 25), (date(1991, 1, 1), 26), (date(1992, 7, 1), 27),
        (date(1993, 7, 1), 28), (date(1994, 7, 1), 29), (date(1996, 1, 1), 30),
        (date(1997, 7, 1), 31), (date(1999, 1, 1), 32), (date(2006, 1, 1), 33),
        (date(2009, 1, 1), 34), (date(2012, 7, 1), 35), (date(2015, 7, 1), 36),
        (date(2017, 1, 1), 37),
    ),
    # IERS Bulletin C: no leap second before this date
    expires=date(2027, 6, 28),
)

_leap_seconds = DEFAULT_LEAP_SECONDS


def get_leap_seconds() -> LeapSecondTable:
    """Return the leap second table used when none is passed explicitly."""
    return _leap_seconds


def set_leap_seconds(table: Union[LeapSecondTable, str, Path, None]) -> LeapSecondTable:
    """
    Replace the process-wide leap second table.

    Parameters
    ----------
    table : LeapSecondTable, path, or None
        New table, a path to an LSK text kernel, or None to restore the
        built-in table

    Returns
    -------
    LeapSecondTable
        The table now in use
    """
    global _leap_seconds
    if table is None:
        table = DEFAULT_LEAP_SECONDS
    elif not isinstance(table, LeapSecondTable):
        table = LeapSecondTable.from_lsk(table)
    _leap_seconds = table
    return table


# ========== SCALE CONVERSIONS ==========
def _tdb_minus_tt(tt_seconds: float, table: LeapSecondTable) -> float:
    m = table.m0 + table.m1 * tt_seconds
    e = m + table.eb * np.sin(m)
    return float(table.k * np.sin(e))


def _tt_to_tdb_ns(tt_ns: int, table: LeapSecondTable) -> int:
    delta = _tdb_minus_tt(tt_ns / NANOS_PER_SECOND, table)
    return tt_ns + round(delta * NANOS_PER_SECOND)


def _tdb_to_tt_ns(tdb_ns: int, table: LeapSecondTable) -> int:
    # Fixed point on the small TDB - TT term so no precision is lost in
    # subtracting two large second counts
    tdb = tdb_ns / NANOS_PER_SECOND
    delta = 0.0
    for _ in range(3):
        delta = _tdb_minus_tt(tdb - delta, table)
    return tdb_ns - round(delta * NANOS_PER_SECOND)


def _seconds_to_nanos(seconds) -> int:
    if isinstance(seconds, int):
        return seconds * NANOS_PER_SECOND
    if isinstance(seconds, Fraction):
        return round(seconds * NANOS_PER_SECOND)
    return round(Fraction(float(seconds)) * NANOS_PER_SECOND)


def _check_clock(hour, minute, second, max_second):
    if not 0 <= hour < 24:
        raise TimeError(f"Hour out of range: {hour}")
    if not 0 <= minute < 60:
        raise TimeError(f"Minute out of range: {minute}")
    if not 0 <= second < max_second:
        raise TimeError(f"Second out of range: {second}")


def _day_ordinal(year: int, month: int, day: int) -> int:
    try:
        return date(int(year), int(month), int(day)).toordinal()
    except ValueError as exc:
        raise TimeError(f"Invalid calendar date {year}-{month}-{day}: {exc}") from exc


def _split_nanos(ns_since_noon: int) -> Tuple[date, int]:
    """Split nanoseconds past J2000 noon into (date, nanoseconds of day)."""
    days, nanos_of_day = divmod(ns_since_noon + _HALF_DAY_NANOS, NANOS_PER_DAY)
    try:
        return date.fromordinal(_J2000_ORDINAL + days), nanos_of_day
    except (ValueError, OverflowError) as exc:
        raise TimeError(f"Epoch outside the representable calendar: {exc}") from exc


# ========== EPOCH ==========
class Epoch:
    """
    An absolute instant, stored as integer nanoseconds past J2000 TDB.

    Epoch is immutable and hashable. Comparisons against plain numbers
    treat the number as TDB seconds past J2000 (ephemeris time) rounded to
    the nearest nanosecond, so ``Epoch.from_et(x) == x`` always holds and
    coverage checks are exact to the nanosecond at any epoch.

    Parameters
    ----------
    nanoseconds : int
        TDB nanoseconds past J2000

    Examples
    --------
    >>> Epoch.from_et(0.0)
    Epoch(et=0.0)
    >>> e = Epoch.from_isoformat("2020-01-01T00:00:00 UTC")
    >>> (e + 60.0) - e
    60.0
    """
    __slots__ = ('_ns',)

    def __init__(self, nanoseconds: int = 0):
        if not isinstance(nanoseconds, (int, np.integer)):
            raise TypeError(
                f"Epoch expects integer nanoseconds, got {type(nanoseconds).__name__}; "
                f"use Epoch.from_et() for seconds")
        object.__setattr__(self, '_ns', int(nanoseconds))

    def __setattr__(self, name, value):
        raise AttributeError("Epoch is immutable")

    # ========== CONSTRUCTORS ==========
    @classmethod
    def from_et(cls, seconds) -> 'Epoch':
        """Create from TDB seconds past J2000 (ephemeris time)."""
        return cls(_seconds_to_nanos(seconds))

    @classmethod
    def from_seconds(cls, seconds, scale: Union[TimeScale, str] = TimeScale.TDB,
                     leap_seconds: Optional[LeapSecondTable] = None) -> 'Epoch':
        """
        Create from seconds past J2000 read in a continuous scale.

        For TAI and TT the count is measured from 2000-01-01T12:00:00 of that
        scale. UTC is not continuous and must go through a calendar reading.
        """
        scale = TimeScale.parse(scale)
        table = leap_seconds or _leap_seconds
        ns = _seconds_to_nanos(seconds)
        if scale == TimeScale.TDB:
            return cls(ns)
        if scale == TimeScale.TT:
            return cls(_tt_to_tdb_ns(ns, table))
        if scale == TimeScale.TAI:
            tt_ns = ns + _seconds_to_nanos(table.delta_t_a)
            return cls(_tt_to_tdb_ns(tt_ns, table))
        raise TimeError("UTC has no continuous seconds count; "
                        "use Epoch.from_calendar() or Epoch.from_isoformat()")

    @classmethod
    def from_calendar(cls, year: int, month: int, day: int, hour: int = 0,
                      minute: int = 0, second=0.0,
                      scale: Union[TimeScale, str] = TimeScale.UTC,
                      leap_seconds: Optional[LeapSecondTable] = None) -> 'Epoch':
        """
        Create from calendar components read in the given time scale.

        Parameters
        ----------
        year, month, day, hour, minute : int
        second : float, int or Fraction
            Seconds of minute; may reach 60.x during a UTC leap second
        scale : TimeScale or str, optional
            Time scale of the reading (default UTC)
        leap_seconds : LeapSecondTable, optional
            Table for UTC readings (default: process-wide table)

        Raises
        ------
        UnknownLeapSecondEra
            UTC reading outside the leap second table
        TimeError
            Invalid components
        """
        scale = TimeScale.parse(scale)
        table = leap_seconds or _leap_seconds
        ordinal = _day_ordinal(year, month, day)

        if scale == TimeScale.UTC:
            day_length = table.day_length(ordinal)
            last_minute = hour == 23 and minute == 59
            _check_clock(hour, minute, second,
                         60 + (day_length - SECONDS_PER_DAY) if last_minute else 60)
            tai_offset = table.offset_for_day(ordinal)
        else:
            _check_clock(hour, minute, second, 60)
            tai_offset = 0

        ns = ((ordinal - _J2000_ORDINAL) * NANOS_PER_DAY - _HALF_DAY_NANOS
              + (hour * 3600 + minute * 60) * NANOS_PER_SECOND
              + _seconds_to_nanos(second))

        if scale == TimeScale.UTC:
            tai_ns = ns + tai_offset * NANOS_PER_SECOND
            return cls.from_seconds(Fraction(tai_ns, NANOS_PER_SECOND),
                                    TimeScale.TAI, table)
        return cls.from_seconds(Fraction(ns, NANOS_PER_SECOND), scale, table)

    @classmethod
    def from_isoformat(cls, text: str,
                       scale: Union[TimeScale, str, None] = None,
                       leap_seconds: Optional[LeapSecondTable] = None) -> 'Epoch':
        """
        Parse ``YYYY-MM-DD[THH:MM[:SS[.fff]]] [SCALE]``.

        Month names (``2020-JAN-01 12:00``, ``2020 JAN 01``) are accepted,
        and a trailing scale token (UTC, TAI, TT, TDB, ET or Z) selects the
        time scale unless ``scale`` overrides it. The default scale is UTC.
        """
        match = _ISO_PATTERN.match(text.strip())
        if match is None:
            raise TimeError(f"Unrecognized epoch string {text!r}")
        year, month, day, hour, minute, second, token = match.groups()
        if month.isdigit():
            month_index = int(month)
        else:
            try:
                month_index = _MONTHS.index(month.upper()) + 1
            except ValueError:
                raise TimeError(f"Unknown month {month!r} in {text!r}") from None
        if scale is None:
            scale = token or TimeScale.UTC
        return cls.from_calendar(
            int(year), month_index, int(day),
            int(hour or 0), int(minute or 0),
            Fraction(second) if second else 0,
            scale=scale, leap_seconds=leap_seconds)

    @classmethod
    def from_datetime(cls, value: datetime,
                      leap_seconds: Optional[LeapSecondTable] = None) -> 'Epoch':
        """Create from a datetime. Naive datetimes are taken as UTC."""
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        second = Fraction(value.second) + Fraction(value.microsecond, 1_000_000)
        return cls.from_calendar(value.year, value.month, value.day,
                                 value.hour, value.minute, second,
                                 scale=TimeScale.UTC, leap_seconds=leap_seconds)

    @classmethod
    def from_jd(cls, jd: float, scale: Union[TimeScale, str] = TimeScale.TDB,
                leap_seconds: Optional[LeapSecondTable] = None) -> 'Epoch':
        """Create from a Julian date in a continuous scale."""
        seconds = (Fraction(float(jd)) - Fraction(J2000_JD)) * SECONDS_PER_DAY
        return cls.from_seconds(seconds, scale, leap_seconds)

    @classmethod
    def from_mjd(cls, mjd: float, scale: Union[TimeScale, str] = TimeScale.TDB,
                 leap_seconds: Optional[LeapSecondTable] = None) -> 'Epoch':
        """Create from a modified Julian date in a continuous scale."""
        seconds = (Fraction(float(mjd)) + Fraction(MJD_OFFSET)
                   - Fraction(J2000_JD)) * SECONDS_PER_DAY
        return cls.from_seconds(seconds, scale, leap_seconds)

    # ========== PROPERTY ACCESS ==========
    @property
    def nanoseconds(self) -> int:
        """TDB nanoseconds past J2000."""
        return self._ns

    @property
    def et(self) -> float:
        """TDB seconds past J2000 (ephemeris time)."""
        return self._ns / NANOS_PER_SECOND

    @property
    def centuries(self) -> float:
        """TDB Julian centuries past J2000."""
        return self._ns / (NANOS_PER_DAY * 36525)

    @property
    def days(self) -> float:
        """TDB days past J2000."""
        return self._ns / NANOS_PER_DAY

    # ========== CONVERSIONS ==========
    def to_seconds(self, scale: Union[TimeScale, str] = TimeScale.TDB,
                   leap_seconds: Optional[LeapSecondTable] = None) -> float:
        """Seconds past J2000 read in a continuous scale (TDB, TT or TAI)."""
        return self._nanos_in(TimeScale.parse(scale),
                              leap_seconds or _leap_seconds) / NANOS_PER_SECOND

    def _nanos_in(self, scale: TimeScale, table: LeapSecondTable) -> int:
        if scale == TimeScale.TDB:
            return self._ns
        tt_ns = _tdb_to_tt_ns(self._ns, table)
        if scale == TimeScale.TT:
            return tt_ns
        if scale == TimeScale.TAI:
            return tt_ns - _seconds_to_nanos(table.delta_t_a)
        raise TimeError("UTC has no continuous seconds count; use to_calendar()")

    def to_calendar(self, scale: Union[TimeScale, str] = TimeScale.UTC,
                    leap_seconds: Optional[LeapSecondTable] = None) -> CalendarDate:
        """
        Break the epoch down into calendar components in a time scale.

        During a UTC leap second the seconds field reads 60.x.

        Raises
        ------
        UnknownLeapSecondEra
            UTC requested outside the leap second table
        """
        scale = TimeScale.parse(scale)
        table = leap_seconds or _leap_seconds
        if scale != TimeScale.UTC:
            day, nanos_of_day = _split_nanos(self._nanos_in(scale, table))
            return _calendar(day, nanos_of_day, scale)

        tai_ns = self._nanos_in(TimeScale.TAI, table)
        # First guess with the offset of the TAI day, then settle on the UTC day
        guess, _ = _split_nanos(tai_ns)
        for ordinal in (guess.toordinal() - 1, guess.toordinal()):
            offset = table.offset_for_day(ordinal) if ordinal >= table._starts[0] \
                else None
            if offset is None:
                continue
            start = ((ordinal - _J2000_ORDINAL) * NANOS_PER_DAY - _HALF_DAY_NANOS
                     + offset * NANOS_PER_SECOND)
            length = table.day_length(ordinal) * NANOS_PER_SECOND
            if start <= tai_ns < start + length:
                return _calendar(date.fromordinal(ordinal), tai_ns - start,
                                 TimeScale.UTC)
        ordinal = guess.toordinal()
        offset = table.offset_for_day(ordinal)
        start = ((ordinal - _J2000_ORDINAL) * NANOS_PER_DAY - _HALF_DAY_NANOS
                 + offset * NANOS_PER_SECOND)
        return _calendar(date.fromordinal(ordinal), tai_ns - start, TimeScale.UTC)

    def isoformat(self, scale: Union[TimeScale, str] = TimeScale.UTC,
                  precision: int = 3,
                  leap_seconds: Optional[LeapSecondTable] = None) -> str:
        """Format as ``YYYY-MM-DDTHH:MM:SS.fff SCALE``."""
        return self.to_calendar(scale, leap_seconds).isoformat(precision)

    def to_jd(self, scale: Union[TimeScale, str] = TimeScale.TDB,
              leap_seconds: Optional[LeapSecondTable] = None) -> float:
        """Julian date in a continuous scale."""
        return J2000_JD + self.to_seconds(scale, leap_seconds) / SECONDS_PER_DAY

    def to_mjd(self, scale: Union[TimeScale, str] = TimeScale.TDB,
               leap_seconds: Optional[LeapSecondTable] = None) -> float:
        return self.to_jd(scale, leap_seconds) - MJD_OFFSET

    def to_datetime(self, leap_seconds: Optional[LeapSecondTable] = None) -> datetime:
        """
        Convert to a timezone-aware UTC datetime (microsecond resolution).

        Raises
        ------
        TimeError
            During a leap second, which datetime cannot represent
        """
        cal = self.to_calendar(TimeScale.UTC, leap_seconds)
        if cal.second >= 60:
            raise TimeError(f"{cal.isoformat()} is a leap second; "
                            f"datetime cannot represent it")
        whole = int(cal.second)
        micro = int(round((cal.second - whole) * 1_000_000))
        base = datetime(cal.year, cal.month, cal.day, cal.hour, cal.minute,
                        whole, tzinfo=timezone.utc)
        return base + timedelta(microseconds=micro)

    # ========== ARITHMETIC ==========
    def __add__(self, other):
        if isinstance(other, timedelta):
            return Epoch(self._ns + (other // timedelta(microseconds=1)) * 1000)
        if isinstance(other, (Real, Fraction)):
            return Epoch(self._ns + _seconds_to_nanos(other))
        return NotImplemented

    __radd__ = __add__

    def __sub__(self, other):
        if isinstance(other, Epoch):
            return (self._ns - other._ns) / NANOS_PER_SECOND
        if isinstance(other, timedelta):
            return Epoch(self._ns - (other // timedelta(microseconds=1)) * 1000)
        if isinstance(other, (Real, Fraction)):
            return Epoch(self._ns - _seconds_to_nanos(other))
        return NotImplemented

    def seconds_since(self, et) -> float:
        """Exact difference to a TDB seconds value, rounded once to float."""
        return float(Fraction(self._ns, NANOS_PER_SECOND) - Fraction(et))

    # ========== COMPARISON ==========
    def _key(self, other):
        if isinstance(other, Epoch):
            return self._ns, other._ns
        if isinstance(other, (Real, Fraction)) and not isinstance(other, bool):
            if not isinstance(other, (int, Fraction)) and not np.isfinite(float(other)):
                return self._ns / NANOS_PER_SECOND, float(other)
            # numbers are read as ET on the same nanosecond grid
            return self._ns, _seconds_to_nanos(other)
        return None

    def __eq__(self, other):
        key = self._key(other)
        return NotImplemented if key is None else key[0] == key[1]

    def __lt__(self, other):
        key = self._key(other)
        return NotImplemented if key is None else key[0] < key[1]

    def __le__(self, other):
        key = self._key(other)
        return NotImplemented if key is None else key[0] <= key[1]

    def __gt__(self, other):
        key = self._key(other)
        return NotImplemented if key is None else key[0] > key[1]

    def __ge__(self, other):
        key = self._key(other)
        return NotImplemented if key is None else key[0] >= key[1]

    def __hash__(self):
        return hash(('Epoch', self._ns))

    # ========== SPECIAL METHODS ==========
    def __float__(self):
        return self.et

    def __repr__(self):
        return f"Epoch(et={self.et!r})"

    def __str__(self):
        try:
            return self.isoformat(TimeScale.UTC)
        except TimeError:
            return self.isoformat(TimeScale.TDB)

    def __reduce__(self):
        return (Epoch, (self._ns,))


_ISO_PATTERN = re.compile(
    r'^(\d{4})[- ](\d{1,2}|[A-Za-z]{3})[- ](\d{1,2})'
    r'(?:[T ]+(\d{1,2}):(\d{2})(?::(\d{1,2}(?:\.\d*)?))?)?'
    r'\s*(UTC|TAI|TDT|TT|TDB|ET|Z)?$',
    re.IGNORECASE,
)


def _calendar(day: date, nanos_of_day: int, scale: TimeScale) -> CalendarDate:
    hours, rest = divmod(nanos_of_day, 3600 * NANOS_PER_SECOND)
    minutes, rest = divmod(rest, 60 * NANOS_PER_SECOND)
    if hours >= 24:
        # only reachable inside a UTC leap second
        hours, minutes = 23, 59
        rest = nanos_of_day - (23 * 3600 + 59 * 60) * NANOS_PER_SECOND
    return CalendarDate(day.year, day.month, day.day, int(hours), int(minutes),
                        rest / NANOS_PER_SECOND, scale)


def to_epoch(value, scale: Union[TimeScale, str, None] = None) -> Epoch:
    """
    Coerce a user value to an Epoch.

    Numbers are ephemeris time (TDB seconds past J2000) unless a scale is
    given; strings are parsed with :meth:`Epoch.from_isoformat`; datetimes
    are UTC.
    """
    if isinstance(value, Epoch):
        return value
    if isinstance(value, str):
        return Epoch.from_isoformat(value, scale)
    if isinstance(value, datetime):
        return Epoch.from_datetime(value)
    if isinstance(value, (Real, Fraction)) and not isinstance(value, bool):
        return Epoch.from_seconds(value, scale or TimeScale.TDB)
    raise TypeError(f"Cannot interpret {value!r} as an epoch")


def epoch_range(start, stop, count: int) -> List[Epoch]:
    """Evenly spaced epochs from start to stop inclusive."""
    if count < 2:
        raise ValueError("count must be at least 2")
    first, last = to_epoch(start), to_epoch(stop)
    span = last.nanoseconds - first.nanoseconds
    return [Epoch(first.nanoseconds + (span * i) // (count - 1))
            for i in range(count)]

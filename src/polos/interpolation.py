"""
Interpolation engine.

Evaluates a single segment at an epoch. Every routine here is pure: it reads
the segment's data words through its descriptor and returns a new result
object, so any number of threads can evaluate the same segment at once.

Three families are supported:

- Chebyshev (SPK 2/3, PCK 2/3): fixed-length records of coefficients, value
  by the Clenshaw recurrence, rate by the analytic derivative.
- Hermite (SPK 12/13): tabulated positions and velocities, interpolated with
  a Hermite polynomial through a window of states.
- Lagrange (SPK 8/9): tabulated states, each component interpolated with a
  Lagrange polynomial.

Abscissae are shifted to the start of the window before interpolating so the
polynomial arithmetic works on small offsets rather than on ~1e8 s epochs.
"""

import logging
from typing import Callable, Dict, Tuple, Union

import numpy as np

from .catalog import (STATE_SIZE, ChebyshevLayout, SegmentDescriptor,
                      SegmentType, TabulatedLayout)
from .epoch import Epoch
from .errors import DegenerateWindow, EpochOutOfWindow
from .rotations import euler_313
from .state import Orientation, State

logger = logging.getLogger(__name__)

EpochLike = Union[Epoch, float]


def _offset(epoch: EpochLike, reference: float) -> float:
    """Seconds from ``reference`` (TDB seconds past J2000) to ``epoch``."""
    if isinstance(epoch, Epoch):
        return epoch.seconds_since(reference)
    return float(epoch) - reference


# ========== CHEBYSHEV ==========
def clenshaw(coefficients: np.ndarray, s: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Evaluate Chebyshev expansions and their derivatives.

    Parameters
    ----------
    coefficients : np.ndarray
        Array of shape (m, n): m expansions of n coefficients each
    s : float
        Normalized abscissa in [-1, 1]

    Returns
    -------
    values : np.ndarray
        Shape (m,) sum of c_k T_k(s)
    derivatives : np.ndarray
        Shape (m,) derivative with respect to s
    """
    coefficients = np.atleast_2d(coefficients)
    m, n = coefficients.shape
    w0 = np.zeros(m)
    w1 = np.zeros(m)
    w2 = np.zeros(m)
    dw0 = np.zeros(m)
    dw1 = np.zeros(m)
    dw2 = np.zeros(m)
    s2 = 2.0 * s
    for j in range(n - 1, 0, -1):
        w2 = w1
        w1 = w0
        w0 = coefficients[:, j] + (s2 * w1 - w2)
        dw2 = dw1
        dw1 = dw0
        dw0 = w1 * 2.0 + dw1 * s2 - dw2
    values = coefficients[:, 0] + (s * w0 - w1)
    derivatives = w0 + s * dw0 - dw1
    return values, derivatives


def _chebyshev_record(segment: SegmentDescriptor, epoch: EpochLike):
    """Coefficient record covering the epoch and the normalized abscissa."""
    layout: ChebyshevLayout = segment.layout
    index = int(np.floor(_offset(epoch, layout.init) / layout.interval_length))
    index = min(max(index, 0), layout.n_records - 1)
    record = segment.data(index * layout.record_size, layout.record_size)
    mid, radius = float(record[0]), float(record[1])
    if not radius > 0:
        raise DegenerateWindow(
            f"Record {index} of segment '{segment.name}' has radius {radius}")
    s = _offset(epoch, mid) / radius
    coefficients = np.asarray(record[2:], dtype=float).reshape(
        layout.n_sets, layout.n_coefficients)
    return coefficients, s, radius


def _eval_chebyshev(segment: SegmentDescriptor, epoch: EpochLike):
    coefficients, s, radius = _chebyshev_record(segment, epoch)
    values, derivatives = clenshaw(coefficients[:3], s)
    if segment.layout.n_sets == 6:
        # rates are stored as their own expansions
        rates, _ = clenshaw(coefficients[3:], s)
        return values, rates
    return values, derivatives / radius


# ========== WINDOW SELECTION ==========
def select_window(n_states: int, window: int, low: int, near: int) -> Tuple[int, int]:
    """
    First index and size of the interpolation window.

    Parameters
    ----------
    n_states : int
        Number of tabulated states
    window : int
        Requested window size
    low : int
        Index of the last state at or before the epoch (clamped)
    near : int
        Index of the state nearest the epoch

    Odd windows are centered on the nearest state, even windows put the
    epoch between the two middle states. The window is shifted to stay
    inside the table and shrunk to the table size when it is larger.
    """
    window = min(window, n_states)
    if window % 2:
        first = near - (window - 1) // 2
    else:
        first = low - window // 2 + 1
    first = min(max(first, 0), n_states - window)
    return first, window


def _tabulated_window(segment: SegmentDescriptor, epoch: EpochLike):
    """Epochs (shifted), states and shifted query abscissa of the window."""
    layout: TabulatedLayout = segment.layout
    n = layout.n_states
    if layout.equal_steps:
        if n == 1:
            low = near = 0
        else:
            position = _offset(epoch, layout.first_epoch) / layout.step
            low = min(max(int(np.floor(position)), 0), n - 1)
            near = min(max(int(np.floor(position + 0.5)), 0), n - 1)
        first, size = select_window(n, layout.window_size, low, near)
        base = layout.first_epoch + first * layout.step
        xs = np.arange(size, dtype=float) * layout.step
    else:
        epochs = np.asarray(segment.data(layout.epochs_offset, n), dtype=float)
        t = epoch.et if isinstance(epoch, Epoch) else float(epoch)
        low = int(np.searchsorted(epochs, t, side='right')) - 1
        low = min(max(low, 0), n - 1)
        near = low
        # ties go to the later state, as in the equal-step branch
        if low + 1 < n and (epochs[low + 1] - t) <= (t - epochs[low]):
            near = low + 1
        first, size = select_window(n, layout.window_size, low, near)
        base = float(epochs[first])
        xs = epochs[first:first + size] - base
    if size > 1 and np.any(np.diff(xs) <= 0.0):
        raise DegenerateWindow(
            f"Segment '{segment.name}' has repeated or unordered epochs in "
            f"window [{first}, {first + size})")
    states = np.asarray(segment.data(first * STATE_SIZE, size * STATE_SIZE),
                        dtype=float).reshape(size, STATE_SIZE)
    return xs, states, _offset(epoch, base)


# ========== HERMITE ==========
def hermite(xs, values, derivatives, x: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Hermite interpolation through points with known values and derivatives.

    Parameters
    ----------
    xs : array-like
        Shape (n,) distinct abscissae
    values : array-like
        Shape (n, m) function values at ``xs``
    derivatives : array-like
        Shape (n, m) derivatives at ``xs``
    x : float
        Abscissa to evaluate at

    Returns
    -------
    value, derivative : np.ndarray
        Shape (m,) interpolated value and its derivative

    Notes
    -----
    Divided differences over the doubled abscissae (x0, x0, x1, x1, ...),
    built column by column in place as in the reference toolkit's HRMINT.
    """
    xs = np.asarray(xs, dtype=float)
    values = np.atleast_2d(np.asarray(values, dtype=float).T).T
    derivatives = np.atleast_2d(np.asarray(derivatives, dtype=float).T).T
    n = xs.size
    if n == 0:
        raise DegenerateWindow("Hermite interpolation needs at least one point")
    m = values.shape[1]
    w1 = np.empty((2 * n, m))
    w1[0::2] = values
    w1[1::2] = derivatives
    w2 = np.zeros((2 * n, m))

    # first column: value and first divided difference of each pair
    for i in range(n - 1):
        prev, this, nxt = 2 * i, 2 * i + 1, 2 * i + 2
        c1 = xs[i + 1] - x
        c2 = x - xs[i]
        denom = xs[i + 1] - xs[i]
        if denom == 0.0:
            raise DegenerateWindow(f"Repeated abscissa {xs[i]}")
        w2[prev] = w1[this]
        w2[this] = (w1[nxt] - w1[prev]) / denom
        temp = w1[this] * (x - xs[i]) + w1[prev]
        w1[this] = (c1 * w1[prev] + c2 * w1[nxt]) / denom
        w1[prev] = temp
    w2[2 * n - 2] = w1[2 * n - 1]
    w1[2 * n - 2] = w1[2 * n - 1] * (x - xs[n - 1]) + w1[2 * n - 2]

    # remaining columns
    for j in range(2, 2 * n):
        for i1 in range(1, 2 * n - j + 1):
            xi = (i1 + 1) // 2 - 1
            xij = (i1 + j + 1) // 2 - 1
            c1 = xs[xij] - x
            c2 = x - xs[xi]
            denom = xs[xij] - xs[xi]
            r = i1 - 1
            w2[r] = (c1 * w2[r] + c2 * w2[r + 1] + (w1[r + 1] - w1[r])) / denom
            w1[r] = (c1 * w1[r] + c2 * w1[r + 1]) / denom
    return w1[0].copy(), w2[0].copy()


def _eval_hermite(segment: SegmentDescriptor, epoch: EpochLike):
    xs, states, x = _tabulated_window(segment, epoch)
    return hermite(xs, states[:, :3], states[:, 3:], x)


# ========== LAGRANGE ==========
def lagrange(xs, values, x: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Lagrange interpolation and its derivative by Neville's scheme.

    Parameters
    ----------
    xs : array-like
        Shape (n,) distinct abscissae
    values : array-like
        Shape (n, m) function values
    x : float
        Abscissa to evaluate at

    Returns
    -------
    value, derivative : np.ndarray
        Shape (m,)
    """
    xs = np.asarray(xs, dtype=float)
    f = np.atleast_2d(np.asarray(values, dtype=float).T).T.copy()
    n = xs.size
    if n == 0:
        raise DegenerateWindow("Lagrange interpolation needs at least one point")
    d = np.zeros_like(f)
    for j in range(1, n):
        for i in range(n - j):
            c1 = x - xs[i + j]
            c2 = xs[i] - x
            denom = xs[i] - xs[i + j]
            if denom == 0.0:
                raise DegenerateWindow(f"Repeated abscissa {xs[i]}")
            d[i] = (c1 * d[i] + c2 * d[i + 1] + (f[i] - f[i + 1])) / denom
            f[i] = (c1 * f[i] + c2 * f[i + 1]) / denom
    return f[0].copy(), d[0].copy()


def _eval_lagrange(segment: SegmentDescriptor, epoch: EpochLike):
    xs, states, x = _tabulated_window(segment, epoch)
    position, _ = lagrange(xs, states[:, :3], x)
    velocity, _ = lagrange(xs, states[:, 3:], x)
    return position, velocity


# ========== DISPATCH ==========
_EVALUATORS: Dict[SegmentType, Callable] = {
    SegmentType.CHEBYSHEV_POSITION: _eval_chebyshev,
    SegmentType.CHEBYSHEV_STATE: _eval_chebyshev,
    SegmentType.LAGRANGE_EQUAL: _eval_lagrange,
    SegmentType.LAGRANGE_UNEQUAL: _eval_lagrange,
    SegmentType.HERMITE_EQUAL: _eval_hermite,
    SegmentType.HERMITE_UNEQUAL: _eval_hermite,
    SegmentType.CHEBYSHEV_ANGLES: _eval_chebyshev,
    SegmentType.CHEBYSHEV_ANGLES_RATES: _eval_chebyshev,
}


def evaluate_raw(segment: SegmentDescriptor, epoch: EpochLike) -> Tuple[np.ndarray, np.ndarray]:
    """
    Interpolated values and rates of a segment at an epoch.

    For SPK segments this is (position, velocity); for PCK segments the
    Euler angles (phi, delta, w) and their rates.

    Raises
    ------
    EpochOutOfWindow
        If the epoch lies outside the segment's closed coverage interval
    DegenerateWindow
        If the record or window cannot be interpolated
    """
    if not segment.contains(epoch):
        raise EpochOutOfWindow(
            f"Epoch {epoch!r} outside segment '{segment.name}' coverage "
            f"[{segment.start_epoch!r}, {segment.end_epoch!r}]")
    values, rates = _EVALUATORS[segment.segment_type](segment, epoch)
    return np.asarray(values, dtype=float), np.asarray(rates, dtype=float)


def evaluate(segment: SegmentDescriptor, epoch: EpochLike) -> Union[State, Orientation]:
    """
    Evaluate a segment at an epoch.

    Parameters
    ----------
    segment : SegmentDescriptor
        Segment to evaluate
    epoch : Epoch or float
        Query epoch (floats are TDB seconds past J2000)

    Returns
    -------
    State
        For SPK segments: target relative to center, in the segment frame
    Orientation
        For PCK segments: rotation from the base frame to the body-fixed frame

    Raises
    ------
    EpochOutOfWindow, DegenerateWindow
    """
    values, rates = evaluate_raw(segment, epoch)
    if not isinstance(epoch, Epoch):
        epoch = Epoch.from_et(epoch)
    if segment.segment_type.is_orientation:
        rotation, rate = euler_313(values[0], values[1], values[2],
                                   rates[0], rates[1], rates[2])
        return Orientation(rotation, rate, epoch=epoch,
                           from_frame=segment.frame_id,
                           to_frame=segment.target_id,
                           angles=values, angle_rates=rates)
    return State(values, rates, epoch=epoch, target=segment.target_id,
                 observer=segment.center_id, frame=segment.frame_id)

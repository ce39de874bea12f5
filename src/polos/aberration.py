"""
Light-time and stellar aberration corrections.

Corrections follow the reference toolkit's conventions:

- ``LT``: one light-time iteration (Newtonian, reception).
- ``CN``: light time iterated until it converges.
- ``+S``: stellar aberration from the observer's velocity, applied to the
  light-time corrected position.
- ``X`` prefix: transmission case; the target is evaluated at ``t + lt``
  instead of ``t - lt``.

With ``+S`` the velocity also carries the rate of change of the stellar
aberration correction, which needs the observer's acceleration. That is
taken from a central difference of the observer's velocity over
``DERIVATIVE_STEP`` seconds.
"""

import logging
from enum import Enum
from typing import Callable, Optional, Tuple

import numpy as np

from .config import config
from .errors import AberrationDidNotConverge
from .rotations import rotate_about_axis
from .state import State

logger = logging.getLogger(__name__)

DERIVATIVE_STEP = 1.0   # s, for the observer acceleration and the aberration rate


class Aberration(Enum):
    NONE = 'NONE'
    LT = 'LT'
    LT_S = 'LT+S'
    CN = 'CN'
    CN_S = 'CN+S'
    XLT = 'XLT'
    XLT_S = 'XLT+S'
    XCN = 'XCN'
    XCN_S = 'XCN+S'

    @classmethod
    def parse(cls, value) -> 'Aberration':
        """Accept an Aberration, None, or a string such as ``'lt+s'`` or ``'CN + S'``."""
        if isinstance(value, Aberration):
            return value
        if value is None:
            return cls.NONE
        if isinstance(value, str):
            key = ''.join(value.split()).upper()
            for member in cls:
                if member.value == key:
                    return member
        raise ValueError(f"Unknown aberration correction {value!r}; expected one of "
                         f"{[m.value for m in cls]}")

    @property
    def uses_light_time(self) -> bool:
        return self is not Aberration.NONE

    @property
    def converged(self) -> bool:
        return 'CN' in self.value

    @property
    def stellar(self) -> bool:
        return self.value.endswith('+S')

    @property
    def transmission(self) -> bool:
        return self.value.startswith('X')

    @property
    def direction(self) -> int:
        """-1 for reception (look back in time), +1 for transmission."""
        return 1 if self.transmission else -1


def stellar_aberration(position, observer_velocity, transmission: bool = False,
                       c: Optional[float] = None) -> np.ndarray:
    """
    Apply stellar aberration to an apparent target position.

    Parameters
    ----------
    position : array-like
        Light-time corrected target position relative to the observer [km]
    observer_velocity : array-like
        Observer velocity relative to the solar system barycenter [km/s]
    transmission : bool, optional
        Correct for a signal sent from the observer (default: reception)
    c : float, optional
        Speed of light [km/s], defaults to ``config.SPEED_OF_LIGHT_KM_S``

    Returns
    -------
    np.ndarray
        Position rotated toward the observer's velocity
    """
    c = config.SPEED_OF_LIGHT_KM_S if c is None else c
    p = np.asarray(position, dtype=float)
    v = np.asarray(observer_velocity, dtype=float)
    if transmission:
        v = -v
    norm = np.linalg.norm(p)
    if norm == 0.0:
        return p.copy()
    vbyc = v / c
    if np.dot(vbyc, vbyc) >= 1.0:
        raise ValueError("Observer velocity is not below the speed of light")
    h = np.cross(p / norm, vbyc)
    sin_phi = np.linalg.norm(h)
    if sin_phi == 0.0:
        return p.copy()
    return rotate_about_axis(p, h, np.arcsin(sin_phi))


def stellar_aberration_rate(position, velocity, observer_velocity,
                            observer_acceleration, transmission: bool = False,
                            c: Optional[float] = None,
                            step: float = DERIVATIVE_STEP) -> np.ndarray:
    """
    Time derivative of the stellar aberration correction [km/s].

    The correction ``stellar_aberration(p, v_obs) - p`` is differenced over
    ``+/- step`` seconds along the linearized motion of the light-time
    corrected position and of the observer velocity.
    """
    p = np.asarray(position, dtype=float)
    v = np.asarray(velocity, dtype=float)
    vo = np.asarray(observer_velocity, dtype=float)
    ao = np.asarray(observer_acceleration, dtype=float)

    def correction(dt):
        shifted = p + v * dt
        return stellar_aberration(shifted, vo + ao * dt, transmission, c) - shifted

    return (correction(step) - correction(-step)) / (2.0 * step)


def light_time_state(body_state: Callable[[int, object], State], target: int,
                     observer: int, epoch, correction: Aberration
                     ) -> Tuple[State, State]:
    """
    Apparent state of ``target`` seen by ``observer``.

    Parameters
    ----------
    body_state : callable
        ``body_state(body, epoch)`` returns a body's state relative to a fixed
        inertial reference body, in the J2000 frame
    target, observer : int
        NAIF ids
    epoch : Epoch
        Observation epoch
    correction : Aberration
        Correction to apply

    Returns
    -------
    apparent : State
        Corrected target state relative to the observer, J2000 frame, with
        ``light_time`` set
    observer_state : State
        Observer state at ``epoch`` relative to the reference body

    Raises
    ------
    AberrationDidNotConverge
        If a converged correction is still changing after
        ``config.LIGHT_TIME_MAX_ITERATIONS`` iterations
    """
    c = config.SPEED_OF_LIGHT_KM_S
    obs = body_state(observer, epoch)
    geometric = body_state(target, epoch)
    if correction is Aberration.NONE:
        rel = geometric.position - obs.position
        return (State(rel, geometric.velocity - obs.velocity, epoch=epoch,
                      target=target, observer=observer, frame=geometric.frame,
                      light_time=np.linalg.norm(rel) / c), obs)

    direction = correction.direction
    lt = np.linalg.norm(geometric.position - obs.position) / c
    iterations = config.LIGHT_TIME_MAX_ITERATIONS if correction.converged else 1
    converged = not correction.converged
    tgt = geometric
    previous = lt
    for _ in range(iterations):
        tgt = body_state(target, epoch + direction * lt)
        previous = lt
        lt = np.linalg.norm(tgt.position - obs.position) / c
        if abs(lt - previous) <= config.LIGHT_TIME_TOLERANCE * max(lt, 1.0):
            converged = True
            break
    if not converged:
        raise AberrationDidNotConverge(
            f"Light time between {observer} and {target} did not converge in "
            f"{iterations} iterations (last change {abs(lt - previous):.3e} s)",
            iterations=iterations, light_time=lt)

    r = tgt.position - obs.position
    rdist = np.linalg.norm(r)
    # derivative of the light time, from c * lt = |r_t(t -/+ lt) - r_o(t)|
    if rdist == 0.0:
        dlt = 0.0
    else:
        dlt = (np.dot(r, tgt.velocity - obs.velocity)
               / (c * rdist + direction * -np.dot(r, tgt.velocity)))
    velocity = tgt.velocity * (1.0 + direction * dlt) - obs.velocity

    position = r
    if correction.stellar:
        position = stellar_aberration(r, obs.velocity, correction.transmission, c)
        acceleration = (body_state(observer, epoch + DERIVATIVE_STEP).velocity
                        - body_state(observer, epoch - DERIVATIVE_STEP).velocity
                        ) / (2.0 * DERIVATIVE_STEP)
        velocity = velocity + stellar_aberration_rate(
            r, velocity, obs.velocity, acceleration, correction.transmission, c)
    logger.debug("Light time %s -> %s: %.9f s (%s)", observer, target, lt,
                 correction.value)
    return (State(position, velocity, epoch=epoch, target=target,
                  observer=observer, frame=tgt.frame, light_time=lt), obs)

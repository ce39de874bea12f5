'''Query result types
State and Orientation class definitions'''

from typing import Optional, Sequence

import numpy as np

from .config import config
from .epoch import Epoch
from .rotations import angular_velocity, matrix_to_quaternion


def _frozen(values, shape) -> np.ndarray:
    array = np.array(values, dtype=float)
    if array.shape != shape:
        raise ValueError(f"Expected shape {shape}, got {array.shape}")
    array.flags.writeable = False
    return array


class State:
    """
    Cartesian state of a target relative to an observer.

    State is immutable: the underlying arrays are read-only and a new
    instance is produced by every operation.

    Parameters
    ----------
    position : array-like
        Position [km]
    velocity : array-like
        Velocity [km/s]
    epoch : Epoch
        Epoch at which the state applies (observation epoch)
    target : int, optional
        NAIF id of the target
    observer : int, optional
        NAIF id of the observer (center)
    frame : int, optional
        Frame id in which the vectors are expressed
    light_time : float, optional
        One-way light time between observer and target [s]
    """
    # ========== CLASS CONSTANTS ==========
    _HASH_DECIMALS = 10     # Rounding for consistent hashing

    # ========== CONSTRUCTION ==========
    def __init__(self, position, velocity, epoch: Optional[Epoch] = None,
                 target: Optional[int] = None, observer: Optional[int] = None,
                 frame: Optional[int] = None, light_time: float = 0.0):
        self._elements = _frozen(np.concatenate([np.ravel(position),
                                                 np.ravel(velocity)]), (6,))
        self._epoch = epoch
        self._target = target
        self._observer = observer
        self._frame = frame
        self._light_time = float(light_time)

    @classmethod
    def from_array(cls, array, **kwargs) -> 'State':
        """Create from a 6-element [x, y, z, vx, vy, vz] array."""
        array = np.asarray(array, dtype=float)
        if array.shape != (6,):
            raise ValueError(f"State array must have shape (6,), got {array.shape}")
        return cls(array[:3], array[3:], **kwargs)

    def replace(self, **kwargs) -> 'State':
        """Copy with some attributes replaced."""
        values = dict(position=self.position, velocity=self.velocity,
                      epoch=self._epoch, target=self._target,
                      observer=self._observer, frame=self._frame,
                      light_time=self._light_time)
        values.update(kwargs)
        return State(**values)

    # ========== PROPERTY ACCESS ==========
    @property
    def position(self) -> np.ndarray:
        return self._elements[:3]

    @property
    def velocity(self) -> np.ndarray:
        return self._elements[3:]

    @property
    def epoch(self) -> Optional[Epoch]:
        return self._epoch

    @property
    def target(self) -> Optional[int]:
        return self._target

    @property
    def observer(self) -> Optional[int]:
        return self._observer

    @property
    def frame(self) -> Optional[int]:
        return self._frame

    @property
    def light_time(self) -> float:
        return self._light_time

    @property
    def range(self) -> float:
        """Distance between target and observer [km]."""
        return float(np.linalg.norm(self.position))

    @property
    def range_rate(self) -> float:
        """Rate of change of the range [km/s]."""
        r = self.range
        return float(np.dot(self.position, self.velocity) / r) if r > 0 else 0.0

    # ========== ORBITAL PROPERTIES ==========
    def to_keplerian(self, mu: float) -> np.ndarray:
        """
        Osculating Keplerian elements [a, e, i, RAAN, argp, nu] for a
        gravitational parameter ``mu`` [km^3/s^2].

        Uses algorithm from Flores & Fantino, Advances in Space Research, v.75,pp.4910
        """
        if mu <= 0:
            raise ValueError(f"Gravitational parameter must be positive, got {mu}")
        rvec = self.position
        vvec = self.velocity
        # calculate angular momentum vector h = r x v
        hvec = np.cross(rvec, vvec)
        if np.linalg.norm(hvec) == 0.0:
            raise ValueError("Rectilinear state has no orbital plane")
        # calculate inclination
        i = np.arctan2(np.sqrt(hvec[0]**2 + hvec[1]**2), hvec[2])
        # find longitude of ascending node
        omega = np.arctan2(hvec[0], -hvec[1])
        # define line of nodes vector
        nhat = np.array([np.cos(omega), np.sin(omega), 0])
        # define an intermediate vector b in the orbit plane
        bhat = np.cross(hvec / np.linalg.norm(hvec), nhat)
        # find semimajor axis from energy equation
        a = ((2 / np.linalg.norm(rvec)) - (np.dot(vvec, vvec) / mu))**(-1)
        # find eccentricity vector
        evec = np.cross(vvec, hvec) / mu - rvec / np.linalg.norm(rvec)
        # find argument of periapsis and true anomaly
        w = np.arctan2(np.dot(evec, bhat), np.dot(evec, nhat))
        nu = np.arctan2(np.dot(rvec, bhat), np.dot(rvec, nhat)) - w
        e = np.linalg.norm(evec)
        return np.array([a, e, i, omega, w, nu])

    def specific_energy(self, mu: float) -> float:
        """Specific orbital energy (energy per unit mass) [km^2/s^2]"""
        return float(np.dot(self.velocity, self.velocity) / 2
                     - mu / np.linalg.norm(self.position))

    # ========== UTILITY METHODS ==========
    def to_array(self) -> np.ndarray:
        """Writable copy of [x, y, z, vx, vy, vz]."""
        return self._elements.copy()

    def isclose(self, other: 'State', rtol: Optional[float] = None,
                atol: Optional[float] = None) -> bool:
        """Compare vectors with tolerances (defaults from config)."""
        rtol = config.EQUALITY_RTOL if rtol is None else rtol
        atol = config.EQUALITY_ATOL if atol is None else atol
        return np.allclose(self._elements, other._elements, rtol=rtol, atol=atol)

    # ========== BATCH OPERATIONS ==========
    class batch:
        """Batch operations on lists of State objects."""

        @staticmethod
        def to_numpy(states: Sequence['State']) -> np.ndarray:
            """Array of shape (n, 6) with the state vectors."""
            return np.array([s._elements for s in states])

        @staticmethod
        def to_dataframe(states: Sequence['State'], index=None):
            """
            Convert a list of States to a pandas DataFrame.

            Parameters
            ----------
            states : list of State
            index : array-like, optional
                Index for the DataFrame. Defaults to the ephemeris time of
                each state.

            Returns
            -------
            pd.DataFrame
                Columns ['x', 'y', 'z', 'vx', 'vy', 'vz', 'light_time']
            """
            import pandas as pd

            columns = ['x', 'y', 'z', 'vx', 'vy', 'vz']
            if not states:
                return pd.DataFrame(columns=columns + ['light_time'])
            if index is None and all(s.epoch is not None for s in states):
                index = pd.Index([s.epoch.et for s in states], name='et')
            elif index is not None and len(index) != len(states):
                raise ValueError(
                    f"Index length ({len(index)}) must match "
                    f"number of states ({len(states)})")
            df = pd.DataFrame(State.batch.to_numpy(states), columns=columns,
                              index=index)
            df['light_time'] = [s.light_time for s in states]
            return df

    # ========== SPECIAL METHODS ==========
    def __len__(self):
        return 6

    def __getitem__(self, key):
        return self._elements[key]

    def __iter__(self):
        return iter(self._elements)

    def __sub__(self, other):
        if not isinstance(other, State):
            return NotImplemented
        return State(self.position - other.position,
                     self.velocity - other.velocity,
                     epoch=self._epoch, target=self._target,
                     observer=other._target, frame=self._frame)

    def __neg__(self):
        return State(-self.position, -self.velocity, epoch=self._epoch,
                     target=self._observer, observer=self._target,
                     frame=self._frame, light_time=self._light_time)

    def __eq__(self, other):
        #Check equality with tolerance
        if not isinstance(other, State):
            return False
        return (self._frame == other._frame and
                np.allclose(self._elements, other._elements,
                            rtol=config.EQUALITY_RTOL,
                            atol=config.EQUALITY_ATOL))

    def __hash__(self):
        #Hash with rounding to match equality
        rounded = tuple(round(x, self._HASH_DECIMALS) for x in self._elements)
        return hash((self._frame, rounded))

    def __repr__(self):
        return (f"State(position={self.position.tolist()}, "
                f"velocity={self.velocity.tolist()}, target={self._target}, "
                f"observer={self._observer}, frame={self._frame}, "
                f"epoch={self._epoch!r})")

    def __str__(self):
        r = self.position
        v = self.velocity
        return (f"State of {self._target} relative to {self._observer} "
                f"(frame {self._frame}) at {self._epoch}:\n"
                f"  r = [{r[0]:16.6f}, {r[1]:16.6f}, {r[2]:16.6f}] km\n"
                f"  v = [{v[0]:16.9f}, {v[1]:16.9f}, {v[2]:16.9f}] km/s")


class Orientation:
    """
    Orientation of a body-fixed frame evaluated from an orientation segment.

    Parameters
    ----------
    rotation : array-like
        3x3 matrix from the base (inertial) frame to the body-fixed frame
    rotation_rate : array-like
        Time derivative of ``rotation`` [1/s]
    epoch : Epoch, optional
    from_frame : int, optional
        Base frame id
    to_frame : int, optional
        Body-fixed frame id
    angles : array-like, optional
        Euler angles (phi, delta, w) [rad] the rotation was built from
    angle_rates : array-like, optional
        Rates of the Euler angles [rad/s]
    """

    def __init__(self, rotation, rotation_rate, epoch: Optional[Epoch] = None,
                 from_frame: Optional[int] = None, to_frame: Optional[int] = None,
                 angles=None, angle_rates=None):
        self._rotation = _frozen(rotation, (3, 3))
        self._rotation_rate = _frozen(rotation_rate, (3, 3))
        self._epoch = epoch
        self._from_frame = from_frame
        self._to_frame = to_frame
        self._angles = None if angles is None else _frozen(angles, (3,))
        self._angle_rates = None if angle_rates is None else _frozen(angle_rates, (3,))

    @property
    def rotation(self) -> np.ndarray:
        return self._rotation

    @property
    def rotation_rate(self) -> np.ndarray:
        return self._rotation_rate

    @property
    def angular_velocity(self) -> np.ndarray:
        """Angular velocity of the body frame, in the base frame [rad/s]."""
        return angular_velocity(self._rotation, self._rotation_rate)

    @property
    def quaternion(self) -> np.ndarray:
        return matrix_to_quaternion(self._rotation)

    @property
    def epoch(self) -> Optional[Epoch]:
        return self._epoch

    @property
    def from_frame(self) -> Optional[int]:
        return self._from_frame

    @property
    def to_frame(self) -> Optional[int]:
        return self._to_frame

    @property
    def angles(self) -> Optional[np.ndarray]:
        return self._angles

    @property
    def angle_rates(self) -> Optional[np.ndarray]:
        return self._angle_rates

    def __repr__(self):
        return (f"Orientation(from_frame={self._from_frame}, "
                f"to_frame={self._to_frame}, epoch={self._epoch!r})")
'''Reference frame graph
Frame, FrameTransform, IAURotationModel and FrameGraph class definitions

Frames form a shallow tree rooted at the inertial J2000 frame. Each frame
other than the root has exactly one edge to its parent, of one of three
kinds: a constant rotation, an analytic IAU rotation model, or orientation
read from a loaded PCK segment. A transform between two frames is composed
through their lowest common ancestor.'''

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .bodies import Ellipsoid
from .config import config
from .epoch import Epoch, NANOS_PER_SECOND, SECONDS_PER_DAY
from .errors import NoCoverage, NoPath, UnknownFrame
from .interpolation import evaluate
from .rotations import (angular_velocity, is_rotation, matrix_to_quaternion,
                        pole_rotation)

logger = logging.getLogger(__name__)

J2000_ID = 1
SECONDS_PER_CENTURY = 36525.0 * SECONDS_PER_DAY
_DEG = np.pi / 180.0

FrameRef = Union[int, str]


class FrameKind(Enum):
    ROOT = 'root'          # the inertial root of the tree
    FIXED = 'fixed'        # constant rotation from the parent
    IAU = 'iau'            # analytic pole and prime meridian model
    KERNEL = 'kernel'      # orientation from a PCK segment


# ========== TRANSFORMS ==========
@dataclass(frozen=True, eq=False)
class FrameTransform:
    """
    State transformation between two frames at one epoch.

    A position and velocity expressed in ``from_frame`` map to
    ``to_frame`` as::

        p_b = R p_a + t
        v_b = dR p_a + R v_a + v

    where ``R`` is ``rotation``, ``dR`` is ``rotation_rate``, and ``t``/``v``
    are ``translation`` and ``velocity``: the origin of ``from_frame`` seen
    from the origin of ``to_frame``, expressed in ``to_frame``. Transforms
    built by the frame graph alone carry zero translation.
    """
    rotation: np.ndarray
    rotation_rate: np.ndarray
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    epoch: Optional[Epoch] = None
    from_frame: Optional[int] = None
    to_frame: Optional[int] = None

    def __post_init__(self):
        for name, shape in (('rotation', (3, 3)), ('rotation_rate', (3, 3)),
                            ('translation', (3,)), ('velocity', (3,))):
            array = np.array(getattr(self, name), dtype=float)
            if array.shape != shape:
                raise ValueError(f"{name} must have shape {shape}, got {array.shape}")
            array.flags.writeable = False
            object.__setattr__(self, name, array)

    @classmethod
    def identity(cls, frame: Optional[int] = None,
                 epoch: Optional[Epoch] = None) -> 'FrameTransform':
        return cls(np.eye(3), np.zeros((3, 3)), epoch=epoch,
                   from_frame=frame, to_frame=frame)

    # ========== DERIVED QUANTITIES ==========
    @property
    def quaternion(self) -> np.ndarray:
        """Scalar-first unit quaternion of the rotation."""
        return matrix_to_quaternion(self.rotation)

    @property
    def angular_velocity(self) -> np.ndarray:
        """Angular velocity of ``to_frame`` relative to ``from_frame``,
        expressed in ``from_frame`` [rad/s]."""
        return angular_velocity(self.rotation, self.rotation_rate)

    @property
    def matrix(self) -> np.ndarray:
        """6x6 state transformation matrix [[R, 0], [dR, R]]."""
        m = np.zeros((6, 6))
        m[:3, :3] = self.rotation
        m[3:, 3:] = self.rotation
        m[3:, :3] = self.rotation_rate
        return m

    @property
    def is_identity(self) -> bool:
        return (np.array_equal(self.rotation, np.eye(3))
                and not np.any(self.rotation_rate)
                and not np.any(self.translation) and not np.any(self.velocity))

    # ========== OPERATIONS ==========
    def apply(self, position, velocity=None) -> Tuple[np.ndarray, np.ndarray]:
        """Map a position (and velocity) from ``from_frame`` to ``to_frame``."""
        p = np.asarray(position, dtype=float)
        v = np.zeros(3) if velocity is None else np.asarray(velocity, dtype=float)
        return (self.rotation @ p + self.translation,
                self.rotation_rate @ p + self.rotation @ v + self.velocity)

    def inverse(self) -> 'FrameTransform':
        rt = self.rotation.T
        drt = self.rotation_rate.T
        return FrameTransform(
            rt, drt,
            translation=-(rt @ self.translation),
            velocity=-(drt @ self.translation + rt @ self.velocity),
            epoch=self.epoch, from_frame=self.to_frame, to_frame=self.from_frame)

    def compose(self, other: 'FrameTransform') -> 'FrameTransform':
        """Transform applying ``self`` first, then ``other``."""
        r = other.rotation @ self.rotation
        dr = other.rotation_rate @ self.rotation + other.rotation @ self.rotation_rate
        t = other.rotation @ self.translation + other.translation
        v = (other.rotation_rate @ self.translation
             + other.rotation @ self.velocity + other.velocity)
        return FrameTransform(r, dr, t, v, epoch=self.epoch or other.epoch,
                              from_frame=self.from_frame, to_frame=other.to_frame)

    def isclose(self, other: 'FrameTransform', rtol: Optional[float] = None,
                atol: Optional[float] = None) -> bool:
        rtol = config.EQUALITY_RTOL if rtol is None else rtol
        atol = config.EQUALITY_ATOL if atol is None else atol
        return all(np.allclose(a, b, rtol=rtol, atol=atol) for a, b in (
            (self.rotation, other.rotation),
            (self.rotation_rate, other.rotation_rate),
            (self.translation, other.translation),
            (self.velocity, other.velocity)))

    def __matmul__(self, other: 'FrameTransform') -> 'FrameTransform':
        # matrix convention: (A @ B) applies B first
        return other.compose(self)

    def __repr__(self):
        return (f"FrameTransform(from_frame={self.from_frame}, "
                f"to_frame={self.to_frame}, epoch={self.epoch!r})")


# ========== IAU MODELS ==========
@dataclass(frozen=True)
class IAURotationModel:
    """
    Pole and prime meridian model of the IAU Working Group on Cartographic
    Coordinates and Rotational Elements.

    Angles are in degrees, with T in Julian centuries and d in days past
    J2000 TDB::

        alpha = ra[0] + ra[1] T + sum ra_terms[i] sin(theta_i)
        delta = dec[0] + dec[1] T + sum dec_terms[i] cos(theta_i)
        W = pm[0] + pm[1] d + pm[2] d^2 + sum pm_terms[i] sin(theta_i)
        theta_i = angles[i][0] + angles[i][1] T
    """
    ra: Tuple[float, float]
    dec: Tuple[float, float]
    pm: Tuple[float, float, float]
    angles: Tuple[Tuple[float, float], ...] = ()
    ra_terms: Tuple[float, ...] = ()
    dec_terms: Tuple[float, ...] = ()
    pm_terms: Tuple[float, ...] = ()

    def __post_init__(self):
        n = len(self.angles)
        for name in ('ra_terms', 'dec_terms', 'pm_terms'):
            terms = getattr(self, name)
            if len(terms) > n:
                raise ValueError(
                    f"{name} has {len(terms)} terms but only {n} angles are defined")

    def pole_angles(self, epoch) -> Tuple[np.ndarray, np.ndarray]:
        """
        (alpha, delta, W) [rad] and their rates [rad/s] at an epoch.
        """
        if isinstance(epoch, Epoch):
            d = epoch.nanoseconds / (SECONDS_PER_DAY * NANOS_PER_SECOND)
        else:
            d = float(epoch) / SECONDS_PER_DAY
        t = d / 36525.0

        theta = np.array([a[0] + a[1] * t for a in self.angles]) * _DEG
        theta_dot = np.array([a[1] for a in self.angles]) * _DEG / SECONDS_PER_CENTURY

        def periodic(terms, func):
            if not terms:
                return 0.0
            return float(np.dot(terms, func(theta[:len(terms)])))

        def periodic_rate(terms, func):
            if not terms:
                return 0.0
            return float(np.dot(terms, func(theta[:len(terms)]) * theta_dot[:len(terms)]))

        alpha = self.ra[0] + self.ra[1] * t + periodic(self.ra_terms, np.sin)
        delta = self.dec[0] + self.dec[1] * t + periodic(self.dec_terms, np.cos)
        w = (self.pm[0] + self.pm[1] * d + self.pm[2] * d * d
             + periodic(self.pm_terms, np.sin))

        alpha_dot = (self.ra[1] / SECONDS_PER_CENTURY
                     + periodic_rate(self.ra_terms, np.cos))
        delta_dot = (self.dec[1] / SECONDS_PER_CENTURY
                     - periodic_rate(self.dec_terms, np.sin))
        w_dot = ((self.pm[1] + 2.0 * self.pm[2] * d) / SECONDS_PER_DAY
                 + periodic_rate(self.pm_terms, np.cos))

        # keep W small before converting so the rotation stays accurate
        w = np.mod(w, 360.0)
        return (np.array([alpha, delta, w]) * _DEG,
                np.array([alpha_dot, delta_dot, w_dot]) * _DEG)

    def rotation(self, epoch) -> Tuple[np.ndarray, np.ndarray]:
        """Rotation from J2000 to the body-fixed frame and its derivative."""
        (alpha, delta, w), (alpha_dot, delta_dot, w_dot) = self.pole_angles(epoch)
        return pole_rotation(alpha, delta, w, alpha_dot, delta_dot, w_dot)


# ========== FRAMES ==========
@dataclass(frozen=True)
class Frame:
    """
    One node of the frame tree.

    Attributes
    ----------
    frame_id : int
        Numeric frame id
    name : str
        Upper-case frame name
    kind : FrameKind
        Kind of the edge to the parent
    parent_id : int, optional
        Frame the edge rotates from (None for the root)
    center : int, optional
        NAIF id of the body at the frame's origin
    rotation : np.ndarray, optional
        Constant rotation parent -> frame, FIXED frames only
    model : IAURotationModel, optional
        Rotation model, IAU frames only
    """
    frame_id: int
    name: str
    kind: FrameKind
    parent_id: Optional[int] = None
    center: Optional[int] = None
    rotation: Optional[np.ndarray] = field(default=None, compare=False)
    model: Optional[IAURotationModel] = None

    def __post_init__(self):
        object.__setattr__(self, 'name', self.name.strip().upper())
        if self.kind is FrameKind.FIXED:
            if self.rotation is None or not is_rotation(self.rotation):
                raise ValueError(
                    f"Fixed frame {self.name} needs a proper 3x3 rotation matrix")
            rotation = np.array(self.rotation, dtype=float)
            rotation.flags.writeable = False
            object.__setattr__(self, 'rotation', rotation)
        if self.kind is FrameKind.IAU and self.model is None:
            raise ValueError(f"IAU frame {self.name} needs a rotation model")
        if self.kind is not FrameKind.ROOT and self.parent_id is None:
            raise ValueError(f"Frame {self.name} needs a parent frame")

    @property
    def is_inertial(self) -> bool:
        return self.kind in (FrameKind.ROOT, FrameKind.FIXED)


@dataclass(frozen=True)
class GeodeticFrame:
    """
    Frame carrying the planetary constants of the body at its origin.

    Attributes
    ----------
    ephemeris_id : int
        NAIF id of the body at the origin
    orientation_id : int
        Frame id of the axes
    mu_km3_s2 : float
        Gravitational parameter of the body [km^3/s^2]
    shape : Ellipsoid
        Shape of the body
    angular_velocity_deg_s : float
        Spin rate of the axes relative to J2000 [deg/s]
    name : str
        Display name, ``'<body> <frame>'``
    """
    ephemeris_id: int
    orientation_id: int
    mu_km3_s2: float
    shape: Ellipsoid
    angular_velocity_deg_s: float = 0.0
    name: str = ''

    @property
    def mean_equatorial_radius_km(self) -> float:
        return self.shape.mean_equatorial_radius_km

    @property
    def semi_major_radius_km(self) -> float:
        return self.shape.semi_major_equatorial_radius_km

    @property
    def flattening(self) -> float:
        return self.shape.flattening

    def __str__(self):
        name = self.name or f"{self.ephemeris_id} {self.orientation_id}"
        return f"{name} (mu = {self.mu_km3_s2} km^3/s^2, {self.shape})"


# ========== GRAPH ==========
class FrameGraph:
    """
    Immutable tree of frames.

    Every ``with_*``/``register_*`` method returns a new graph, so a graph
    held by a pool snapshot never changes underneath a query.

    Parameters
    ----------
    frames : iterable of Frame
        Frames of the tree; exactly one must be the ROOT
    orientation_catalog : SegmentCatalog, optional
        PCK catalog used to evaluate KERNEL frames
    """

    def __init__(self, frames: Iterable[Frame] = (), orientation_catalog=None):
        self._frames: Dict[int, Frame] = {}
        self._names: Dict[str, int] = {}
        for frame in frames:
            self._frames[frame.frame_id] = frame
            self._names[frame.name] = frame.frame_id
        self._catalog = orientation_catalog

    # ========== CONSTRUCTION ==========
    def with_frame(self, frame: Frame, replace_existing: bool = False) -> 'FrameGraph':
        """Return a new graph with ``frame`` added."""
        if not replace_existing:
            if frame.frame_id in self._frames:
                raise ValueError(f"Frame id {frame.frame_id} is already registered "
                                 f"as {self._frames[frame.frame_id].name}")
            if frame.name in self._names:
                raise ValueError(f"Frame name {frame.name} is already registered")
        if frame.parent_id is not None and frame.parent_id not in self._frames:
            raise UnknownFrame(f"Parent frame {frame.parent_id} of {frame.name} "
                               f"is not registered")
        frames = [f for f in self._frames.values() if f.frame_id != frame.frame_id]
        return FrameGraph(frames + [frame], self._catalog)

    def register_fixed_frame(self, name: str, frame_id: int, parent: FrameRef,
                             rotation, center: Optional[int] = None) -> 'FrameGraph':
        """
        Add a frame related to ``parent`` by a constant rotation.

        ``rotation`` maps parent coordinates to the new frame.
        """
        parent_frame = self.frame(parent)
        if center is None:
            center = parent_frame.center
        return self.with_frame(Frame(frame_id, name, FrameKind.FIXED,
                                     parent_frame.frame_id, center,
                                     rotation=rotation))

    def register_iau_frame(self, name: str, frame_id: int, center: int,
                           model: IAURotationModel) -> 'FrameGraph':
        """Add a body-fixed frame driven by an IAU rotation model."""
        return self.with_frame(Frame(frame_id, name, FrameKind.IAU, J2000_ID,
                                     center, model=model))

    def with_orientation_catalog(self, catalog,
                                 names: Optional[Dict[int, Tuple[str, int]]] = None
                                 ) -> 'FrameGraph':
        """
        Return a new graph evaluating KERNEL frames from ``catalog``.

        Every body-fixed frame id in the catalog that is not yet registered
        becomes a KERNEL frame whose parent is its segments' base frame.
        ``names`` maps frame ids to (name, center) for frames that have a
        conventional name; the others are addressable by id only.
        """
        names = names or {}
        frames = dict(self._frames)
        taken = set(self._names)
        for frame_id in (catalog.targets() if catalog is not None else []):
            if frame_id in frames and frames[frame_id].kind is not FrameKind.KERNEL:
                continue
            segments = catalog.segments_for(frame_id)
            base = segments[-1].frame_id
            if base not in frames:
                logger.warning("Orientation segments of frame %d are relative to "
                               "unknown frame %d; frame not registered",
                               frame_id, base)
                continue
            existing = frames.get(frame_id)
            if existing is not None:
                name, center = existing.name, existing.center
            else:
                name, center = names.get(frame_id, (str(frame_id), None))
                if name.upper() in taken:
                    name = str(frame_id)
            frames[frame_id] = Frame(frame_id, name, FrameKind.KERNEL, base, center)
            taken.add(frames[frame_id].name)
        # kernel frames whose segments are gone stay registered but uncovered
        return FrameGraph(frames.values(), catalog)

    # ========== LOOKUP ==========
    @property
    def orientation_catalog(self):
        return self._catalog

    def resolve(self, frame: FrameRef) -> int:
        """
        Frame id of a frame name or id.

        Raises
        ------
        UnknownFrame
            If the frame is not registered
        """
        if isinstance(frame, Frame):
            frame = frame.frame_id
        if isinstance(frame, (int, np.integer)) and not isinstance(frame, bool):
            if int(frame) in self._frames:
                return int(frame)
            raise UnknownFrame(f"Frame id {frame} is not registered")
        if isinstance(frame, str):
            key = frame.strip().upper()
            if key in self._names:
                return self._names[key]
            if key.lstrip('-').isdigit() and int(key) in self._frames:
                return int(key)
            raise UnknownFrame(f"Frame '{frame}' is not registered")
        raise UnknownFrame(f"Cannot interpret {frame!r} as a frame")

    def frame(self, frame: FrameRef) -> Frame:
        return self._frames[self.resolve(frame)]

    def name_of(self, frame: FrameRef) -> str:
        return self.frame(frame).name

    def frames(self) -> List[Frame]:
        return sorted(self._frames.values(), key=lambda f: f.frame_id)

    def path_to_root(self, frame: FrameRef) -> List[int]:
        """Frame ids from ``frame`` up to the root, inclusive."""
        frame_id = self.resolve(frame)
        path = [frame_id]
        while self._frames[frame_id].parent_id is not None:
            frame_id = self._frames[frame_id].parent_id
            if len(path) > config.MAX_FRAME_DEPTH:
                raise NoPath(f"Frame {path[0]} is more than {config.MAX_FRAME_DEPTH} "
                             f"edges from a root", from_node=path[0])
            if frame_id in path:
                raise NoPath(f"Frame tree has a cycle through {frame_id}",
                             from_node=path[0], to_node=frame_id)
            if frame_id not in self._frames:
                raise NoPath(f"Parent frame {frame_id} is not registered",
                             from_node=path[0], to_node=frame_id)
            path.append(frame_id)
        return path

    # ========== EVALUATION ==========
    def _edge(self, frame: Frame, epoch) -> FrameTransform:
        """Transform parent -> frame at an epoch."""
        if frame.kind is FrameKind.FIXED:
            rotation, rate = frame.rotation, np.zeros((3, 3))
        elif frame.kind is FrameKind.IAU:
            rotation, rate = frame.model.rotation(epoch)
        elif frame.kind is FrameKind.KERNEL:
            return self._kernel_edge(frame, epoch)
        else:
            rotation, rate = np.eye(3), np.zeros((3, 3))
        return FrameTransform(rotation, rate, epoch=_as_epoch(epoch),
                              from_frame=frame.parent_id, to_frame=frame.frame_id)

    def _kernel_edge(self, frame: Frame, epoch) -> FrameTransform:
        if self._catalog is None:
            raise NoCoverage(f"No orientation data loaded for frame {frame.name}",
                             target=frame.frame_id, epoch=epoch)
        segment = self._catalog.lookup_any_center(frame.frame_id, epoch)
        orientation = evaluate(segment, epoch)
        edge = FrameTransform(orientation.rotation, orientation.rotation_rate,
                              epoch=_as_epoch(epoch), from_frame=segment.frame_id,
                              to_frame=frame.frame_id)
        if segment.frame_id != frame.parent_id:
            # segment relative to another base frame than the declared parent
            edge = self.transform(frame.parent_id, segment.frame_id, epoch).compose(edge)
        return edge

    def _from_ancestor(self, path: Sequence[int], epoch) -> FrameTransform:
        """Transform from the last frame of ``path`` down to the first."""
        transform = FrameTransform.identity(path[-1], _as_epoch(epoch))
        for frame_id in reversed(path[:-1]):
            transform = transform.compose(self._edge(self._frames[frame_id], epoch))
        return transform

    def transform(self, from_frame: FrameRef, to_frame: FrameRef,
                  epoch) -> FrameTransform:
        """
        Rotation (and rate) from ``from_frame`` to ``to_frame`` at ``epoch``.

        Raises
        ------
        UnknownFrame
            If either frame is not registered
        NoPath
            If the frames have no common ancestor
        NoCoverage
            If a kernel frame on the path has no orientation data at ``epoch``
        """
        a = self.resolve(from_frame)
        b = self.resolve(to_frame)
        if a == b:
            return FrameTransform.identity(a, _as_epoch(epoch))
        path_a = self.path_to_root(a)
        path_b = self.path_to_root(b)
        on_b = set(path_b)
        ancestor = next((f for f in path_a if f in on_b), None)
        if ancestor is None:
            raise NoPath(f"Frames {self._frames[a].name} and {self._frames[b].name} "
                         f"have no common ancestor", from_node=a, to_node=b)
        up = self._from_ancestor(path_a[:path_a.index(ancestor) + 1], epoch)
        down = self._from_ancestor(path_b[:path_b.index(ancestor) + 1], epoch)
        return up.inverse().compose(down)

    def rotate_state(self, position, velocity, from_frame: FrameRef,
                     to_frame: FrameRef, epoch) -> Tuple[np.ndarray, np.ndarray]:
        """Express a relative state in another frame."""
        return self.transform(from_frame, to_frame, epoch).apply(position, velocity)

    # ========== SPECIAL METHODS ==========
    def __contains__(self, frame) -> bool:
        try:
            self.resolve(frame)
        except UnknownFrame:
            return False
        return True

    def __len__(self):
        return len(self._frames)

    def __iter__(self):
        return iter(self.frames())

    def __repr__(self):
        return f"FrameGraph(frames={len(self._frames)})"


def _as_epoch(epoch) -> Optional[Epoch]:
    if epoch is None or isinstance(epoch, Epoch):
        return epoch
    return Epoch.from_et(epoch)

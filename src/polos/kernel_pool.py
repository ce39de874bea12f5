'''Query facade
KernelHandle, PoolSnapshot and KernelPool class definitions

A KernelPool owns the loaded kernels and answers state and frame queries.
Everything a query needs (kernels, merged catalogs, frame graph) is held in
an immutable PoolSnapshot. Loading or unloading builds a new snapshot and
swaps the pool's reference to it under a single-writer lock, so queries
never block and always see one consistent set of kernels.'''

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .aberration import Aberration, light_time_state
from .bodies import Body, BodyRef, BodyRegistry
from .catalog import KernelKind, SegmentCatalog, SegmentDescriptor, build_catalog
from .config import config
from .container import KernelFile, open_kernel
from .defaults import KERNEL_FRAME_NAMES, default_body_registry, default_frame_graph
from .epoch import SECONDS_PER_DAY, Epoch, to_epoch
from .errors import MissingConstants, NoCoverage, NoPath
from .frames import (J2000_ID, FrameGraph, FrameKind, FrameRef, FrameTransform,
                     GeodeticFrame, IAURotationModel)
from .interpolation import evaluate
from .state import Orientation, State
from .utils import Timer

logger = logging.getLogger(__name__)

KernelSource = Union[str, os.PathLike, bytes, bytearray, memoryview]

SOLAR_SYSTEM_BARYCENTER_ID = 0


@dataclass(frozen=True)
class KernelHandle:
    """
    Identifies one loaded kernel.

    Attributes
    ----------
    id : int
        Pool-unique handle number, increasing with load order
    source : str
        Path of the kernel, or ``'<memory>'``
    kind : str
        ``'SPK'`` or ``'PCK'``
    checksum : str
        SHA-256 of the kernel contents
    segments : int
        Number of segments catalogued
    """
    id: int
    source: str
    kind: str
    checksum: str = field(repr=False)
    segments: int = 0

    def __int__(self):
        return self.id

    def __index__(self):
        return self.id


@dataclass(frozen=True)
class LoadedKernel:
    handle: KernelHandle
    file: KernelFile = field(repr=False)
    catalog: SegmentCatalog = field(repr=False)


def _handle_id(handle) -> Optional[int]:
    if handle is None:
        return None
    if isinstance(handle, KernelHandle):
        return handle.id
    return int(handle)


# ========== SNAPSHOT ==========
@dataclass(frozen=True)
class PoolSnapshot:
    """
    Immutable view of a pool at one point in time.

    Query methods only read the snapshot, so a snapshot can be evaluated
    from any thread while the pool goes on loading kernels.
    """
    kernels: Tuple[LoadedKernel, ...]
    spk: SegmentCatalog
    pck: SegmentCatalog
    frames: FrameGraph
    bodies: BodyRegistry = field(repr=False)

    @classmethod
    def build(cls, kernels: Sequence[LoadedKernel], base_frames: FrameGraph,
              bodies: BodyRegistry) -> 'PoolSnapshot':
        """Merge per-kernel catalogs in load order into a new snapshot."""
        spk = SegmentCatalog()
        pck = SegmentCatalog()
        for loaded in kernels:
            if loaded.handle.kind == KernelKind.SPK.value:
                spk = spk.merge(loaded.catalog)
            else:
                pck = pck.merge(loaded.catalog)
        frames = base_frames.with_orientation_catalog(pck, KERNEL_FRAME_NAMES)
        return cls(tuple(kernels), spk, pck, frames, bodies)

    # ========== KERNELS ==========
    def kernel(self, handle) -> LoadedKernel:
        handle_id = _handle_id(handle)
        for loaded in self.kernels:
            if loaded.handle.id == handle_id:
                return loaded
        raise KeyError(f"No kernel loaded with handle {handle_id}")

    @property
    def handles(self) -> List[KernelHandle]:
        return [loaded.handle for loaded in self.kernels]

    # ========== EPHEMERIS ==========
    def _known_body(self, body: int) -> bool:
        return self.spk.has_target(body) or any(
            center == body for _, center in self.spk.pairs())

    def _chain(self, body: int, epoch, stop=frozenset()):
        """
        Walk the segments of ``body`` toward the root of its ephemeris tree.

        Returns the visited nodes as (node, position, velocity) with the
        state of ``body`` relative to each node in J2000, and the coverage
        error that ended the walk early, if any.
        """
        position = np.zeros(3)
        velocity = np.zeros(3)
        nodes = [(body, position, velocity)]
        current = body
        for _ in range(config.MAX_EPHEMERIS_DEPTH):
            if current in stop or not self.spk.has_target(current):
                return nodes, None
            try:
                segment = self.spk.lookup_any_center(current, epoch)
            except NoCoverage as exc:
                return nodes, exc
            state = evaluate(segment, epoch)
            p, v = state.position, state.velocity
            if segment.frame_id != J2000_ID:
                p, v = self.frames.transform(segment.frame_id, J2000_ID,
                                             epoch).apply(p, v)
            position = position + p
            velocity = velocity + v
            current = segment.center_id
            if any(node == current for node, _, _ in nodes):
                raise NoPath(f"Ephemeris segments of body {body} form a cycle "
                             f"through {current}", from_node=body, to_node=current)
            nodes.append((current, position, velocity))
        if current in stop or not self.spk.has_target(current):
            return nodes, None
        raise NoPath(f"Body {body} is more than {config.MAX_EPHEMERIS_DEPTH} "
                     f"segments from the root of its ephemeris tree", from_node=body)

    def geometric_state(self, target: int, observer: int, epoch
                        ) -> Tuple[State, int]:
        """
        Geometric state of ``target`` relative to ``observer`` in J2000.

        Returns the state and the common ancestor the two chains met at.

        Raises
        ------
        NoCoverage
            If a body has no ephemeris data, or a segment needed to connect
            the bodies does not cover ``epoch``
        NoPath
            If the two bodies belong to disconnected ephemeris trees
        """
        epoch = to_epoch(epoch)
        if target == observer:
            return State(np.zeros(3), np.zeros(3), epoch=epoch, target=target,
                         observer=observer, frame=J2000_ID), target
        for body in (target, observer):
            if not self._known_body(body):
                raise NoCoverage(f"No ephemeris data loaded for body "
                                 f"{self.bodies.name_of(body)}", target=body,
                                 epoch=epoch)
        target_nodes, target_error = self._chain(target, epoch)
        reached = {node: (p, v) for node, p, v in target_nodes}
        observer_nodes, observer_error = self._chain(observer, epoch,
                                                     stop=frozenset(reached))
        ancestor, obs_p, obs_v = observer_nodes[-1]
        if ancestor not in reached:
            error = target_error or observer_error
            if error is not None:
                raise error
            raise NoPath(f"No ephemeris path between {self.bodies.name_of(target)} "
                         f"and {self.bodies.name_of(observer)}",
                         from_node=observer, to_node=target)
        tgt_p, tgt_v = reached[ancestor]
        return State(tgt_p - obs_p, tgt_v - obs_v, epoch=epoch, target=target,
                     observer=observer, frame=J2000_ID), ancestor

    def _inertial_reference(self, target: int, observer: int, ancestor: int,
                            epoch) -> int:
        """
        Body the light-time solution measures positions from.

        The solar system barycenter when both bodies connect to it, otherwise
        the common ancestor of their chains.
        """
        if ancestor == SOLAR_SYSTEM_BARYCENTER_ID:
            return ancestor
        try:
            for body in (target, observer):
                self.geometric_state(body, SOLAR_SYSTEM_BARYCENTER_ID, epoch)
        except (NoCoverage, NoPath) as exc:
            logger.debug("Light time of %d seen from %d measured from %d: %s",
                         target, observer, ancestor, exc)
            return ancestor
        return SOLAR_SYSTEM_BARYCENTER_ID

    def state(self, target: BodyRef, observer: BodyRef, epoch,
              frame: FrameRef = 'J2000', aberration='NONE') -> State:
        """
        State of ``target`` relative to ``observer`` at ``epoch``.

        Parameters
        ----------
        target, observer : int or str
            NAIF ids or body names
        epoch : Epoch, float or str
            Observation epoch; floats are TDB seconds past J2000
        frame : int or str, optional
            Output frame (default J2000)
        aberration : str or Aberration, optional
            One of NONE, LT, LT+S, CN, CN+S, XLT, XLT+S, XCN, XCN+S

        Returns
        -------
        State
            Position [km] and velocity [km/s] with the one-way light time
        """
        t = self.bodies.resolve(target)
        o = self.bodies.resolve(observer)
        frame_id = self.frames.resolve(frame)
        epoch = to_epoch(epoch)
        correction = Aberration.parse(aberration)

        geometric, ancestor = self.geometric_state(t, o, epoch)
        if correction is Aberration.NONE:
            apparent = geometric.replace(
                light_time=geometric.range / config.SPEED_OF_LIGHT_KM_S)
        else:
            reference = self._inertial_reference(t, o, ancestor, epoch)

            def body_state(body, at):
                return self.geometric_state(body, reference, at)[0]
            apparent, _ = light_time_state(body_state, t, o, epoch, correction)

        position, velocity = apparent.position, apparent.velocity
        if frame_id != J2000_ID:
            frame_epoch = epoch
            # a frame attached to the target is seen as it was when the light left
            if correction.uses_light_time and self.frames.frame(frame_id).center == t:
                frame_epoch = epoch + correction.direction * apparent.light_time
            position, velocity = self.frames.transform(
                J2000_ID, frame_id, frame_epoch).apply(position, velocity)
        logger.debug("state(%s, %s, %s, %s, %s)", t, o, epoch.et, frame_id,
                     correction.value)
        return State(position, velocity, epoch=epoch, target=t, observer=o,
                     frame=frame_id, light_time=apparent.light_time)

    # ========== FRAMES ==========
    def transform(self, from_frame: FrameRef, to_frame: FrameRef, epoch,
                  translation: bool = False) -> FrameTransform:
        """
        Transform from ``from_frame`` to ``to_frame`` at ``epoch``.

        With ``translation=True`` the transform also carries the offset
        between the frames' centers, taken from the loaded ephemeris.
        """
        epoch = to_epoch(epoch)
        rotation = self.frames.transform(from_frame, to_frame, epoch)
        if not translation:
            return rotation
        center_a = self.frames.frame(from_frame).center
        center_b = self.frames.frame(to_frame).center
        if center_a is None or center_b is None or center_a == center_b:
            return rotation
        offset = self.state(center_a, center_b, epoch, frame=rotation.to_frame)
        return FrameTransform(rotation.rotation, rotation.rotation_rate,
                              offset.position, offset.velocity, epoch=epoch,
                              from_frame=rotation.from_frame,
                              to_frame=rotation.to_frame)

    def orientation(self, frame: FrameRef, epoch,
                    base: FrameRef = 'J2000') -> Orientation:
        """Orientation of ``frame`` relative to ``base``."""
        epoch = to_epoch(epoch)
        xform = self.frames.transform(base, frame, epoch)
        return Orientation(xform.rotation, xform.rotation_rate, epoch=epoch,
                           from_frame=xform.from_frame, to_frame=xform.to_frame)

    def geodetic_frame(self, ephemeris: BodyRef, orientation: FrameRef,
                       epoch=None) -> GeodeticFrame:
        """
        Frame centered on ``ephemeris`` with ``orientation`` axes, carrying
        the body's constants.

        The constants are those registered for the ephemeris body itself;
        use :meth:`geodetic_frame_from` to take them from another body.
        """
        return self.geodetic_frame_from(ephemeris, orientation, ephemeris, epoch)

    def geodetic_frame_from(self, ephemeris: BodyRef, orientation: FrameRef,
                            constants: BodyRef, epoch=None) -> GeodeticFrame:
        """
        Frame centered on ``ephemeris`` with ``orientation`` axes, carrying
        the gravitational parameter and shape registered for ``constants``.

        The spin rate is the instantaneous one at ``epoch`` when given. Without
        an epoch, IAU frames report their mean prime meridian rate and other
        frames are evaluated at J2000.

        Raises
        ------
        MissingConstants
            If ``constants`` has no gravitational parameter or shape
        """
        body_id = self.bodies.resolve(ephemeris)
        frame = self.frames.frame(orientation)
        body = self.bodies.get(constants)
        if body is None or body.mu is None or body.shape is None:
            raise MissingConstants(
                f"No gravitational parameter and shape registered for {constants}",
                body=constants)
        if epoch is None and frame.kind is FrameKind.IAU:
            rate = frame.model.pm[1] / SECONDS_PER_DAY
        else:
            at = to_epoch(0.0 if epoch is None else epoch)
            spin = self.frames.transform(J2000_ID, frame.frame_id, at).angular_velocity
            rate = float(np.degrees(np.linalg.norm(spin)))
        return GeodeticFrame(body_id, frame.frame_id, body.mu, body.shape,
                             angular_velocity_deg_s=rate,
                             name=f"{self.bodies.name_of(body_id)} {frame.name}")

    # ========== DIAGNOSTICS ==========
    def segment_for(self, target: BodyRef, center: BodyRef, epoch,
                    kernel=None) -> SegmentDescriptor:
        """Segment that answers (target, center) at ``epoch``."""
        return self.spk.lookup(self.bodies.resolve(target),
                               self.bodies.resolve(center), to_epoch(epoch),
                               kernel=_handle_id(kernel))

    def coverage(self, target: BodyRef,
                 center: Optional[BodyRef] = None) -> List[Tuple[Epoch, Epoch]]:
        t = self.bodies.resolve(target)
        c = None if center is None else self.bodies.resolve(center)
        catalog = self.spk if self.spk.has_target(t) else self.pck
        return [(Epoch.from_et(a), Epoch.from_et(b))
                for a, b in catalog.coverage(t, c)]


# ========== POOL ==========
class KernelPool:
    """
    Set of loaded kernels answering state and frame queries.

    Parameters
    ----------
    strict : bool, optional
        Default loading mode, overrides ``config.STRICT_LOADING``
    frames : FrameGraph, optional
        Base frame tree (default: built-in frames)
    bodies : BodyRegistry, optional
        Body names (default: predefined Solar System bodies)

    Examples
    --------
    >>> pool = KernelPool()
    >>> handle = pool.load_kernel("de440s.bsp")
    >>> pool.state('MOON', 'EARTH', "2024-01-01T00:00:00 UTC").range
    """

    def __init__(self, strict: Optional[bool] = None,
                 frames: Optional[FrameGraph] = None,
                 bodies: Optional[BodyRegistry] = None):
        self._strict = strict
        self._lock = threading.Lock()
        self._next_id = 1
        self._base_frames = frames if frames is not None else default_frame_graph()
        self._bodies = bodies if bodies is not None else default_body_registry()
        self._snapshot = PoolSnapshot.build((), self._base_frames, self._bodies)

    # ========== PROPERTY ACCESS ==========
    @property
    def snapshot(self) -> PoolSnapshot:
        """Current immutable snapshot."""
        return self._snapshot

    @property
    def handles(self) -> List[KernelHandle]:
        return self._snapshot.handles

    @property
    def frames(self) -> FrameGraph:
        return self._snapshot.frames

    @property
    def bodies(self) -> BodyRegistry:
        return self._bodies

    # ========== LOADING ==========
    def load_kernel(self, source: KernelSource, strict: Optional[bool] = None,
                    use_mmap: Optional[bool] = None) -> KernelHandle:
        """
        Load an SPK or binary PCK kernel.

        Parameters
        ----------
        source : path-like or bytes-like
            Kernel path, or the complete kernel contents
        strict : bool, optional
            Fail on the first bad segment (True) or skip bad segments with a
            warning (False)
        use_mmap : bool, optional
            Memory-map the file, overrides ``config.USE_MMAP``

        Returns
        -------
        KernelHandle

        Raises
        ------
        FormatError
            If the kernel is malformed (always for the file record, and for
            segments in strict mode)
        """
        if strict is None:
            strict = self._strict
        if use_mmap is None:
            use_mmap = config.USE_MMAP
        label = source if isinstance(source, (str, os.PathLike)) else '<memory>'
        with Timer(f"Load {label}", log=logger):
            kernel = open_kernel(source, use_mmap=use_mmap)
            with self._lock:
                handle_id = self._next_id
                self._next_id += 1
            catalog = build_catalog(kernel, strict=strict, handle=handle_id)
            handle = KernelHandle(handle_id, str(kernel.source), kernel.kind,
                                  kernel.checksum, len(catalog))
            with self._lock:
                kernels = self._snapshot.kernels + (LoadedKernel(handle, kernel, catalog),)
                self._publish(kernels)
        logger.info("Loaded %s kernel %s as handle %d (%d segments)",
                    handle.kind, handle.source, handle.id, handle.segments)
        return handle

    def load_kernels(self, sources: Iterable[KernelSource], **kwargs) -> List[KernelHandle]:
        return [self.load_kernel(source, **kwargs) for source in sources]

    def unload_kernel(self, handle):
        """
        Remove a kernel from the pool.

        Snapshots taken before the call keep the kernel readable; its buffer
        is released once no snapshot refers to it.
        """
        handle_id = _handle_id(handle)
        with self._lock:
            kernels = tuple(k for k in self._snapshot.kernels
                            if k.handle.id != handle_id)
            if len(kernels) == len(self._snapshot.kernels):
                raise KeyError(f"No kernel loaded with handle {handle_id}")
            self._publish(kernels)
        logger.info("Unloaded kernel handle %d", handle_id)

    def clear(self):
        """Unload every kernel."""
        with self._lock:
            self._publish(())
        logger.info("Unloaded all kernels")

    def close(self):
        """Unload every kernel and release their buffers."""
        with self._lock:
            kernels = self._snapshot.kernels
            self._publish(())
        for loaded in kernels:
            loaded.file.close()

    def _publish(self, kernels: Sequence[LoadedKernel]):
        # caller holds the lock
        self._snapshot = PoolSnapshot.build(kernels, self._base_frames, self._bodies)

    # ========== FRAME REGISTRATION ==========
    def register_fixed_frame(self, name: str, frame_id: int, parent: FrameRef,
                             rotation, center: Optional[int] = None):
        """Add a frame with a constant rotation from ``parent``."""
        with self._lock:
            self._base_frames = self._base_frames.register_fixed_frame(
                name, frame_id, parent, rotation, center)
            self._publish(self._snapshot.kernels)
        logger.info("Registered fixed frame %s (%d)", name, frame_id)

    def register_iau_frame(self, name: str, frame_id: int, center: BodyRef,
                           model: IAURotationModel):
        """Add a body-fixed frame driven by an IAU rotation model."""
        with self._lock:
            self._base_frames = self._base_frames.register_iau_frame(
                name, frame_id, self._bodies.resolve(center), model)
            self._publish(self._snapshot.kernels)
        logger.info("Registered IAU frame %s (%d)", name, frame_id)

    # ========== BODY REGISTRATION ==========
    def register_body(self, body: Body):
        """Add a body name, or replace the constants registered for its id."""
        with self._lock:
            # earlier snapshots keep the registry they were built with
            bodies = BodyRegistry(self._bodies)
            bodies.add(body)
            self._bodies = bodies
            self._publish(self._snapshot.kernels)
        logger.info("Registered body %s", body)

    # ========== QUERIES ==========
    def state(self, target: BodyRef, observer: BodyRef, epoch,
              frame: FrameRef = 'J2000', aberration='NONE') -> State:
        """See :meth:`PoolSnapshot.state`."""
        return self._snapshot.state(target, observer, epoch, frame, aberration)

    def states(self, target: BodyRef, observer: BodyRef, epochs: Iterable,
               frame: FrameRef = 'J2000', aberration='NONE') -> List[State]:
        """States at several epochs, all from the same snapshot."""
        snapshot = self._snapshot
        return [snapshot.state(target, observer, e, frame, aberration) for e in epochs]

    def transform(self, from_frame: FrameRef, to_frame: FrameRef, epoch,
                  translation: bool = False) -> FrameTransform:
        """See :meth:`PoolSnapshot.transform`."""
        return self._snapshot.transform(from_frame, to_frame, epoch, translation)

    def orientation(self, frame: FrameRef, epoch,
                    base: FrameRef = 'J2000') -> Orientation:
        return self._snapshot.orientation(frame, epoch, base)

    def geodetic_frame(self, ephemeris: BodyRef, orientation: FrameRef,
                       epoch=None) -> GeodeticFrame:
        """See :meth:`PoolSnapshot.geodetic_frame`."""
        return self._snapshot.geodetic_frame(ephemeris, orientation, epoch)

    def geodetic_frame_from(self, ephemeris: BodyRef, orientation: FrameRef,
                            constants: BodyRef, epoch=None) -> GeodeticFrame:
        return self._snapshot.geodetic_frame_from(ephemeris, orientation, constants, epoch)

    def coverage(self, target: BodyRef,
                 center: Optional[BodyRef] = None) -> List[Tuple[Epoch, Epoch]]:
        """Merged coverage windows of a body (or frame id) in the loaded kernels."""
        return self._snapshot.coverage(target, center)

    def segment_for(self, target: BodyRef, center: BodyRef, epoch,
                    kernel=None) -> SegmentDescriptor:
        return self._snapshot.segment_for(target, center, epoch, kernel)

    # ========== INSPECTION ==========
    def inspect(self, handle) -> Dict[str, object]:
        """
        Describe a loaded kernel.

        Returns
        -------
        dict
            File record fields, comments, the :class:`Metadata` read from the
            comments, segment summaries and any segment errors skipped during
            a best-effort load
        """
        loaded = self._snapshot.kernel(handle)
        fr = loaded.file.file_record
        return {
            'handle': loaded.handle.id,
            'source': loaded.handle.source,
            'kind': loaded.handle.kind,
            'id_word': fr.id_word,
            'internal_name': fr.internal_name,
            'endianness': fr.endianness.value,
            'nd': fr.nd,
            'ni': fr.ni,
            'records': loaded.file.num_records,
            'checksum': loaded.handle.checksum,
            'comments': loaded.file.comments(),
            'metadata': loaded.file.metadata(),
            'segments': [seg.summary() for seg in loaded.catalog],
            'errors': [str(exc) for exc in loaded.catalog.errors],
        }

    def inspect_dataframe(self, handle=None) -> pd.DataFrame:
        """
        Segment table of one kernel (or every loaded kernel) as a DataFrame.

        A ``masked`` column flags segments partly overridden by a segment of
        a later kernel.
        """
        snapshot = self._snapshot
        kernels = (snapshot.kernels if handle is None
                   else (snapshot.kernel(handle),))
        masked = set()
        for catalog in (snapshot.spk, snapshot.pck):
            masked.update((seg.handle, seg.index)
                          for seg, _ in catalog.masked_segments())
        rows = []
        for loaded in kernels:
            for seg in loaded.catalog:
                row = seg.summary()
                row['source'] = loaded.handle.source
                row['masked'] = (seg.handle, seg.index) in masked
                rows.append(row)
        columns = ['handle', 'index', 'name', 'kind', 'type', 'family', 'target',
                   'center', 'frame', 'start_et', 'end_et', 'data_offset',
                   'data_length', 'degree', 'window', 'source', 'masked']
        return pd.DataFrame(rows, columns=columns)

    def states_dataframe(self, target: BodyRef, observer: BodyRef, epochs: Iterable,
                         frame: FrameRef = 'J2000', aberration='NONE') -> pd.DataFrame:
        """States at several epochs as a DataFrame indexed by ephemeris time."""
        return State.batch.to_dataframe(
            self.states(target, observer, epochs, frame, aberration))

    # ========== SPECIAL METHODS ==========
    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __len__(self):
        return len(self._snapshot.kernels)

    def __repr__(self):
        snapshot = self._snapshot
        return (f"KernelPool(kernels={len(snapshot.kernels)}, "
                f"spk_segments={len(snapshot.spk)}, pck_segments={len(snapshot.pck)})")


# ========== DEFAULT POOL ==========
_default_pool: Optional[KernelPool] = None
_default_lock = threading.Lock()


def get_default_pool() -> KernelPool:
    """Pool used by the module-level functions, created on first use."""
    global _default_pool
    with _default_lock:
        if _default_pool is None:
            _default_pool = KernelPool()
        return _default_pool


def load_kernel(source: KernelSource, **kwargs) -> KernelHandle:
    return get_default_pool().load_kernel(source, **kwargs)


def unload_kernel(handle):
    get_default_pool().unload_kernel(handle)


def clear_kernels():
    get_default_pool().clear()


def state(target: BodyRef, observer: BodyRef, epoch, frame: FrameRef = 'J2000',
          aberration='NONE') -> State:
    return get_default_pool().state(target, observer, epoch, frame, aberration)


def transform(from_frame: FrameRef, to_frame: FrameRef, epoch,
              translation: bool = False) -> FrameTransform:
    return get_default_pool().transform(from_frame, to_frame, epoch, translation)


def inspect(handle) -> Dict[str, object]:
    return get_default_pool().inspect(handle)


def inspect_dataframe(handle=None) -> pd.DataFrame:
    return get_default_pool().inspect_dataframe(handle)


def states_dataframe(target: BodyRef, observer: BodyRef, epochs: Iterable,
                     frame: FrameRef = 'J2000', aberration='NONE') -> pd.DataFrame:
    return get_default_pool().states_dataframe(target, observer, epochs, frame,
                                               aberration)


def geodetic_frame(ephemeris: BodyRef, orientation: FrameRef, epoch=None) -> GeodeticFrame:
    return get_default_pool().geodetic_frame(ephemeris, orientation, epoch)

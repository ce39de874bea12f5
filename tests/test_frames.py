"""
Test suite for frame transforms and the frame graph.

Tests include:
1. FrameTransform algebra (inverse, composition, application)
2. Built-in fixed and IAU frames
3. Frame registration and lookup
4. Graph failures (unknown frames, disconnected trees, depth limit)
5. Kernel frames evaluated from PCK segments
6. Geodetic frames carrying body constants
"""

import numpy as np
import pytest

import polos
from polos import (Body, Ellipsoid, Epoch, Frame, FrameGraph, FrameKind, FrameTransform,
                   IAURotationModel, KernelPool, KernelWriter, MissingConstants,
                   NoCoverage, NoPath, UnknownFrame, temp_config)
from polos.defaults import (EARTH, EARTH_ROTATION, MARS, default_frame_graph,
                            ecliptic_rotation)
from polos.rotations import (axis_rotation, axis_rotation_derivative, euler_313,
                             quaternion_to_matrix)

from conftest import DAY, SPAN


# =============================================================================
# Test Configuration
# =============================================================================

EARTH_SPIN_RATE = np.radians(360.9856235) / DAY    # rad/s


def spinning_transform(angle=0.4, rate=1.0e-3, translation=None, velocity=None):
    """Rotation about z at a constant rate, with an optional offset."""
    kwargs = {}
    if translation is not None:
        kwargs['translation'] = translation
    if velocity is not None:
        kwargs['velocity'] = velocity
    return FrameTransform(axis_rotation(angle, 3),
                          rate * axis_rotation_derivative(angle, 3), **kwargs)


def tilted_transform():
    rotation, rate = euler_313(0.3, -0.7, 1.1, 2.0e-4, 5.0e-5, -3.0e-4)
    return FrameTransform(rotation, rate, translation=[100.0, -50.0, 20.0],
                          velocity=[0.1, 0.2, -0.3])


def numeric_rate(graph, from_frame, to_frame, et, h=10.0):
    plus = graph.transform(from_frame, to_frame, et + h).rotation
    minus = graph.transform(from_frame, to_frame, et - h).rotation
    return (plus - minus) / (2.0 * h)


@pytest.fixture
def graph():
    return default_frame_graph()


@pytest.fixture
def kernel_pool(pck_bytes):
    pool = KernelPool()
    pool.load_kernel(pck_bytes)
    yield pool
    pool.close()


# =============================================================================
# Test FrameTransform
# =============================================================================

class TestFrameTransform:
    """Test the algebra of state transforms."""

    def test_identity(self):
        identity = FrameTransform.identity(1)
        assert identity.is_identity
        p, v = identity.apply([1.0, 2.0, 3.0], [4.0, 5.0, 6.0])
        np.testing.assert_array_equal(p, [1.0, 2.0, 3.0])
        np.testing.assert_array_equal(v, [4.0, 5.0, 6.0])

    def test_inverse_undoes_apply(self):
        xform = tilted_transform()
        p0 = np.array([7000.0, -1200.0, 300.0])
        v0 = np.array([1.0, 7.5, -0.2])
        p1, v1 = xform.apply(p0, v0)
        p2, v2 = xform.inverse().apply(p1, v1)
        np.testing.assert_allclose(p2, p0, rtol=1e-12, atol=1e-9)
        np.testing.assert_allclose(v2, v0, rtol=1e-12, atol=1e-12)

    def test_compose_with_inverse_is_identity(self):
        xform = tilted_transform()
        assert xform.compose(xform.inverse()).isclose(
            FrameTransform.identity(), atol=1e-12)

    def test_compose_applies_self_first(self):
        first = tilted_transform()
        second = spinning_transform(translation=[1.0, 2.0, 3.0], velocity=[0.0, 0.0, 0.5])
        p0 = np.array([10.0, 20.0, 30.0])
        v0 = np.array([-1.0, 0.5, 0.25])
        expected = second.apply(*first.apply(p0, v0))
        p, v = first.compose(second).apply(p0, v0)
        np.testing.assert_allclose(p, expected[0], rtol=1e-12)
        np.testing.assert_allclose(v, expected[1], rtol=1e-12, atol=1e-15)

    def test_matmul_uses_matrix_order(self):
        first = tilted_transform()
        second = spinning_transform()
        assert (second @ first).isclose(first.compose(second))

    def test_state_matrix(self):
        xform = spinning_transform()
        p0 = np.array([1.0, 2.0, 3.0])
        v0 = np.array([0.1, 0.2, 0.3])
        p, v = xform.apply(p0, v0)
        np.testing.assert_allclose(xform.matrix @ np.concatenate([p0, v0]),
                                   np.concatenate([p, v]))

    def test_quaternion_round_trip(self):
        xform = tilted_transform()
        q = xform.quaternion
        assert q[0] >= 0.0
        assert np.isclose(np.linalg.norm(q), 1.0)
        np.testing.assert_allclose(quaternion_to_matrix(q), xform.rotation, atol=1e-14)

    def test_angular_velocity_of_spin(self):
        xform = spinning_transform(rate=2.5e-3)
        np.testing.assert_allclose(xform.angular_velocity, [0.0, 0.0, 2.5e-3],
                                   atol=1e-18)

    def test_arrays_are_read_only(self):
        xform = tilted_transform()
        with pytest.raises(ValueError):
            xform.rotation[0, 0] = 2.0

    def test_bad_shape(self):
        with pytest.raises(ValueError, match="rotation must have shape"):
            FrameTransform(np.eye(2), np.zeros((3, 3)))


# =============================================================================
# Test Built-in Frames
# =============================================================================

class TestBuiltinFrames:
    """Test the fixed and IAU frames every graph starts with."""

    def test_builtin_names(self, graph):
        for name in ('J2000', 'ECLIPJ2000', 'IAU_SUN', 'IAU_EARTH', 'IAU_MOON',
                     'IAU_MARS'):
            assert name in graph
        assert graph.resolve('eclipj2000') == 17
        assert graph.frame('J2000').kind is FrameKind.ROOT

    def test_ecliptic_rotation(self, graph):
        xform = graph.transform('J2000', 'ECLIPJ2000', 0.0)
        np.testing.assert_array_equal(xform.rotation, ecliptic_rotation())
        assert not np.any(xform.rotation_rate)
        # the ecliptic pole expressed in J2000
        pole = xform.rotation.T @ np.array([0.0, 0.0, 1.0])
        obliquity = np.radians(84381.448 / 3600.0)
        np.testing.assert_allclose(pole, [0.0, -np.sin(obliquity), np.cos(obliquity)],
                                   atol=1e-15)

    def test_rotate_state(self, graph):
        position = np.array([1.0e8, 5.0e7, 2.0e7])
        velocity = np.array([-10.0, 25.0, 11.0])
        p, v = graph.rotate_state(position, velocity, 'J2000', 'ECLIPJ2000', 0.0)
        np.testing.assert_allclose(p, ecliptic_rotation() @ position)
        np.testing.assert_allclose(v, ecliptic_rotation() @ velocity)
        assert np.linalg.norm(p) == pytest.approx(np.linalg.norm(position))

    def test_same_frame_is_identity(self, graph):
        assert graph.transform('IAU_EARTH', 'iau_earth', 1.0e8).is_identity

    @pytest.mark.parametrize("pair", [('IAU_EARTH', 'ECLIPJ2000'),
                                      ('IAU_MOON', 'IAU_MARS'),
                                      ('J2000', 'IAU_SUN')])
    def test_inverse_consistency(self, graph, pair):
        a, b = pair
        et = 3.0e8
        forward = graph.transform(a, b, et)
        backward = graph.transform(b, a, et)
        assert forward.compose(backward).isclose(FrameTransform.identity(), atol=1e-12)
        assert forward.from_frame == graph.resolve(a)
        assert forward.to_frame == graph.resolve(b)

    def test_path_through_common_ancestor(self, graph):
        et = -1.5e8
        direct = graph.transform('ECLIPJ2000', 'IAU_MARS', et)
        via_root = graph.transform('ECLIPJ2000', 'J2000', et).compose(
            graph.transform('J2000', 'IAU_MARS', et))
        assert direct.isclose(via_root, atol=1e-14)

    @pytest.mark.parametrize("frame", ['IAU_EARTH', 'IAU_MOON', 'IAU_MARS'])
    def test_iau_rate_matches_numeric_derivative(self, graph, frame):
        et = 2.0e8
        xform = graph.transform('J2000', frame, et)
        np.testing.assert_allclose(xform.rotation_rate,
                                   numeric_rate(graph, 'J2000', frame, et),
                                   rtol=0.0, atol=1e-10)

    def test_earth_spin_rate(self, graph):
        omega = graph.transform('J2000', 'IAU_EARTH', 0.0).angular_velocity
        assert np.linalg.norm(omega) == pytest.approx(EARTH_SPIN_RATE, rel=1e-6)
        # the spin axis is close to the J2000 pole
        assert omega[2] / np.linalg.norm(omega) > 0.9999

    def test_iau_prime_meridian_at_j2000(self, graph):
        # pole at the J2000 pole: the rotation is about z by W(0)
        model = IAURotationModel(ra=(-90.0, 0.0), dec=(90.0, 0.0), pm=(30.0, 360.0, 0.0))
        graph = graph.register_iau_frame('IAU_TEST', 50001, 399, model)
        xform = graph.transform('J2000', 'IAU_TEST', Epoch.from_et(0.0))
        np.testing.assert_allclose(xform.rotation, axis_rotation(np.radians(30.0), 3),
                                   atol=1e-14)

    def test_iau_epoch_and_float_agree(self, graph):
        et = 12345.678
        a = graph.transform('J2000', 'IAU_MOON', et)
        b = graph.transform('J2000', 'IAU_MOON', Epoch.from_et(et))
        assert a.isclose(b, atol=1e-15)


# =============================================================================
# Test Registration and Lookup
# =============================================================================

class TestRegistration:
    """Test adding frames and resolving frame references."""

    def test_register_fixed_frame(self, graph):
        rotation = axis_rotation(np.radians(30.0), 2)
        extended = graph.register_fixed_frame('TOPO_TEST', 1400001, 'IAU_EARTH',
                                              rotation)
        assert 'TOPO_TEST' in extended
        assert 'TOPO_TEST' not in graph
        frame = extended.frame('topo_test')
        assert frame.kind is FrameKind.FIXED
        assert frame.parent_id == 10013
        assert frame.center == 399
        et = 1.0e7
        expected = graph.transform('J2000', 'IAU_EARTH', et).compose(
            FrameTransform(rotation, np.zeros((3, 3))))
        assert extended.transform('J2000', 'TOPO_TEST', et).isclose(expected)

    def test_register_iau_frame(self, graph):
        extended = graph.register_iau_frame('IAU_EARTH_COPY', 50002, 399,
                                            EARTH_ROTATION)
        et = 5.0e6
        assert extended.transform('IAU_EARTH', 'IAU_EARTH_COPY', et).isclose(
            FrameTransform.identity(), atol=1e-14)

    def test_duplicate_frame(self, graph):
        with pytest.raises(ValueError, match="already registered"):
            graph.register_fixed_frame('OTHER', 17, 'J2000', np.eye(3))
        with pytest.raises(ValueError, match="already registered"):
            graph.register_fixed_frame('ECLIPJ2000', 99999, 'J2000', np.eye(3))

    def test_fixed_frame_needs_rotation(self):
        with pytest.raises(ValueError, match="rotation matrix"):
            Frame(100, 'SCALED', FrameKind.FIXED, 1, rotation=2.0 * np.eye(3))

    def test_iau_frame_needs_model(self):
        with pytest.raises(ValueError, match="rotation model"):
            Frame(100, 'IAU_NOTHING', FrameKind.IAU, 1)

    def test_frame_needs_parent(self):
        with pytest.raises(ValueError, match="parent"):
            Frame(100, 'ORPHAN', FrameKind.FIXED, rotation=np.eye(3))

    def test_resolve_forms(self, graph):
        assert graph.resolve(10013) == 10013
        assert graph.resolve(np.int32(10013)) == 10013
        assert graph.resolve(' iau_earth ') == 10013
        assert graph.resolve('10013') == 10013
        assert graph.resolve(graph.frame('IAU_EARTH')) == 10013
        assert graph.name_of(17) == 'ECLIPJ2000'

    @pytest.mark.parametrize("ref", ['NOT_A_FRAME', 424242, 3.5])
    def test_unknown_frame(self, graph, ref):
        with pytest.raises(UnknownFrame):
            graph.resolve(ref)
        assert ref not in graph

    def test_unknown_frame_is_key_error(self, graph):
        with pytest.raises(KeyError):
            graph.transform('J2000', 'NOT_A_FRAME', 0.0)

    def test_unknown_parent(self, graph):
        with pytest.raises(UnknownFrame):
            graph.with_frame(Frame(100, 'FLOATING', FrameKind.FIXED, 424242,
                                   rotation=np.eye(3)))


# =============================================================================
# Test Graph Failures
# =============================================================================

class TestGraphFailures:
    """Test disconnected trees and the traversal depth limit."""

    def test_disconnected_roots(self):
        graph = FrameGraph([Frame(1, 'J2000', FrameKind.ROOT),
                            Frame(900, 'ISLAND', FrameKind.ROOT)])
        with pytest.raises(NoPath) as excinfo:
            graph.transform('J2000', 'ISLAND', 0.0)
        assert excinfo.value.from_node == 1
        assert excinfo.value.to_node == 900

    def test_depth_limit(self, graph):
        parent = 'J2000'
        for i in range(5):
            graph = graph.register_fixed_frame(f"CHAIN_{i}", 1000 + i, parent,
                                               axis_rotation(0.1, 3))
            parent = f"CHAIN_{i}"
        assert graph.path_to_root('CHAIN_4') == [1004, 1003, 1002, 1001, 1000, 1]
        with temp_config(MAX_FRAME_DEPTH=3):
            with pytest.raises(NoPath, match="edges from a root"):
                graph.transform('CHAIN_4', 'J2000', 0.0)

    def test_chain_of_fixed_frames(self, graph):
        parent = 'J2000'
        for i in range(4):
            graph = graph.register_fixed_frame(f"STEP_{i}", 2000 + i, parent,
                                               axis_rotation(0.25, 3))
            parent = f"STEP_{i}"
        xform = graph.transform('J2000', 'STEP_3', 0.0)
        np.testing.assert_allclose(xform.rotation, axis_rotation(1.0, 3), atol=1e-15)


# =============================================================================
# Test Kernel Frames
# =============================================================================

class TestKernelFrames:
    """Test frames whose orientation comes from PCK segments."""

    def test_kernel_frame_registered(self, kernel_pool):
        frame = kernel_pool.frames.frame('ITRF93')
        assert frame.frame_id == 3000
        assert frame.kind is FrameKind.KERNEL
        assert frame.parent_id == 1
        assert frame.center == 399
        assert not frame.is_inertial

    def test_kernel_frame_rotation(self, kernel_pool, pck_angles):
        et = 2.5 * DAY
        w = pck_angles['w0'] + pck_angles['w_dot'] * (et - SPAN / 2)
        rotation, rate = euler_313(pck_angles['phi'], pck_angles['delta'], w,
                                   0.0, 0.0, pck_angles['w_dot'])
        xform = kernel_pool.transform('J2000', 'ITRF93', et)
        np.testing.assert_allclose(xform.rotation, rotation, atol=1e-13)
        np.testing.assert_allclose(xform.rotation_rate, rate, atol=1e-17)

    def test_kernel_frame_spin(self, kernel_pool, pck_angles):
        orientation = kernel_pool.orientation('ITRF93', DAY)
        assert np.linalg.norm(orientation.angular_velocity) == pytest.approx(
            pck_angles['w_dot'], rel=1e-10)

    def test_kernel_frame_rate_matches_numeric_derivative(self, kernel_pool):
        et = 4.0 * DAY
        xform = kernel_pool.transform('J2000', 'ITRF93', et)
        np.testing.assert_allclose(xform.rotation_rate,
                                   numeric_rate(kernel_pool.frames, 'J2000', 'ITRF93', et),
                                   rtol=0.0, atol=1e-10)

    def test_kernel_frame_to_iau_frame(self, kernel_pool):
        et = DAY
        direct = kernel_pool.transform('ITRF93', 'IAU_EARTH', et)
        via_root = kernel_pool.transform('ITRF93', 'J2000', et).compose(
            kernel_pool.transform('J2000', 'IAU_EARTH', et))
        assert direct.isclose(via_root, atol=1e-14)

    @pytest.mark.parametrize("et", [0.0, SPAN])
    def test_coverage_is_closed(self, kernel_pool, et):
        kernel_pool.transform('J2000', 'ITRF93', et)

    @pytest.mark.parametrize("et", [-1.0, SPAN + 1.0])
    def test_outside_coverage(self, kernel_pool, et):
        with pytest.raises(NoCoverage):
            kernel_pool.transform('J2000', 'ITRF93', et)

    def test_unloaded_kernel_frame_disappears(self, kernel_pool):
        [handle] = kernel_pool.handles
        kernel_pool.unload_kernel(handle)
        assert 'ITRF93' not in kernel_pool.frames
        with pytest.raises(UnknownFrame):
            kernel_pool.transform('J2000', 'ITRF93', DAY)

    def test_unnamed_kernel_frame(self):
        coefficients = np.zeros((1, 3, 2))
        coefficients[0, 2, 0] = 0.5
        writer = KernelWriter('PCK')
        writer.add_pck_chebyshev(3999, 1, coefficients, init=0.0, interval_length=DAY)
        with KernelPool() as pool:
            pool.load_kernel(writer.to_bytes())
            assert pool.frames.name_of(3999) == '3999'
            xform = pool.transform('J2000', '3999', DAY / 2)
            np.testing.assert_allclose(xform.rotation, axis_rotation(0.5, 3),
                                       atol=1e-15)

    def test_kernel_frame_without_orientation(self, graph):
        graph = graph.with_frame(Frame(3000, 'ITRF93', FrameKind.KERNEL, 1, 399))
        with pytest.raises(NoCoverage):
            graph.transform('J2000', 'ITRF93', 0.0)


# =============================================================================
# Test Geodetic Frames
# =============================================================================

class TestGeodeticFrames:
    """Test body-centered frames that carry the body's constants."""

    def test_iau_frame_mean_rate(self, kernel_pool):
        geodetic = kernel_pool.geodetic_frame('EARTH', 'IAU_EARTH')
        assert geodetic.ephemeris_id == 399
        assert geodetic.orientation_id == kernel_pool.frames.resolve('IAU_EARTH')
        assert geodetic.mu_km3_s2 == EARTH.mu
        assert geodetic.shape == EARTH.shape
        assert geodetic.angular_velocity_deg_s == pytest.approx(
            EARTH_ROTATION.pm[1] / DAY, rel=1e-15)
        assert geodetic.flattening == pytest.approx(EARTH.flattening)
        assert geodetic.semi_major_radius_km == 6378.1366
        assert str(geodetic).startswith("EARTH IAU_EARTH (mu = ")

    def test_instantaneous_rate(self, kernel_pool, pck_angles):
        geodetic = kernel_pool.geodetic_frame(399, 'ITRF93', epoch=DAY)
        assert geodetic.orientation_id == 3000
        assert geodetic.angular_velocity_deg_s == pytest.approx(
            np.degrees(pck_angles['w_dot']), rel=1e-10)

    def test_iau_rate_at_epoch(self, kernel_pool):
        geodetic = kernel_pool.geodetic_frame('EARTH', 'IAU_EARTH', epoch=Epoch.from_et(DAY))
        assert geodetic.angular_velocity_deg_s == pytest.approx(
            EARTH_ROTATION.pm[1] / DAY, rel=1e-6)

    def test_constants_from_another_body(self, kernel_pool):
        geodetic = kernel_pool.geodetic_frame_from('EARTH BARYCENTER', 'J2000', 'EARTH')
        assert geodetic.ephemeris_id == 3
        assert geodetic.mu_km3_s2 == EARTH.mu
        assert geodetic.angular_velocity_deg_s == 0.0

    @pytest.mark.parametrize("body", ['PHOBOS', 'SSB', -1000])
    def test_missing_constants(self, kernel_pool, body):
        with pytest.raises(MissingConstants) as excinfo:
            kernel_pool.geodetic_frame(body, 'J2000')
        assert excinfo.value.body == body

    def test_registered_constants(self, kernel_pool):
        snapshot = kernel_pool.snapshot
        kernel_pool.register_body(
            Body(401, 'PHOBOS', mu=7.087e-4, shape=Ellipsoid(13.0, 11.4, 9.1)))
        geodetic = kernel_pool.geodetic_frame('PHOBOS', 'J2000')
        assert geodetic.mu_km3_s2 == 7.087e-4
        assert geodetic.mean_equatorial_radius_km == pytest.approx(12.2)
        with pytest.raises(MissingConstants):
            snapshot.geodetic_frame('PHOBOS', 'J2000')

    def test_default_pool(self):
        geodetic = polos.geodetic_frame('MARS', 'IAU_MARS')
        assert geodetic.mu_km3_s2 == MARS.mu
        assert geodetic.name == 'MARS IAU_MARS'

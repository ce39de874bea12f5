"""
Test suite for body shapes and the body registry.

Tests include:
1. Ellipsoid construction, validation and flattening
2. Body constants and shape derivation
3. Name and id resolution
"""

import pytest

from polos import Body, BodyRegistry, Ellipsoid, UnknownBody
from polos.defaults import EARTH, MOON, PHOBOS, default_body_registry


# =============================================================================
# Test Ellipsoid
# =============================================================================

class TestEllipsoid:
    """Test triaxial body shapes."""

    def test_sphere_by_default(self):
        shape = Ellipsoid(1738.0)
        assert shape.is_sphere
        assert shape.semi_minor_equatorial_radius_km == 1738.0
        assert shape.polar_radius_km == 1738.0
        assert shape.flattening == 0.0
        assert str(shape) == "sphere of radius 1738.0 km"

    def test_triaxial(self):
        shape = Ellipsoid(10.0, 8.0, 6.0)
        assert not shape.is_sphere
        assert shape.mean_equatorial_radius_km == pytest.approx(9.0)
        assert shape.flattening == pytest.approx(1.0 / 3.0)
        assert "(polar)" in str(shape)

    def test_from_flattening(self):
        shape = Ellipsoid.from_flattening(6378.137, 1.0 / 298.257223563)
        assert shape.polar_radius_km == pytest.approx(6356.752314245, rel=1e-12)
        assert shape.flattening == pytest.approx(1.0 / 298.257223563, rel=1e-12)

    @pytest.mark.parametrize("radii", [(0.0,), (-1.0,), (10.0, 12.0), (10.0, 10.0, 0.0)])
    def test_invalid_radii(self, radii):
        with pytest.raises(ValueError):
            Ellipsoid(*radii)

    @pytest.mark.parametrize("flattening", [-0.1, 1.0])
    def test_invalid_flattening(self, flattening):
        with pytest.raises(ValueError):
            Ellipsoid.from_flattening(100.0, flattening)


# =============================================================================
# Test Body
# =============================================================================

class TestBody:
    """Test body constants."""

    def test_radius_gives_sphere(self):
        assert MOON.shape == Ellipsoid(1738.0)
        assert MOON.flattening == 0.0

    def test_shape_gives_radius(self):
        assert EARTH.radius == pytest.approx(6378.1366)
        assert EARTH.flattening == pytest.approx((6378.1366 - 6356.7519) / 6378.1366)

    def test_without_constants(self):
        assert PHOBOS.mu is None
        assert PHOBOS.shape is None
        assert PHOBOS.flattening is None

    def test_names_are_normalized(self):
        body = Body(-1000, 'test_orbiter', aliases=('orbiter  one',))
        assert body.name == 'TEST ORBITER'
        assert body.aliases == ('ORBITER ONE',)

    @pytest.mark.parametrize("kwargs", [{'mu': 0.0}, {'radius': -1.0}])
    def test_invalid_constants(self, kwargs):
        with pytest.raises(ValueError):
            Body(-1000, 'TEST', **kwargs)

    def test_barycenter(self):
        assert Body(3, 'EARTH BARYCENTER').is_barycenter
        assert not EARTH.is_barycenter


# =============================================================================
# Test Body Registry
# =============================================================================

class TestBodyRegistry:
    """Test resolution between names and NAIF ids."""

    def test_resolve(self):
        bodies = default_body_registry()
        assert bodies.resolve('earth') == 399
        assert bodies.resolve('Earth_Barycenter') == 3
        assert bodies.resolve(EARTH) == 399
        assert bodies.resolve(-1000) == -1000
        assert bodies.resolve('-1000') == -1000

    def test_unknown_name(self):
        with pytest.raises(UnknownBody):
            default_body_registry().resolve('VULCAN')

    def test_add_replaces_constants(self):
        bodies = default_body_registry()
        bodies.add(Body(401, 'PHOBOS', mu=7.087e-4, shape=Ellipsoid(13.0, 11.4, 9.1)))
        assert bodies.get('PHOBOS').mu == 7.087e-4
        assert bodies.name_of(401) == 'PHOBOS'
        assert default_body_registry().get('PHOBOS').mu is None

    def test_unregistered_id(self):
        bodies = BodyRegistry()
        assert bodies.get(-1000) is None
        assert bodies.name_of(-1000) == '-1000'
        assert -1000 not in bodies

"""
Default Bodies, Frames and Rotation Models
==========================================

NAIF ids and names of the major Solar System bodies, the built-in reference
frames, and the IAU rotation models used by the analytic body-fixed frames.

Factory functions build fresh registries and frame graphs on demand, so the
module level objects below are never mutated by a pool.

Examples
--------
>>> from polos.defaults import default_frame_graph, EARTH
>>> graph = default_frame_graph()
>>> graph.resolve('IAU_EARTH')
10013
>>> EARTH.naif_id
399
"""
import numpy as np

from .bodies import Body, BodyRegistry, Ellipsoid
from .frames import (J2000_ID, Frame, FrameGraph, FrameKind,
                     IAURotationModel)
from .rotations import axis_rotation

"""
Predefined Solar System bodies
Gravitational parameters from Vallado, Fundamentals of Astrodynamics, Fifth
Edition, 2022, Appendix D (km^3/s^2). Shapes of the oblate planets from the
IAU WGCCRE 2015 report, Archinal et al. 2018 (km)
"""
SOLAR_SYSTEM_BARYCENTER = Body(0, 'SOLAR SYSTEM BARYCENTER', aliases=('SSB',))
MERCURY_BARYCENTER = Body(1, 'MERCURY BARYCENTER')
VENUS_BARYCENTER = Body(2, 'VENUS BARYCENTER')
EARTH_BARYCENTER = Body(3, 'EARTH BARYCENTER',
                        aliases=('EMB', 'EARTH MOON BARYCENTER', 'EARTH-MOON BARYCENTER'))
MARS_BARYCENTER = Body(4, 'MARS BARYCENTER')
JUPITER_BARYCENTER = Body(5, 'JUPITER BARYCENTER')
SATURN_BARYCENTER = Body(6, 'SATURN BARYCENTER')
URANUS_BARYCENTER = Body(7, 'URANUS BARYCENTER')
NEPTUNE_BARYCENTER = Body(8, 'NEPTUNE BARYCENTER')
PLUTO_BARYCENTER = Body(9, 'PLUTO BARYCENTER')

SUN = Body(10, 'SUN', mu=1.32712428e11, radius=6.96e5)
MERCURY = Body(199, 'MERCURY', mu=2.2032e4,
               shape=Ellipsoid(2440.53, 2440.53, 2438.26))
VENUS = Body(299, 'VENUS', mu=3.257e5, radius=6052.0)
EARTH = Body(399, 'EARTH', mu=3.986004415e5,
             shape=Ellipsoid(6378.1366, 6378.1366, 6356.7519))
MOON = Body(301, 'MOON', mu=4.902799e3, radius=1738.0)
MARS = Body(499, 'MARS', mu=4.305e4, shape=Ellipsoid(3396.19, 3396.19, 3376.20))
PHOBOS = Body(401, 'PHOBOS')
DEIMOS = Body(402, 'DEIMOS')
JUPITER = Body(599, 'JUPITER', mu=1.268e8, shape=Ellipsoid(71492.0, 71492.0, 66854.0))
SATURN = Body(699, 'SATURN', mu=3.794e7, shape=Ellipsoid(60268.0, 60268.0, 54364.0))
URANUS = Body(799, 'URANUS', mu=5.794e6, shape=Ellipsoid(25559.0, 25559.0, 24973.0))
NEPTUNE = Body(899, 'NEPTUNE', mu=6.809e6, shape=Ellipsoid(24764.0, 24764.0, 24341.0))
PLUTO = Body(999, 'PLUTO')

BODIES = (
    SOLAR_SYSTEM_BARYCENTER, MERCURY_BARYCENTER, VENUS_BARYCENTER,
    EARTH_BARYCENTER, MARS_BARYCENTER, JUPITER_BARYCENTER, SATURN_BARYCENTER,
    URANUS_BARYCENTER, NEPTUNE_BARYCENTER, PLUTO_BARYCENTER,
    SUN, MERCURY, VENUS, EARTH, MOON, MARS, PHOBOS, DEIMOS,
    JUPITER, SATURN, URANUS, NEPTUNE, PLUTO,
)

"""
Frame ids
"""
J2000 = J2000_ID
ECLIPJ2000 = 17
IAU_SUN = 10010
IAU_EARTH = 10013
IAU_MARS = 10014
IAU_MOON = 10020
ITRF93 = 3000
MOON_PA = 31006

# Mean obliquity of the ecliptic at J2000 [arcsec]
OBLIQUITY_J2000_ARCSEC = 84381.448

# Conventional names of frames realised by binary PCK segments: id -> (name, center)
KERNEL_FRAME_NAMES = {
    ITRF93: ('ITRF93', EARTH.naif_id),
    MOON_PA: ('MOON_PA', MOON.naif_id),
}

"""
IAU rotation models
Report of the IAU Working Group on Cartographic Coordinates and Rotational
Elements: 2009 (Archinal et al., Celest. Mech. Dyn. Astr. 109, 2011)
"""
SUN_ROTATION = IAURotationModel(
    ra=(286.13, 0.0),
    dec=(63.87, 0.0),
    pm=(84.176, 14.1844000, 0.0),
)

EARTH_ROTATION = IAURotationModel(
    ra=(0.0, -0.641),
    dec=(90.0, -0.557),
    pm=(190.147, 360.9856235, 0.0),
)

MARS_ROTATION = IAURotationModel(
    ra=(317.68143, -0.1061),
    dec=(52.88650, -0.0609),
    pm=(176.630, 350.89198226, 0.0),
)

# Lunar nutation-precession angles E1..E13 [deg, deg/century]
MOON_ANGLES = (
    (125.045, -1935.5364525),
    (250.089, -3871.0729050),
    (260.008, 475263.3328725),
    (176.625, 487269.6299850),
    (357.529, 35999.0509575),
    (311.589, 964468.4993100),
    (134.963, 477198.8693250),
    (276.617, 12006.3007650),
    (34.226, 63863.5132425),
    (15.134, -5806.6093575),
    (119.743, 131.8406400),
    (239.961, 6003.1503825),
    (25.053, 473327.7964200),
)

MOON_ROTATION = IAURotationModel(
    ra=(269.9949, 0.0031),
    dec=(66.5392, 0.0130),
    pm=(38.3213, 13.17635815, -1.4e-12),
    angles=MOON_ANGLES,
    ra_terms=(-3.8787, -0.1204, 0.0700, -0.0172, 0.0, 0.0072, 0.0, 0.0, 0.0,
              -0.0052, 0.0, 0.0, 0.0043),
    dec_terms=(1.5419, 0.0239, -0.0278, 0.0068, 0.0, -0.0029, 0.0009, 0.0, 0.0,
               0.0008, 0.0, 0.0, -0.0009),
    pm_terms=(3.5610, 0.1208, -0.0642, 0.0158, 0.0252, -0.0066, -0.0047,
              -0.0046, 0.0028, 0.0052, 0.0040, 0.0019, -0.0044),
)


def ecliptic_rotation() -> np.ndarray:
    """Rotation from J2000 equatorial to the J2000 mean ecliptic."""
    return axis_rotation(np.radians(OBLIQUITY_J2000_ARCSEC / 3600.0), 1)


def builtin_frames():
    """Frames every graph starts with."""
    return [
        Frame(J2000, 'J2000', FrameKind.ROOT, center=SOLAR_SYSTEM_BARYCENTER.naif_id),
        Frame(ECLIPJ2000, 'ECLIPJ2000', FrameKind.FIXED, J2000,
              SOLAR_SYSTEM_BARYCENTER.naif_id, rotation=ecliptic_rotation()),
        Frame(IAU_SUN, 'IAU_SUN', FrameKind.IAU, J2000, SUN.naif_id,
              model=SUN_ROTATION),
        Frame(IAU_EARTH, 'IAU_EARTH', FrameKind.IAU, J2000, EARTH.naif_id,
              model=EARTH_ROTATION),
        Frame(IAU_MOON, 'IAU_MOON', FrameKind.IAU, J2000, MOON.naif_id,
              model=MOON_ROTATION),
        Frame(IAU_MARS, 'IAU_MARS', FrameKind.IAU, J2000, MARS.naif_id,
              model=MARS_ROTATION),
    ]


def default_frame_graph() -> FrameGraph:
    """
    Create the built-in frame tree.

    Returns
    -------
    FrameGraph
        J2000 root, ECLIPJ2000 and the IAU body-fixed frames of the Sun,
        Earth, Moon and Mars. Kernel frames are added when orientation
        kernels are loaded.
    """
    return FrameGraph(builtin_frames())


def default_body_registry() -> BodyRegistry:
    """Create a registry of the predefined bodies."""
    return BodyRegistry(BODIES)

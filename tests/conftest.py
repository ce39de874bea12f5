"""
Shared fixtures for the Polos test suite.

Kernels are written in memory with KernelWriter, so no external data files
are needed. The ephemeris fixtures use bodies moving on straight lines,
which a degree-1 Chebyshev expansion represents exactly, so expected
states can be computed in closed form.
"""

import numpy as np
import pytest

from polos import KernelPool, KernelWriter, Metadata, config


# =============================================================================
# Test Configuration
# =============================================================================

DAY = 86400.0
SPAN = 10 * DAY          # coverage of the base ephemeris [0, SPAN]

MU_EARTH = 398600.4415   # km^3/s^2
ORBIT_RADIUS = 7000.0    # km


class LinearEphemeris:
    """
    Bodies moving on straight lines relative to their centers.

    ``bodies`` maps a NAIF id to (center, position at ``mid``, velocity).
    """

    def __init__(self, bodies, start=0.0, end=SPAN):
        self.bodies = {k: (c, np.asarray(p, dtype=float), np.asarray(v, dtype=float))
                       for k, (c, p, v) in bodies.items()}
        self.start = start
        self.end = end
        self.mid = 0.5 * (start + end)
        self.radius = 0.5 * (end - start)

    def relative(self, body, et):
        """State of ``body`` relative to its own center."""
        _, p, v = self.bodies[body]
        return p + v * (et - self.mid), v.copy()

    def barycentric(self, body, et):
        """State of ``body`` relative to the root of its chain."""
        position = np.zeros(3)
        velocity = np.zeros(3)
        while body in self.bodies:
            p, v = self.relative(body, et)
            position += p
            velocity += v
            body = self.bodies[body][0]
        return position, velocity

    def state(self, target, observer, et):
        tp, tv = self.barycentric(target, et)
        op, ov = self.barycentric(observer, et)
        return tp - op, tv - ov

    def coefficients(self, body, degree=3):
        """One Chebyshev record of shape (1, 3, degree + 1)."""
        _, p, v = self.bodies[body]
        coefficients = np.zeros((1, 3, degree + 1))
        coefficients[0, :, 0] = p
        coefficients[0, :, 1] = v * self.radius
        return coefficients

    def write(self, writer, frame=1):
        for body, (center, _, _) in self.bodies.items():
            writer.add_spk_chebyshev(body, center, frame, self.coefficients(body),
                                     init=self.start,
                                     interval_length=self.end - self.start,
                                     name=f"BODY {body}")
        return writer


SOLAR_SYSTEM = {
    3: (0, [1.0e8, 5.0e7, 2.0e7], [-10.0, 25.0, 11.0]),
    399: (3, [4000.0, -3000.0, 1000.0], [0.01, 0.012, -0.005]),
    301: (3, [-3.3e5, 2.4e5, 1.0e5], [-0.6, -0.8, -0.3]),
    10: (0, [-1.0e6, 2.0e5, 5.0e4], [0.01, -0.01, 0.0]),
}


def circular_orbit(epochs, radius=ORBIT_RADIUS, mu=MU_EARTH):
    """States of an equatorial circular orbit, shape (n, 6)."""
    epochs = np.asarray(epochs, dtype=float)
    n = np.sqrt(mu / radius**3)
    angle = n * epochs
    states = np.zeros((epochs.size, 6))
    states[:, 0] = radius * np.cos(angle)
    states[:, 1] = radius * np.sin(angle)
    states[:, 3] = -radius * n * np.sin(angle)
    states[:, 4] = radius * n * np.cos(angle)
    return states


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def reset_config():
    """Restore package configuration after every test."""
    yield
    config.reset()


@pytest.fixture
def ephemeris():
    """Straight-line Sun, Earth-Moon barycenter, Earth and Moon."""
    return LinearEphemeris(SOLAR_SYSTEM)


@pytest.fixture
def spk_bytes(ephemeris):
    """SPK type 2 kernel of the straight-line ephemeris."""
    writer = KernelWriter('SPK', internal_name='POLOS TEST EPHEMERIS',
                          comments='Straight-line test ephemeris\nGenerated for tests',
                          metadata=Metadata(originator='polos test suite'))
    return ephemeris.write(writer).to_bytes()


@pytest.fixture
def chebyshev_coefficients():
    """Three records of degree 5 position coefficients."""
    rng = np.random.default_rng(20240101)
    coefficients = rng.normal(scale=1.0e3, size=(3, 3, 6))
    coefficients[:, :, 0] += 1.5e8
    return coefficients


@pytest.fixture
def orbit_samples():
    """Circular orbit sampled every 60 s for two hours."""
    epochs = np.arange(0.0, 7200.0 + 1.0, 60.0)
    return epochs, circular_orbit(epochs)


@pytest.fixture
def pck_angles():
    """Constant pole angles with a uniformly rotating prime meridian."""
    return {
        'phi': 0.3,
        'delta': 1.2,
        'w0': 2.0,
        'w_dot': 7.2921150e-5,
    }


@pytest.fixture
def pck_bytes(pck_angles):
    """PCK type 2 kernel for ITRF93 (frame 3000) relative to J2000."""
    radius = SPAN / 2
    coefficients = np.zeros((1, 3, 3))
    coefficients[0, 0, 0] = pck_angles['phi']
    coefficients[0, 1, 0] = pck_angles['delta']
    coefficients[0, 2, 0] = pck_angles['w0']
    coefficients[0, 2, 1] = pck_angles['w_dot'] * radius
    writer = KernelWriter('PCK', internal_name='POLOS TEST ORIENTATION')
    writer.add_pck_chebyshev(3000, 1, coefficients, init=0.0,
                             interval_length=SPAN, name='ITRF93 TEST')
    return writer.to_bytes()


@pytest.fixture
def pool(spk_bytes):
    """Pool with the straight-line ephemeris loaded."""
    pool = KernelPool()
    pool.load_kernel(spk_bytes)
    yield pool
    pool.close()

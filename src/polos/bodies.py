'''Body definitions
Ellipsoid, Body and BodyRegistry class definitions'''

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple, Union

import numpy as np

from .errors import UnknownBody

BodyRef = Union[int, str]


@dataclass(frozen=True)
class Ellipsoid:
    """
    Triaxial shape of a body [km].

    The semi-minor equatorial and polar radii default to the semi-major
    radius, so ``Ellipsoid(r)`` is a sphere.
    """
    semi_major_equatorial_radius_km: float
    semi_minor_equatorial_radius_km: Optional[float] = None
    polar_radius_km: Optional[float] = None

    def __post_init__(self):
        a = float(self.semi_major_equatorial_radius_km)
        b = a if self.semi_minor_equatorial_radius_km is None else float(
            self.semi_minor_equatorial_radius_km)
        c = a if self.polar_radius_km is None else float(self.polar_radius_km)
        if min(a, b, c) <= 0:
            raise ValueError(f"Ellipsoid radii must be positive, got {(a, b, c)}")
        if b > a:
            raise ValueError("Semi-minor equatorial radius exceeds the semi-major radius")
        object.__setattr__(self, 'semi_major_equatorial_radius_km', a)
        object.__setattr__(self, 'semi_minor_equatorial_radius_km', b)
        object.__setattr__(self, 'polar_radius_km', c)

    @classmethod
    def from_flattening(cls, equatorial_radius_km: float, flattening: float) -> 'Ellipsoid':
        """Oblate spheroid from its equatorial radius and flattening."""
        if not 0.0 <= flattening < 1.0:
            raise ValueError(f"Flattening must lie in [0, 1), got {flattening}")
        return cls(equatorial_radius_km, equatorial_radius_km,
                   equatorial_radius_km * (1.0 - flattening))

    @property
    def mean_equatorial_radius_km(self) -> float:
        return 0.5 * (self.semi_major_equatorial_radius_km
                      + self.semi_minor_equatorial_radius_km)

    @property
    def flattening(self) -> float:
        """(mean equatorial radius - polar radius) / mean equatorial radius"""
        mean = self.mean_equatorial_radius_km
        return (mean - self.polar_radius_km) / mean

    @property
    def is_sphere(self) -> bool:
        return (self.semi_major_equatorial_radius_km
                == self.semi_minor_equatorial_radius_km == self.polar_radius_km)

    def __str__(self):
        if self.is_sphere:
            return f"sphere of radius {self.semi_major_equatorial_radius_km} km"
        return (f"ellipsoid with radii {self.semi_major_equatorial_radius_km} km, "
                f"{self.semi_minor_equatorial_radius_km} km (equatorial), "
                f"{self.polar_radius_km} km (polar)")


@dataclass(frozen=True)
class Body:
    """
    Named ephemeris object.

    Attributes
    ----------
    naif_id : int
        NAIF integer code used by SPK segments
    name : str
        Primary name (upper case)
    mu : float, optional
        Gravitational parameter [km^3/s^2]
    radius : float, optional
        Mean equatorial radius [km], taken from ``shape`` when omitted
    aliases : tuple of str
        Other accepted names
    shape : Ellipsoid, optional
        Body shape, a sphere of ``radius`` when omitted
    """
    naif_id: int
    name: str
    mu: Optional[float] = None
    radius: Optional[float] = None
    aliases: Tuple[str, ...] = field(default=())
    shape: Optional[Ellipsoid] = None

    def __post_init__(self):
        object.__setattr__(self, 'name', _normalize(self.name))
        object.__setattr__(self, 'aliases', tuple(_normalize(a) for a in self.aliases))
        if self.mu is not None and self.mu <= 0:
            raise ValueError(f"Gravitational parameter of {self.name} must be positive")
        if self.radius is not None and self.radius <= 0:
            raise ValueError(f"Radius of {self.name} must be positive")
        if self.shape is None and self.radius is not None:
            object.__setattr__(self, 'shape', Ellipsoid(self.radius))
        elif self.shape is not None and self.radius is None:
            object.__setattr__(self, 'radius', self.shape.mean_equatorial_radius_km)

    @property
    def is_barycenter(self) -> bool:
        return 0 <= self.naif_id < 10

    @property
    def flattening(self) -> Optional[float]:
        return self.shape.flattening if self.shape is not None else None

    def __str__(self):
        return f"{self.name} ({self.naif_id})"


def _normalize(name: str) -> str:
    return ' '.join(name.replace('_', ' ').split()).upper()


class BodyRegistry:
    """
    Bidirectional map between body names and NAIF ids.

    Unregistered integer ids are accepted as they are, so any body present in
    a kernel can be queried by id.
    """

    def __init__(self, bodies: Iterable[Body] = ()):
        self._by_id: Dict[int, Body] = {}
        self._by_name: Dict[str, int] = {}
        for body in bodies:
            self.add(body)

    def add(self, body: Body):
        self._by_id[body.naif_id] = body
        for name in (body.name,) + body.aliases:
            self._by_name[name] = body.naif_id

    def resolve(self, body: BodyRef) -> int:
        """
        NAIF id of a body name or id.

        Raises
        ------
        UnknownBody
            If a name is not registered
        """
        if isinstance(body, Body):
            return body.naif_id
        if isinstance(body, (int, np.integer)) and not isinstance(body, bool):
            return int(body)
        if isinstance(body, str):
            key = _normalize(body)
            if key in self._by_name:
                return self._by_name[key]
            if key.lstrip('-').isdigit():
                return int(key)
            raise UnknownBody(f"Body '{body}' is not registered")
        raise UnknownBody(f"Cannot interpret {body!r} as a body")

    def get(self, body: BodyRef) -> Optional[Body]:
        return self._by_id.get(self.resolve(body))

    def name_of(self, naif_id: int) -> str:
        body = self._by_id.get(naif_id)
        return body.name if body is not None else str(naif_id)

    def __contains__(self, body) -> bool:
        try:
            return self.resolve(body) in self._by_id
        except UnknownBody:
            return False

    def __iter__(self):
        return iter(sorted(self._by_id.values(), key=lambda b: b.naif_id))

    def __len__(self):
        return len(self._by_id)

    def __repr__(self):
        return f"BodyRegistry(bodies={len(self._by_id)})"

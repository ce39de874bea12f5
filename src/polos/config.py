"""
Global Configuration for Polos Package
======================================

This module provides package-wide configuration settings that users can modify
to control numerical tolerances, kernel loading behavior, and the limits of
the iterative and recursive parts of the query engine.

Examples
--------
View current configuration:

>>> import polos
>>> print(polos.config)

Modify settings:

>>> polos.config.STRICT_LOADING = False  # Skip corrupt segments with a warning
>>> polos.config.LIGHT_TIME_MAX_ITERATIONS = 10

Reset to defaults:

>>> polos.config.reset()

Temporarily modify settings:

>>> with polos.temp_config(USE_MMAP=False):
...     # Kernels are read fully into memory for this block only
...     handle = pool.load_kernel("de440s.bsp")

Notes
-----
These settings affect package-wide behavior. Modifying them will impact
all subsequent operations until changed again or reset.
"""

from dataclasses import dataclass
from contextlib import contextmanager


@dataclass
class PolosConfig:
    """
    Global configuration for Polos package.

    Attributes
    ----------
    EQUALITY_RTOL : float
        Relative tolerance for floating-point equality comparisons of
        states and transforms.
        Default: 1e-12
    EQUALITY_ATOL : float
        Absolute tolerance for floating-point equality comparisons.
        Default: 1e-14
    STRICT_LOADING : bool
        If True, the first structural error in a kernel fails the whole load.
        If False, corrupt segments are skipped and a warning is issued.
        Default: True
    USE_MMAP : bool
        If True, kernels loaded from a path are memory-mapped.
        If False, the file is read fully into memory.
        Default: True
    SPEED_OF_LIGHT_KM_S : float
        Speed of light used by aberration corrections [km/s].
        Default: 299792.458
    LIGHT_TIME_MAX_ITERATIONS : int
        Maximum number of iterations of the converged Newtonian
        light-time solution before giving up.
        Default: 5
    LIGHT_TIME_TOLERANCE : float
        Relative change in light time below which the iteration
        is considered converged.
        Default: 1e-12
    MAX_FRAME_DEPTH : int
        Maximum number of edges walked from a frame toward the root of
        the frame tree.
        Default: 32
    MAX_EPHEMERIS_DEPTH : int
        Maximum number of segments chained from a body toward the root of
        the ephemeris tree.
        Default: 32
    LEAP_SECOND_EXPIRY_CHECK : bool
        If True, UTC conversions after the leap-second table expiry raise.
        Default: True
    """

    # Numerical tolerance for equality comparisons
    EQUALITY_RTOL: float = 1e-12
    EQUALITY_ATOL: float = 1e-14

    # Kernel loading behavior
    STRICT_LOADING: bool = True
    USE_MMAP: bool = True

    # Aberration corrections
    SPEED_OF_LIGHT_KM_S: float = 299792.458
    LIGHT_TIME_MAX_ITERATIONS: int = 5
    LIGHT_TIME_TOLERANCE: float = 1e-12

    # Graph traversal limits
    MAX_FRAME_DEPTH: int = 32
    MAX_EPHEMERIS_DEPTH: int = 32

    # Time system
    LEAP_SECOND_EXPIRY_CHECK: bool = True

    def reset(self):
        """
        Reset all configuration values to package defaults.

        Examples
        --------
        >>> import polos
        >>> polos.config.STRICT_LOADING = False  # Modify
        >>> polos.config.reset()  # Back to defaults
        >>> polos.config.STRICT_LOADING
        True
        """
        defaults = PolosConfig()
        for key in self.__dataclass_fields__:
            setattr(self, key, getattr(defaults, key))

    def __repr__(self):
        """Return formatted string showing all configuration values."""
        lines = ["PolosConfig:"]
        lines.append("  Numerical Tolerances:")
        lines.append(f"    EQUALITY_RTOL = {self.EQUALITY_RTOL}")
        lines.append(f"    EQUALITY_ATOL = {self.EQUALITY_ATOL}")
        lines.append("  Loading:")
        lines.append(f"    STRICT_LOADING = {self.STRICT_LOADING}")
        lines.append(f"    USE_MMAP = {self.USE_MMAP}")
        lines.append("  Aberration:")
        lines.append(f"    SPEED_OF_LIGHT_KM_S = {self.SPEED_OF_LIGHT_KM_S}")
        lines.append(f"    LIGHT_TIME_MAX_ITERATIONS = {self.LIGHT_TIME_MAX_ITERATIONS}")
        lines.append(f"    LIGHT_TIME_TOLERANCE = {self.LIGHT_TIME_TOLERANCE}")
        lines.append("  Traversal:")
        lines.append(f"    MAX_FRAME_DEPTH = {self.MAX_FRAME_DEPTH}")
        lines.append(f"    MAX_EPHEMERIS_DEPTH = {self.MAX_EPHEMERIS_DEPTH}")
        lines.append("  Time:")
        lines.append(f"    LEAP_SECOND_EXPIRY_CHECK = {self.LEAP_SECOND_EXPIRY_CHECK}")
        return "\n".join(lines)


# Global configuration instance
config = PolosConfig()


@contextmanager
def temp_config(**kwargs):
    """
    Context manager for temporarily modifying configuration values.

    Configuration is automatically restored when the context exits,
    even if an exception occurs.

    Parameters
    ----------
    **kwargs
        Configuration attributes to temporarily modify.

    Examples
    --------
    >>> import polos
    >>> with polos.temp_config(STRICT_LOADING=False):
    ...     handle = pool.load_kernel("damaged.bsp")  # best-effort load
    >>> # Original config restored here
    >>> polos.config.STRICT_LOADING
    True

    Raises
    ------
    AttributeError
        If an invalid configuration attribute is specified.
    """
    old_values = {}
    for key, value in kwargs.items():
        if not hasattr(config, key):
            raise AttributeError(
                f"PolosConfig has no attribute '{key}'. "
                f"Valid attributes: {list(config.__dataclass_fields__.keys())}"
            )
        old_values[key] = getattr(config, key)
        setattr(config, key, value)

    try:
        yield config
    finally:
        for key, value in old_values.items():
            setattr(config, key, value)

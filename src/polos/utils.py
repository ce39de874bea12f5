"""
Utility functions and classes for the Polos package.
"""

import logging
import warnings
from time import perf_counter
from typing import Optional, Type

from .config import config

logger = logging.getLogger(__name__)


class Timer:
    """
    Context manager for timing code execution.

    Examples
    --------
    >>> from polos.utils import Timer
    >>> with Timer("Catalog build"):
    ...     catalog = build_catalog(kernel)
    Catalog build: 0.001234 s

    >>> with Timer(verbose=False) as t:
    ...     # ... code ...
    >>> print(f"Took {t.elapsed:.6f} seconds")

    When a logger is given the timing is reported at DEBUG level instead of
    printed.
    """
    def __init__(self, name="Operation", verbose=True,
                 log: Optional[logging.Logger] = None):
        """
        Parameters
        ----------
        name : str, optional
            Name to display when timing completes (default: "Operation")
        verbose : bool, optional
            Whether to report timing automatically (default: True)
        log : logging.Logger, optional
            Logger receiving the report; prints to stdout when omitted
        """
        self.name = name
        self.verbose = verbose
        self.log = log
        self.elapsed = None

    def __enter__(self):
        self.start = perf_counter()
        return self

    def __exit__(self, *args):
        self.end = perf_counter()
        self.elapsed = self.end - self.start
        if self.verbose:
            if self.log is not None:
                self.log.debug("%s: %.6f s", self.name, self.elapsed)
            else:
                print(f"{self.name}: {self.elapsed:.6f} s")


def validation_error(message: str, error: Optional[Exception] = None,
                     error_class: Type[Exception] = ValueError,
                     strict: Optional[bool] = None):
    """
    Raise error or warn based on the loading mode.

    This function provides consistent strict/best-effort behavior across the
    package. In strict mode (default, ``config.STRICT_LOADING``) the error is
    raised. In best-effort mode a UserWarning is issued and the condition is
    logged, and the caller carries on with the remaining data.

    Parameters
    ----------
    message : str
        Validation error message
    error : Exception, optional
        Already-built exception to raise in strict mode. Takes precedence
        over ``error_class``.
    error_class : Type[Exception], optional
        Exception class to raise in strict mode when ``error`` is not given.
        Default: ValueError
    strict : bool, optional
        Overrides ``config.STRICT_LOADING`` when given

    Raises
    ------
    Exception
        If running in strict mode

    Warns
    -----
    UserWarning
        If running in best-effort mode

    Examples
    --------
    >>> from polos.utils import validation_error
    >>> validation_error("Segment 3 is corrupt")  # Raises ValueError
    >>> validation_error("Segment 3 is corrupt", strict=False)  # Warns
    """
    if strict is None:
        strict = config.STRICT_LOADING
    if strict:
        if error is not None:
            raise error
        raise error_class(message)
    logger.warning(message)
    warnings.warn(message, UserWarning, stacklevel=3)

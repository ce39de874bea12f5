"""
Polos: Ephemeris and Orientation Kernel Engine

A Python package that reads NAIF-compatible binary SPK and PCK kernels and
answers, for any epoch, the state of one body relative to another or the
rotation between two reference frames.
"""
import logging

# Core classes
from .kernel_pool import (KernelPool, KernelHandle, PoolSnapshot,
                          get_default_pool, load_kernel, unload_kernel,
                          clear_kernels, state, transform, inspect,
                          inspect_dataframe, states_dataframe, geodetic_frame)
from .epoch import Epoch, TimeScale, LeapSecondTable, to_epoch, epoch_range
from .state import State, Orientation
from .frames import (Frame, FrameGraph, FrameKind, FrameTransform, GeodeticFrame,
                     IAURotationModel)
from .aberration import Aberration
from .bodies import Body, BodyRegistry, Ellipsoid
from .container import KernelFile, Metadata, open_kernel
from .catalog import SegmentCatalog, SegmentDescriptor, SegmentType, build_catalog
from .interpolation import evaluate
from .writer import KernelWriter

# Commonly-used bodies and frames
from .defaults import EARTH, MOON, SUN, MARS, J2000, ECLIPJ2000

# Configuration and errors
from .config import config, temp_config
from .errors import (QueryError, FormatError, BadMagic, Truncated, OutOfRange,
                     UnsupportedSegmentType, CoverageError, NoCoverage, MissingConstants,
                     InterpError, EpochOutOfWindow, DegenerateWindow, GraphError,
                     NoPath, UnknownFrame, UnknownBody, TimeError,
                     UnknownLeapSecondEra, AberrationDidNotConverge)

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Package metadata
from ._version import __version__

# Define what gets imported with "from polos import *"
__all__ = [
    # Classes
    "KernelPool",
    "KernelHandle",
    "PoolSnapshot",
    "Epoch",
    "TimeScale",
    "LeapSecondTable",
    "State",
    "Orientation",
    "Frame",
    "FrameGraph",
    "FrameKind",
    "FrameTransform",
    "IAURotationModel",
    "Aberration",
    "Body",
    "BodyRegistry",
    "KernelFile",
    "SegmentCatalog",
    "SegmentDescriptor",
    "SegmentType",
    "KernelWriter",
    "GeodeticFrame",
    "Ellipsoid",
    "Metadata",
    # Functions
    "get_default_pool",
    "load_kernel",
    "unload_kernel",
    "clear_kernels",
    "state",
    "transform",
    "inspect",
    "inspect_dataframe",
    "states_dataframe",
    "geodetic_frame",
    "to_epoch",
    "epoch_range",
    "open_kernel",
    "build_catalog",
    "evaluate",
    # Constants
    "EARTH",
    "MOON",
    "SUN",
    "MARS",
    "J2000",
    "ECLIPJ2000",
    # Configuration
    "config",
    "temp_config",
    # Errors
    "QueryError",
    "FormatError",
    "BadMagic",
    "Truncated",
    "OutOfRange",
    "UnsupportedSegmentType",
    "CoverageError",
    "NoCoverage",
    "MissingConstants",
    "InterpError",
    "EpochOutOfWindow",
    "DegenerateWindow",
    "GraphError",
    "NoPath",
    "UnknownFrame",
    "UnknownBody",
    "TimeError",
    "UnknownLeapSecondEra",
    "AberrationDidNotConverge",
]

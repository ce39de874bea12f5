"""
Test suite for the segment catalog.

Tests include:
1. Descriptor decoding and segment layouts
2. Strict and best-effort catalog builds
3. Closed coverage intervals, to the nanosecond
4. Precedence within a kernel and across kernels
5. Coverage summaries and masking diagnostics
"""

import numpy as np
import pytest

from polos import (Epoch, FormatError, KernelWriter, NoCoverage, OutOfRange,
                   SegmentCatalog, SegmentType, UnsupportedSegmentType,
                   build_catalog, temp_config)
from polos.catalog import ChebyshevLayout, TabulatedLayout
from polos.container import RECORD_LENGTH, KernelFile

from conftest import DAY, SPAN, circular_orbit


# =============================================================================
# Test Configuration
# =============================================================================

# byte offsets of the first summary's integers in a file without comments
FIRST_SUMMARY_INTS = RECORD_LENGTH + 8 * 3 + 8 * 2
TYPE_CODE_OFFSET = FIRST_SUMMARY_INTS + 4 * 3
END_ADDRESS_OFFSET = FIRST_SUMMARY_INTS + 4 * 5


def constant_coefficients(value, degree=2):
    coefficients = np.zeros((1, 3, degree + 1))
    coefficients[0, :, 0] = value
    return coefficients


def catalog_of(*intervals, target=399, center=3, handle=0):
    """Catalog with one constant segment per (start, end, value) interval."""
    writer = KernelWriter('SPK')
    for start, end, value in intervals:
        writer.add_spk_chebyshev(target, center, 1, constant_coefficients(value),
                                 init=start, interval_length=end - start,
                                 name=f"VALUE {value}")
    return build_catalog(writer.to_kernel(), handle=handle)


def value_of(segment):
    return float(segment.data(2, 1)[0])


# =============================================================================
# Test Descriptors
# =============================================================================

class TestDescriptors:
    """Test decoding summaries into segment descriptors."""

    def test_chebyshev_descriptor(self, chebyshev_coefficients):
        writer = KernelWriter('SPK')
        writer.add_spk_chebyshev(399, 3, 1, chebyshev_coefficients, init=0.0,
                                 interval_length=DAY, name='EARTH')
        [segment] = list(build_catalog(writer.to_kernel()))
        assert (segment.target_id, segment.center_id, segment.frame_id) == (399, 3, 1)
        assert segment.segment_type is SegmentType.CHEBYSHEV_POSITION
        assert segment.start_epoch == 0.0
        assert segment.end_epoch == 3 * DAY
        assert segment.name == 'EARTH'
        assert isinstance(segment.layout, ChebyshevLayout)
        assert segment.layout.degree == 5
        assert segment.layout.n_records == 3
        assert segment.layout.record_size == 2 + 3 * 6

    def test_tabulated_descriptors(self, orbit_samples):
        epochs, states = orbit_samples
        writer = KernelWriter('SPK')
        writer.add_spk_hermite(-100, 399, 1, epochs, states, window=8)
        writer.add_spk_lagrange(-101, 399, 1, epochs, states, degree=7,
                                equal_steps=True)
        hermite, lagrange = list(build_catalog(writer.to_kernel()))
        assert hermite.segment_type is SegmentType.HERMITE_UNEQUAL
        assert isinstance(hermite.layout, TabulatedLayout)
        assert hermite.layout.window_size == 8
        assert not hermite.layout.equal_steps
        assert lagrange.segment_type is SegmentType.LAGRANGE_EQUAL
        assert lagrange.layout.window_size == 8
        assert lagrange.layout.step == 60.0

    def test_epoch_directory_layout(self):
        epochs = np.arange(250) * 10.0
        writer = KernelWriter('SPK')
        writer.add_spk_lagrange(-100, 399, 1, epochs, circular_orbit(epochs), degree=3)
        [segment] = list(build_catalog(writer.to_kernel()))
        # 6n states, n epochs, two directory entries, window and count
        assert segment.data_length == 6 * 250 + 250 + 2 + 2
        np.testing.assert_array_equal(segment.data(7 * 250, 2), [990.0, 1990.0])

    def test_pck_descriptor(self, pck_bytes):
        [segment] = list(build_catalog(KernelFile(pck_bytes)))
        assert segment.segment_type is SegmentType.CHEBYSHEV_ANGLES
        assert segment.target_id == 3000
        assert segment.frame_id == 1
        assert segment.segment_type.is_orientation

    def test_summary_dictionary(self, spk_bytes):
        catalog = build_catalog(KernelFile(spk_bytes), handle=7)
        summary = catalog.segments[0].summary()
        assert summary['handle'] == 7
        assert summary['type'] == 2
        assert summary['family'] == 'chebyshev'
        assert summary['degree'] == 3


# =============================================================================
# Test Catalog Build
# =============================================================================

class TestBuild:
    """Test strict and best-effort builds."""

    @staticmethod
    def corrupt_type_code(code):
        writer = KernelWriter('SPK')
        writer.add_spk_chebyshev(399, 3, 1, constant_coefficients(1.0), init=0.0,
                                 interval_length=DAY)
        writer.add_spk_chebyshev(301, 3, 1, constant_coefficients(2.0), init=0.0,
                                 interval_length=DAY)
        data = bytearray(writer.to_bytes())
        data[TYPE_CODE_OFFSET:TYPE_CODE_OFFSET + 4] = np.array(
            [code], dtype='<i4').tobytes()
        return KernelFile(bytes(data))

    def test_unsupported_type_strict(self):
        with pytest.raises(UnsupportedSegmentType) as excinfo:
            build_catalog(self.corrupt_type_code(5), strict=True)
        assert excinfo.value.type_code == 5

    def test_unsupported_type_best_effort(self):
        kernel = self.corrupt_type_code(21)
        with pytest.warns(UserWarning, match="Skipping segment 0"):
            catalog = build_catalog(kernel, strict=False)
        assert len(catalog) == 1
        assert catalog.targets() == [301]
        assert len(catalog.errors) == 1
        assert isinstance(catalog.errors[0], UnsupportedSegmentType)

    def test_best_effort_from_config(self):
        kernel = self.corrupt_type_code(21)
        with temp_config(STRICT_LOADING=False):
            with pytest.warns(UserWarning):
                catalog = build_catalog(kernel)
        assert len(catalog) == 1

    def test_address_outside_buffer(self):
        writer = KernelWriter('SPK')
        writer.add_spk_chebyshev(399, 3, 1, constant_coefficients(1.0), init=0.0,
                                 interval_length=DAY)
        data = bytearray(writer.to_bytes())
        data[END_ADDRESS_OFFSET:END_ADDRESS_OFFSET + 4] = np.array(
            [10_000_000], dtype='<i4').tobytes()
        with pytest.raises(OutOfRange):
            build_catalog(KernelFile(bytes(data)), strict=True)

    def test_unsupported_kernel_kind(self):
        data = bytearray(KernelWriter('SPK').to_bytes())
        data[0:8] = b'DAF/CK  '
        with pytest.raises(UnsupportedSegmentType):
            build_catalog(KernelFile(bytes(data)))

    def test_inconsistent_directory(self):
        writer = KernelWriter('SPK')
        data = np.concatenate([[50.0, 50.0], np.ones(6), [0.0, 100.0, 9.0, 1.0]])
        writer.add_segment(SegmentType.CHEBYSHEV_POSITION, (399, 3, 1), 0.0, 100.0,
                           data)
        with pytest.raises(FormatError):
            build_catalog(writer.to_kernel(), strict=True)


# =============================================================================
# Test Coverage Boundaries
# =============================================================================

class TestBoundaries:
    """Test closed coverage intervals."""

    def test_both_endpoints_are_covered(self):
        catalog = catalog_of((0.0, SPAN, 1.0))
        assert catalog.lookup(399, 3, 0.0)
        assert catalog.lookup(399, 3, SPAN)
        assert catalog.lookup(399, 3, Epoch.from_et(SPAN))

    def test_one_nanosecond_outside(self):
        catalog = catalog_of((0.0, SPAN, 1.0))
        with pytest.raises(NoCoverage):
            catalog.lookup(399, 3, Epoch.from_et(SPAN) + 1e-9)
        with pytest.raises(NoCoverage):
            catalog.lookup(399, 3, Epoch.from_et(0.0) - 1e-9)

    def test_fractional_boundary(self):
        start = 6.3e8 + 0.1234567891
        catalog = catalog_of((start, start + DAY, 1.0))
        assert catalog.lookup(399, 3, Epoch.from_et(start))

    def test_unknown_pair(self):
        catalog = catalog_of((0.0, SPAN, 1.0))
        with pytest.raises(NoCoverage) as excinfo:
            catalog.lookup(301, 3, DAY)
        assert excinfo.value.target == 301
        assert excinfo.value.center == 3

    def test_gap_between_segments(self):
        catalog = catalog_of((0.0, DAY, 1.0), (2 * DAY, 3 * DAY, 2.0))
        with pytest.raises(NoCoverage):
            catalog.lookup(399, 3, 1.5 * DAY)

    def test_no_coverage_is_lookup_error(self):
        catalog = catalog_of((0.0, DAY, 1.0))
        with pytest.raises(LookupError):
            catalog.lookup(399, 3, 2 * DAY)


# =============================================================================
# Test Precedence
# =============================================================================

class TestPrecedence:
    """Test which segment answers where coverage overlaps."""

    def test_later_start_wins_within_kernel(self):
        catalog = catalog_of((0.0, SPAN, 1.0), (2 * DAY, 5 * DAY, 2.0))
        assert value_of(catalog.lookup(399, 3, 3 * DAY)) == 2.0
        assert value_of(catalog.lookup(399, 3, DAY)) == 1.0
        assert value_of(catalog.lookup(399, 3, 6 * DAY)) == 1.0

    def test_later_start_wins_regardless_of_file_order(self):
        catalog = catalog_of((2 * DAY, 5 * DAY, 2.0), (0.0, SPAN, 1.0))
        assert value_of(catalog.lookup(399, 3, 3 * DAY)) == 2.0

    def test_later_in_file_wins_on_equal_start(self):
        catalog = catalog_of((0.0, SPAN, 1.0), (0.0, 5 * DAY, 2.0))
        assert value_of(catalog.lookup(399, 3, DAY)) == 2.0
        assert value_of(catalog.lookup(399, 3, 6 * DAY)) == 1.0

    def test_later_kernel_wins(self):
        first = catalog_of((2 * DAY, 5 * DAY, 1.0), handle=1)
        second = catalog_of((0.0, SPAN, 2.0), handle=2)
        merged = first.merge(second)
        assert value_of(merged.lookup(399, 3, 3 * DAY)) == 2.0
        # the earlier kernel still answers through an explicit handle
        assert value_of(merged.lookup(399, 3, 3 * DAY, kernel=1)) == 1.0
        with pytest.raises(NoCoverage):
            merged.lookup(399, 3, 6 * DAY, kernel=1)

    def test_earlier_kernel_fills_gaps(self):
        first = catalog_of((0.0, SPAN, 1.0), handle=1)
        second = catalog_of((2 * DAY, 5 * DAY, 2.0), handle=2)
        merged = first.merge(second)
        assert value_of(merged.lookup(399, 3, DAY)) == 1.0
        assert value_of(merged.lookup(399, 3, 3 * DAY)) == 2.0

    def test_without_handle(self):
        first = catalog_of((0.0, SPAN, 1.0), handle=1)
        second = catalog_of((0.0, SPAN, 2.0), handle=2)
        remaining = first.merge(second).without(2)
        assert len(remaining) == 1
        assert value_of(remaining.lookup(399, 3, DAY)) == 1.0

    def test_lookup_any_center(self):
        writer = KernelWriter('SPK')
        writer.add_spk_chebyshev(399, 3, 1, constant_coefficients(1.0), init=0.0,
                                 interval_length=SPAN)
        writer.add_spk_chebyshev(399, 0, 1, constant_coefficients(2.0), init=0.0,
                                 interval_length=5 * DAY)
        catalog = build_catalog(writer.to_kernel())
        # equal starts: the later segment in the file wins
        assert catalog.lookup_any_center(399, DAY).center_id == 0
        assert catalog.lookup_any_center(399, 7 * DAY).center_id == 3
        assert catalog.lookup(399, 3, DAY).center_id == 3


# =============================================================================
# Test Coverage Summaries
# =============================================================================

class TestCoverage:
    """Test coverage unions and masking diagnostics."""

    def test_coverage_union(self):
        catalog = catalog_of((0.0, 2 * DAY, 1.0), (DAY, 3 * DAY, 2.0),
                             (5 * DAY, 6 * DAY, 3.0))
        assert catalog.coverage(399) == [(0.0, 3 * DAY), (5 * DAY, 6 * DAY)]
        assert catalog.coverage(399, 3) == catalog.coverage(399)
        assert catalog.coverage(301) == []

    def test_masked_segments(self):
        first = catalog_of((0.0, SPAN, 1.0), handle=1)
        second = catalog_of((2 * DAY, 5 * DAY, 2.0), handle=2)
        [(masked, masking)] = first.merge(second).masked_segments()
        assert masked.handle == 1
        assert masking.handle == 2

    def test_no_masking_within_one_kernel(self):
        catalog = catalog_of((0.0, SPAN, 1.0), (2 * DAY, 5 * DAY, 2.0))
        assert catalog.masked_segments() == []

    def test_without_drops_one_kernel(self):
        first = catalog_of((0.0, SPAN, 1.0), handle=1)
        second = catalog_of((2 * DAY, 5 * DAY, 2.0), handle=2)
        merged = first.merge(second)
        remaining = merged.without(2)
        assert len(remaining) == 1
        assert value_of(remaining.lookup(399, 3, 3 * DAY)) == 1.0
        assert len(merged) == 2
        assert len(merged.without(1).without(2)) == 0

    def test_empty_catalog(self):
        catalog = SegmentCatalog()
        assert len(catalog) == 0
        assert catalog.targets() == []
        with pytest.raises(NoCoverage):
            catalog.lookup_any_center(399, 0.0)

    def test_targets_and_pairs(self, spk_bytes):
        catalog = build_catalog(KernelFile(spk_bytes))
        assert catalog.targets() == [3, 10, 301, 399]
        assert (301, 3) in catalog.pairs()
        assert catalog.has_target(399)
        assert not catalog.has_target(499)

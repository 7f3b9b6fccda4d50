"""Tests for volume partitioning (grid and manual modes)."""
import numpy as np
import pytest

from geometry_primitives import BoundingBox
from parts import ConfigurationError
from volume_partitioner import (
    SlicingConfig,
    count_cells,
    grid_extents,
    grid_steps,
    has_neighbor,
    manual_extents,
    partition_volume,
)


def _bounds(size, origin=(0.0, 0.0, 0.0)):
    origin = np.array(origin, dtype=float)
    return BoundingBox(origin, origin + np.array(size, dtype=float))


class TestGridExtents:
    """Per-axis step and size computation."""

    @pytest.mark.parametrize(
        "total,envelope",
        [(200.0, 120.0), (240.0, 120.0), (37.3, 10.0), (5.0, 120.0), (999.9, 33.3)],
    )
    def test_extents_sum_to_total(self, total, envelope):
        sizes = grid_extents(total, envelope)
        assert len(sizes) == grid_steps(total, envelope)
        assert sum(sizes) == pytest.approx(total)
        assert all(s == envelope for s in sizes[:-1])

    def test_remainder_goes_to_last_cell(self):
        assert grid_extents(200.0, 120.0) == [120.0, 80.0]

    def test_exact_multiple_has_full_last_cell(self):
        assert grid_extents(240.0, 120.0) == [120.0, 120.0]

    def test_small_object_is_one_step(self):
        assert grid_steps(5.0, 120.0) == 1
        assert grid_extents(5.0, 120.0) == [5.0]

    def test_zero_envelope_rejected(self):
        with pytest.raises(ConfigurationError):
            grid_steps(100.0, 0.0)


class TestManualExtents:

    def test_enabled_axis_splits_in_two(self):
        assert manual_extents(200.0, 60.0, True) == [60.0, 140.0]

    def test_disabled_axis_is_whole(self):
        assert manual_extents(200.0, 60.0, False) == [200.0]

    @pytest.mark.parametrize("offset", [0.5, 10.0, 99.9, 150.0])
    def test_splits_sum_to_total(self, offset):
        assert sum(manual_extents(173.2, offset, True)) == pytest.approx(173.2)


class TestPartitionVolume:

    def test_cube_grid_makes_eight_cells(self):
        partition = partition_volume(_bounds([200, 200, 200]), SlicingConfig())
        assert partition.steps == (2, 2, 2)
        assert partition.cell_count == 8
        last = partition.cells[-1]
        assert last.index == (1, 1, 1)
        np.testing.assert_allclose(last.size, [80.0, 80.0, 80.0])
        np.testing.assert_allclose(last.bounds.min_corner, [120.0, 120.0, 120.0])

    def test_cells_tile_bounds_without_gaps(self):
        bounds = _bounds([310.0, 95.0, 250.0], origin=(-40.0, 0.0, 12.5))
        config = SlicingConfig(printer_x=100.0, printer_y=100.0, printer_z=90.0)
        partition = partition_volume(bounds, config)

        volume = sum(float(np.prod(c.size)) for c in partition.cells)
        assert volume == pytest.approx(float(np.prod(bounds.size)))
        mins = np.min([c.bounds.min_corner for c in partition.cells], axis=0)
        maxs = np.max([c.bounds.max_corner for c in partition.cells], axis=0)
        np.testing.assert_allclose(mins, bounds.min_corner)
        np.testing.assert_allclose(maxs, bounds.max_corner)

    def test_iteration_order_is_i_outer_k_inner(self):
        partition = partition_volume(_bounds([200, 200, 200]), SlicingConfig())
        indices = [c.index for c in partition.cells]
        assert indices == sorted(indices)
        assert indices[:3] == [(0, 0, 0), (0, 0, 1), (0, 1, 0)]

    def test_cell_count_limit_is_fatal(self):
        # 501 = 3 * 167 steps
        bounds = _bounds([300.0, 10.0, 1670.0])
        config = SlicingConfig(printer_x=100.0, printer_y=100.0, printer_z=10.0)
        assert count_cells(bounds, config) == 501
        with pytest.raises(ConfigurationError, match="safety limit"):
            partition_volume(bounds, config)

    def test_huge_cell_count_does_not_wrap(self):
        # ~2**22 steps per axis: the product is far beyond int64.
        bounds = _bounds([4194.304] * 3)
        config = SlicingConfig(printer_x=0.001, printer_y=0.001, printer_z=0.001)
        steps = grid_steps(4194.304, 0.001)
        assert count_cells(bounds, config) == steps ** 3
        assert count_cells(bounds, config) > 2 ** 63
        with pytest.raises(ConfigurationError, match="safety limit"):
            partition_volume(bounds, config)

    def test_cell_count_at_limit_is_allowed(self):
        bounds = _bounds([500.0, 10.0, 10.0])
        config = SlicingConfig(printer_x=1.0, printer_y=10.0, printer_z=10.0)
        assert partition_volume(bounds, config).cell_count == 500

    def test_manual_mode_splits_enabled_axes_only(self):
        config = SlicingConfig(mode="manual", manual_y=60.0, split_y=True)
        partition = partition_volume(_bounds([200, 200, 200]), config)
        assert partition.steps == (1, 2, 1)
        assert partition.extents[1] == [60.0, 140.0]
        np.testing.assert_allclose(partition.cells[1].bounds.min_corner, [0.0, 60.0, 0.0])

    def test_manual_mode_is_not_bounded_by_limit(self):
        config = SlicingConfig(mode="manual", split_x=True, split_y=True, split_z=True)
        partition = partition_volume(_bounds([200, 200, 200]), config, max_parts=4)
        assert partition.cell_count == 8

    def test_degenerate_cells_are_flagged_not_dropped(self):
        config = SlicingConfig(mode="manual", manual_x=200.0, split_x=True)
        partition = partition_volume(_bounds([200, 200, 200]), config)
        assert partition.cell_count == 2
        assert not partition.cells[0].is_degenerate
        assert partition.cells[1].is_degenerate

    def test_unknown_mode_rejected(self):
        with pytest.raises(ConfigurationError):
            partition_volume(_bounds([10, 10, 10]), SlicingConfig(mode="spiral"))

    def test_non_positive_envelope_rejected(self):
        with pytest.raises(ConfigurationError):
            partition_volume(_bounds([10, 10, 10]), SlicingConfig(printer_y=0.0))


class TestAdjacency:

    def test_neighbors_by_index_arithmetic(self):
        steps = (2, 3, 1)
        assert has_neighbor((0, 1, 0), steps, 0, +1)
        assert not has_neighbor((1, 1, 0), steps, 0, +1)
        assert has_neighbor((0, 1, 0), steps, 1, -1)
        assert has_neighbor((0, 1, 0), steps, 1, +1)
        assert not has_neighbor((0, 0, 0), steps, 1, -1)
        assert not has_neighbor((0, 0, 0), steps, 2, +1)
        assert not has_neighbor((0, 0, 0), steps, 2, -1)

"""Tests for the channel histogram renderer and the nebula compositor."""

import numpy as np
import pytest

from nebula.escape import INSIDE, EscapeBatch, MandelPoint, escape_time, trace_orbits
from nebula.plane import RenderArea, plane_to_pixel
from nebula.renderer import (
    ColorChannel,
    VisitCounter,
    colorize_visits,
    reference_channels,
    render_channel,
    render_flat,
    render_nebula,
)

# 0.25+0.25j visits pixel (2, 2) on its first two steps of a 4x4 [-1, 1] grid;
# -0.25-0.25j visits pixel (1, 1) on its first step.
TWICE_AT_2_2 = MandelPoint(2, 0.25 + 0.25j, 0.171875 + 0.4375j)
ONCE_AT_1_1 = MandelPoint(1, -0.25 - 0.25j, -0.25 - 0.125j)


class TestColorChannel:
    def test_contains_is_inclusive(self):
        channel = ColorChannel(17, 256, 0.0, 1.0, 0.0)
        assert channel.contains(17)
        assert channel.contains(256)
        assert not channel.contains(16)
        assert not channel.contains(257)

    def test_contains_arrays(self):
        channel = ColorChannel(0, 16, 0.0, 0.0, 1.0)
        assert channel.contains(np.array([0, 16, 17, INSIDE])).tolist() == [True, True, False, False]

    def test_until_excludes_stop(self):
        channel = ColorChannel.until(257, 4096, 1.0, 0.0, 0.0)
        assert channel.high == 4095

    def test_empty_range_matches_nothing(self):
        channel = ColorChannel.until(257, 64, 1.0, 0.0, 0.0)
        assert not channel.contains(np.arange(0, 300)).any()

    def test_rejects_negative_weight(self):
        with pytest.raises(ValueError):
            ColorChannel(0, 5, -0.1, 1.0, 1.0)

    def test_reference_channels(self):
        blue, green, red = reference_channels(4096)
        assert (blue.low, blue.high, blue.blue) == (0, 16, 1.0)
        assert (green.low, green.high, green.green) == (17, 256, 1.0)
        assert (red.low, red.high, red.red) == (257, 4095, 1.0)


class TestVisitCounter:
    def test_counts_scalar_and_array_values(self, unit_area):
        counter = VisitCounter(unit_area)
        counter(0.25 + 0.25j)
        counter(np.array([0.25 + 0.25j, -0.25 - 0.25j]))
        assert counter.counts[2, 2] == 2
        assert counter.counts[1, 1] == 1
        assert counter.counts.sum() == 3

    def test_drops_out_of_bounds_values(self, unit_area):
        counter = VisitCounter(unit_area)
        counter(np.array([5 + 5j, -3 + 0j, 0.25 + 0.25j]))
        assert counter.counts.sum() == 1


class TestColorizeVisits:
    def test_uniform_grid_yields_zeros(self, white_channel):
        result = colorize_visits(np.full((4, 4), 7), white_channel)
        assert result.shape == (48,)
        assert not result.any()

    def test_empty_histogram_yields_zeros(self, white_channel):
        result = colorize_visits(np.zeros((4, 4), dtype=np.int64), white_channel)
        assert not result.any()

    def test_weights_scale_components(self):
        counts = np.array([[0, 4], [2, 0]])
        result = colorize_visits(counts, ColorChannel(0, 10, 1.0, 0.5, 0.0)).reshape(2, 2, 3)
        np.testing.assert_allclose(result[0, 1], [1.0, 0.5, 0.0])
        np.testing.assert_allclose(result[1, 0], [0.5, 0.25, 0.0])
        np.testing.assert_allclose(result[0, 0], [0.0, 0.0, 0.0])


class TestRenderChannel:
    def test_end_to_end_four_by_four(self, unit_area, white_channel):
        batch = EscapeBatch.from_points([TWICE_AT_2_2, ONCE_AT_1_1])
        frame = render_channel(white_channel, unit_area, batch).reshape(4, 4, 3)

        np.testing.assert_allclose(frame[2, 2], [1.0, 1.0, 1.0])
        # unvisited pixels are the minimum, so a single visit lands halfway
        np.testing.assert_allclose(frame[1, 1], [0.5, 0.5, 0.5])
        others = np.ones((4, 4), dtype=bool)
        others[2, 2] = others[1, 1] = False
        assert not frame[others].any()

    def test_single_trajectory_at_full_brightness(self, unit_area, white_channel):
        batch = EscapeBatch.from_points([TWICE_AT_2_2])
        frame = render_channel(white_channel, unit_area, batch).reshape(4, 4, 3)
        np.testing.assert_allclose(frame[2, 2], [1.0, 1.0, 1.0])
        assert frame.sum() == pytest.approx(3.0)

    def test_only_points_in_range_contribute(self, unit_area):
        batch = EscapeBatch.from_points([TWICE_AT_2_2, ONCE_AT_1_1])
        frame = render_channel(ColorChannel(0, 1, 1.0, 1.0, 1.0), unit_area, batch).reshape(4, 4, 3)
        assert frame[1, 1].tolist() == [1.0, 1.0, 1.0]
        assert not frame[2, 2].any()

    def test_empty_selection_yields_zeros(self, unit_area):
        batch = EscapeBatch.from_points([TWICE_AT_2_2])
        frame = render_channel(ColorChannel(100, 200, 1.0, 1.0, 1.0), unit_area, batch)
        assert frame.shape == (unit_area.color_resolution,)
        assert not frame.any()

    def test_visits_sum_to_in_bounds_trajectory_steps(self):
        area = RenderArea(32, (-2.0, 2.0), (-2.0, 2.0))
        starts = [0.5 + 0.5j, 1 + 1j, -2 + 1j, 0.25 + 0.75j]
        points = [escape_time(c, 256) for c in starts]
        points = [p for p in points if p.escaped]

        expected = 0
        for point in points:
            steps = []
            escape_time(point.start, point.iterations, steps.append)
            expected += sum(1 for z in steps if area.within_bounds(*plane_to_pixel(z, area)))

        counter = VisitCounter(area)
        batch = EscapeBatch.from_points(points)
        trace_orbits(batch.start, batch.iterations, counter)
        assert counter.counts.sum() == expected


class TestRenderNebula:
    def test_sums_channels(self, unit_area):
        batch = EscapeBatch.from_points([TWICE_AT_2_2, ONCE_AT_1_1])
        red = ColorChannel(0, 1, 1.0, 0.0, 0.0)
        blue = ColorChannel(2, 2, 0.0, 0.0, 1.0)
        frame = render_nebula(unit_area, batch, [red, blue]).reshape(4, 4, 3)
        assert frame[1, 1].tolist() == [1.0, 0.0, 0.0]
        assert frame[2, 2].tolist() == [0.0, 0.0, 1.0]

    def test_overlapping_channels_add_up(self, unit_area, white_channel):
        batch = EscapeBatch.from_points([TWICE_AT_2_2])
        single = render_nebula(unit_area, batch, [white_channel])
        double = render_nebula(unit_area, batch, [white_channel, white_channel])
        np.testing.assert_allclose(double, 2 * single)

    def test_non_escaping_points_are_ignored(self, unit_area):
        batch = EscapeBatch.from_points([MandelPoint(INSIDE, 0j, None)])
        everything = ColorChannel(0, INSIDE, 1.0, 1.0, 1.0)
        assert not render_nebula(unit_area, batch, [everything]).any()


class TestRenderFlat:
    def test_shape_and_range(self):
        area = RenderArea(24, (-2.5, 1.5), (-2.0, 2.0))
        image = render_flat(area, 64)
        assert image.shape == (area.color_resolution,)
        assert image.dtype == np.uint8
        assert image.max() > 0

    def test_inside_points_are_dark(self):
        area = RenderArea(9, (-2.0, 2.0), (-2.0, 2.0))
        image = render_flat(area, 64).reshape(9, 9, 3)
        # pixel (4, 4) is the origin
        assert image[4, 4].tolist() == [0, 0, 0]

    def test_single_pixel_area(self):
        image = render_flat(RenderArea(1, (-2.0, 2.0), (-2.0, 2.0)), 16)
        assert image.tolist() == [0, 0, 0]

    def test_grey_levels(self):
        area = RenderArea(24, (-2.5, 1.5), (-2.0, 2.0))
        image = render_flat(area, 64).reshape(24, 24, 3)
        assert np.array_equal(image[..., 0], image[..., 1])
        assert np.array_equal(image[..., 1], image[..., 2])

"""Histogram rendering of escaping trajectories, one color channel at a time."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from .escape import ESCAPE_RADIUS, EscapeBatch, evaluate_batch, trace_orbits
from .mapping import linear_interpolation, spread_to_color_channel
from .plane import RenderArea, pixel_to_plane, plane_to_pixel


@dataclass(frozen=True)
class ColorChannel:
    """An inclusive iteration-count range painted with fixed RGB weights.

    A range with ``low > high`` is empty and matches nothing.
    """

    low: int
    high: int
    red: float
    green: float
    blue: float

    def __post_init__(self) -> None:
        if min(self.red, self.green, self.blue) < 0:
            raise ValueError("channel weights must be non-negative")

    @classmethod
    def until(cls, low: int, stop: int, red: float, green: float, blue: float) -> ColorChannel:
        """Build a channel covering ``low`` up to, but excluding, ``stop``."""

        return cls(low, stop - 1, red, green, blue)

    def contains(self, iterations: Union[int, np.ndarray]) -> Union[bool, np.ndarray]:
        return (iterations >= self.low) & (iterations <= self.high)


def reference_channels(max_iterations: int) -> tuple[ColorChannel, ...]:
    """Blue for fast escapes, green for medium, red for the slow ones."""

    return (
        ColorChannel(0, 16, 0.0, 0.0, 1.0),
        ColorChannel(17, 256, 0.0, 1.0, 0.0),
        ColorChannel.until(257, max_iterations, 1.0, 0.0, 0.0),
    )


class VisitCounter:
    """Trajectory observer that counts visits per pixel of a render area."""

    def __init__(self, area: RenderArea) -> None:
        self.area = area
        self.counts = np.zeros((area.side, area.side), dtype=np.int64)

    def __call__(self, values) -> None:
        values = np.atleast_1d(np.asarray(values, dtype=np.complex128))
        x, y = plane_to_pixel(values, self.area)
        visible = self.area.within_bounds(x, y)
        # indexing by (x, y) rotates the image by +90 degrees
        np.add.at(self.counts, (x[visible], y[visible]), 1)


def colorize_visits(counts: np.ndarray, channel: ColorChannel) -> np.ndarray:
    """Normalize a visit grid to ``[0, 1]`` and spread it through the channel weights.

    A grid without any contrast yields an all-zero buffer.
    """

    flat = np.asarray(counts).ravel()
    if flat.size == 0:
        return np.zeros(0, dtype=np.float64)
    lo = flat.min()
    hi = flat.max()
    if lo == hi:
        return np.zeros(flat.size * 3, dtype=np.float64)

    normalized = linear_interpolation(flat, (lo, hi), (0.0, 1.0))
    return spread_to_color_channel(normalized, channel.red, channel.green, channel.blue).ravel()


def render_channel(
    channel: ColorChannel,
    area: RenderArea,
    batch: EscapeBatch,
    escape_radius: float = ESCAPE_RADIUS,
) -> np.ndarray:
    """Render the visitation histogram of the trajectories that belong to ``channel``.

    Each selected trajectory is recomputed from its start value, capped at
    the iteration count it escaped with. Returns a flat ``side*side*3``
    float buffer.
    """

    candidates = batch.select(batch.escaped & channel.contains(batch.iterations))
    counter = VisitCounter(area)
    trace_orbits(candidates.start, candidates.iterations, counter, escape_radius)
    return colorize_visits(counter.counts, channel)


def render_nebula(
    area: RenderArea,
    batch: EscapeBatch,
    channels: Sequence[ColorChannel],
    escape_radius: float = ESCAPE_RADIUS,
) -> np.ndarray:
    """Sum the buffers of every channel into a single composite frame."""

    combined = np.zeros(area.color_resolution, dtype=np.float64)
    for channel in channels:
        combined += render_channel(channel, area, batch, escape_radius)
    return combined


def render_flat(
    area: RenderArea,
    max_iterations: int,
    escape_radius: float = ESCAPE_RADIUS,
    *,
    device: str = "/CPU:0",
) -> np.ndarray:
    """Classic grayscale escape-time image of the view window.

    Points that never escape are drawn like the fastest escapes. Returns a
    flat ``side*side*3`` uint8 buffer laid out like the nebula frames.
    """

    xs, ys = np.meshgrid(np.arange(area.side), np.arange(area.side), indexing="ij")
    grid = pixel_to_plane(xs.ravel(), ys.ravel(), area.side, area.view_x, area.view_y)
    batch = evaluate_batch(grid, max_iterations, escape_radius, device=device)
    iterations = np.where(batch.escaped, batch.iterations, max_iterations)

    lo = iterations.min()
    hi = iterations.max()
    if lo == hi:
        return np.zeros(area.color_resolution, dtype=np.uint8)

    levels = np.where(iterations == hi, lo, iterations)
    normalized = linear_interpolation(levels, (lo, hi), (0.0, 1.0))
    rgb = spread_to_color_channel(normalized, 1.0, 1.0, 1.0).ravel()
    return np.trunc(linear_interpolation(rgb, (0.0, 1.0), (0, 255))).astype(np.uint8)

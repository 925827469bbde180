"""Mapping between the pixel grid and the complex-plane view window."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np

from .mapping import Range, linear_interpolation

Index = Union[int, np.ndarray]


@dataclass(frozen=True)
class RenderArea:
    """A square pixel grid and the complex-plane window it shows."""

    side: int
    view_x: Range
    view_y: Range

    def __post_init__(self) -> None:
        if self.side <= 0:
            raise ValueError(f"side must be positive, got {self.side}")
        for name, (start, end) in (("view_x", self.view_x), ("view_y", self.view_y)):
            if not end > start:
                raise ValueError(f"{name} must satisfy end > start, got ({start}, {end})")

    def within_bounds(self, x: Index, y: Index) -> Union[bool, np.ndarray]:
        return (x >= 0) & (y >= 0) & (x < self.side) & (y < self.side)

    @property
    def resolution(self) -> int:
        return self.side * self.side

    @property
    def color_resolution(self) -> int:
        # red, green, blue
        return self.resolution * 3


def pixel_to_plane(x: Index, y: Index, grid_size: int, view_x: Range, view_y: Range) -> Union[complex, np.ndarray]:
    """Map pixel indices in ``[0, grid_size)`` onto the ``view_x`` x ``view_y`` window.

    A single-pixel grid has no extent to interpolate over; its pixel sits at
    the window start.
    """

    if grid_size == 1:
        real = np.zeros(np.shape(x)) + view_x[0]
        imag = np.zeros(np.shape(y)) + view_y[0]
    else:
        pixels = (0, grid_size - 1)
        real = linear_interpolation(x, pixels, view_x)
        imag = linear_interpolation(y, pixels, view_y)
    if np.ndim(real) == 0 and np.ndim(imag) == 0:
        return complex(real, imag)
    return np.asarray(real) + 1j * np.asarray(imag)


def plane_to_pixel(point: Union[complex, np.ndarray], area: RenderArea) -> tuple[Index, Index]:
    """Map plane coordinates onto pixel indices, truncating toward zero.

    Results may fall outside ``[0, side)``; use ``RenderArea.within_bounds``
    before indexing.
    """

    values = np.asarray(point, dtype=np.complex128)
    pixels = (0, area.side)
    x = np.trunc(linear_interpolation(values.real, area.view_x, pixels)).astype(np.int64)
    y = np.trunc(linear_interpolation(values.imag, area.view_y, pixels)).astype(np.int64)
    if x.ndim == 0:
        return int(x), int(y)
    return x, y

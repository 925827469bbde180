"""Affine range mapping shared by every coordinate and color transform."""

from __future__ import annotations

from typing import Union

import numpy as np

Range = tuple[float, float]
Numeric = Union[float, np.ndarray]


def linear_interpolation(value: Numeric, source: Range, target: Range) -> Numeric:
    """Map ``value`` from the ``source`` range onto the ``target`` range.

    Values outside ``source`` extrapolate linearly. Arrays are mapped
    element-wise and come back as float64.
    """

    source_start = np.float64(source[0])
    source_span = np.float64(source[1]) - source_start
    if source_span == 0:
        raise ZeroDivisionError(f"cannot interpolate from the degenerate range {source!r}")

    target_start = np.float64(target[0])
    target_span = np.float64(target[1]) - target_start
    ratio = target_span / source_span

    origin = np.asarray(value, dtype=np.float64) - source_start
    result = origin * ratio + target_start
    if np.ndim(result) == 0:
        return float(result)
    return result


def spread_to_color_channel(value: Numeric, red: float, green: float, blue: float) -> np.ndarray:
    """Scale a unit intensity independently into ``[0, red]``, ``[0, green]`` and ``[0, blue]``."""

    unit = (0.0, 1.0)
    components = [
        linear_interpolation(value, unit, (0.0, red)),
        linear_interpolation(value, unit, (0.0, green)),
        linear_interpolation(value, unit, (0.0, blue)),
    ]
    return np.stack(np.broadcast_arrays(*components), axis=-1).astype(np.float64, copy=False)

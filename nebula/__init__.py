"""Public API for nebula (multi-channel Buddhabrot) rendering."""

from .accumulator import AccumulationDriver, NebulaConfig, PassResult
from .escape import (
    ESCAPE_RADIUS,
    INSIDE,
    MAX_ITERATIONS,
    EscapeBatch,
    MandelPoint,
    escape_time,
    evaluate_batch,
    trace_orbits,
)
from .mapping import linear_interpolation, spread_to_color_channel
from .plane import RenderArea, pixel_to_plane, plane_to_pixel
from .renderer import (
    ColorChannel,
    VisitCounter,
    colorize_visits,
    reference_channels,
    render_channel,
    render_flat,
    render_nebula,
)

__all__ = [
    "AccumulationDriver",
    "ColorChannel",
    "ESCAPE_RADIUS",
    "EscapeBatch",
    "INSIDE",
    "MAX_ITERATIONS",
    "MandelPoint",
    "NebulaConfig",
    "PassResult",
    "RenderArea",
    "VisitCounter",
    "colorize_visits",
    "escape_time",
    "evaluate_batch",
    "linear_interpolation",
    "pixel_to_plane",
    "plane_to_pixel",
    "reference_channels",
    "render_channel",
    "render_flat",
    "render_nebula",
    "spread_to_color_channel",
    "trace_orbits",
]

"""Pass-by-pass accumulation of nebula frames into a long exposure."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .escape import ESCAPE_RADIUS, MAX_ITERATIONS, evaluate_batch
from .mapping import Range, linear_interpolation
from .plane import RenderArea
from .renderer import ColorChannel, reference_channels, render_nebula

BATCH_SIZE = 1024 * 1024 * 4


@dataclass(frozen=True)
class NebulaConfig:
    """Fixed configuration of an accumulation run."""

    area: RenderArea
    compute_x: Range = (-2.0, 2.0)
    compute_y: Range = (-2.0, 2.0)
    batch_size: int = BATCH_SIZE
    max_iterations: int = MAX_ITERATIONS
    escape_radius: float = ESCAPE_RADIUS
    # None selects reference_channels(max_iterations)
    channels: tuple[ColorChannel, ...] = None  # type: ignore[assignment]
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_iterations <= 0:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
        if self.escape_radius <= 0:
            raise ValueError(f"escape_radius must be positive, got {self.escape_radius}")
        for name, (start, end) in (("compute_x", self.compute_x), ("compute_y", self.compute_y)):
            if not end > start:
                raise ValueError(f"{name} must satisfy end > start, got ({start}, {end})")
        if self.channels is None:
            object.__setattr__(self, "channels", reference_channels(self.max_iterations))
        elif not self.channels:
            raise ValueError("at least one color channel is required")
        else:
            object.__setattr__(self, "channels", tuple(self.channels))


@dataclass(frozen=True)
class PassResult:
    """Summary of one completed pass."""

    index: int
    samples: int
    escaped: int
    channel_counts: tuple[int, ...]
    frame: np.ndarray


class AccumulationDriver:
    """Owns the cumulative buffer and runs sampling passes into it."""

    def __init__(
        self,
        config: NebulaConfig,
        *,
        rng: Optional[np.random.Generator] = None,
        device: str = "/CPU:0",
        progress: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.config = config
        self.device = device
        self.progress = progress
        self.cumulative = np.zeros(config.area.color_resolution, dtype=np.float64)
        self.passes = 0
        self._rng = rng if rng is not None else np.random.default_rng(config.seed)

    def sample(self) -> np.ndarray:
        """Draw a uniform batch of start points inside the compute window."""

        size = self.config.batch_size
        unit = (0.0, 1.0)
        real = linear_interpolation(self._rng.random(size), unit, self.config.compute_x)
        imag = linear_interpolation(self._rng.random(size), unit, self.config.compute_y)
        return real + 1j * imag

    def run_pass(self) -> PassResult:
        """Sample, evaluate, render and add one frame into the cumulative buffer."""

        config = self.config
        index = self.passes + 1
        self._report(f"Mandelbrot pass {index}")
        samples = self.sample()
        batch = evaluate_batch(samples, config.max_iterations, config.escape_radius, device=self.device)
        escaping = batch.escaping()
        channel_counts = tuple(int(np.count_nonzero(channel.contains(escaping.iterations))) for channel in config.channels)
        counts = ", ".join(str(count) for count in channel_counts)
        self._report(f"Found {len(escaping)} interesting points [{counts}]")

        self._report(f"Nebulabrot pass {index}")
        frame = render_nebula(config.area, escaping, config.channels, config.escape_radius)
        self.cumulative += frame
        self.passes = index
        return PassResult(
            index=index,
            samples=len(batch),
            escaped=len(escaping),
            channel_counts=channel_counts,
            frame=frame,
        )

    def normalized(self) -> np.ndarray:
        """Scale the cumulative buffer to ``[0, 255]`` by its global maximum."""

        peak = self.cumulative.max()
        if peak == 0:
            return np.zeros(self.cumulative.shape, dtype=np.uint8)
        scaled = linear_interpolation(self.cumulative, (0.0, peak), (0, 255))
        return np.trunc(scaled).astype(np.uint8)

    def image(self) -> np.ndarray:
        side = self.config.area.side
        return self.normalized().reshape(side, side, 3)

    def run(
        self,
        on_pass: Callable[[PassResult], None],
        stop: Optional[threading.Event] = None,
        max_passes: Optional[int] = None,
    ) -> int:
        """Run passes until ``stop`` is set or ``max_passes`` have completed.

        ``stop`` is only consulted between passes. Without either limit the
        loop never returns. Returns the total number of passes run.
        """

        while stop is None or not stop.is_set():
            if max_passes is not None and self.passes >= max_passes:
                break
            on_pass(self.run_pass())
        return self.passes

    def _report(self, message: str) -> None:
        if self.progress is not None:
            self.progress(message)

"""Escape-time evaluation of the quadratic Mandelbrot recurrence."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

import numpy as np
import tensorflow as tf

ESCAPE_RADIUS = 16.0
MAX_ITERATIONS = 256 * 16

# Marks a point that never escaped within its iteration budget.
INSIDE = int(np.iinfo(np.int64).max)

Observer = Callable[[complex], None]
BatchObserver = Callable[[np.ndarray], None]


@dataclass(frozen=True)
class MandelPoint:
    """Outcome of one escape-time evaluation."""

    iterations: int
    start: complex
    end: Optional[complex]

    @property
    def escaped(self) -> bool:
        return self.end is not None


@dataclass(frozen=True)
class EscapeBatch:
    """Escape-time results for many samples, stored column-wise.

    ``iterations`` holds ``INSIDE`` and ``end`` holds NaN for samples that
    never escaped.
    """

    start: np.ndarray
    iterations: np.ndarray
    end: np.ndarray

    def __len__(self) -> int:
        return int(self.start.shape[0])

    def __iter__(self) -> Iterator[MandelPoint]:
        for start, iterations, end in zip(self.start, self.iterations, self.end):
            iterations = int(iterations)
            if iterations == INSIDE:
                yield MandelPoint(INSIDE, complex(start), None)
            else:
                yield MandelPoint(iterations, complex(start), complex(end))

    @property
    def escaped(self) -> np.ndarray:
        return self.iterations != INSIDE

    def escaping(self) -> EscapeBatch:
        """Return only the samples whose trajectory left the escape radius."""

        return self.select(self.escaped)

    def select(self, mask: np.ndarray) -> EscapeBatch:
        return EscapeBatch(self.start[mask], self.iterations[mask], self.end[mask])

    @classmethod
    def from_points(cls, points: Iterable[MandelPoint]) -> EscapeBatch:
        points = list(points)
        start = np.array([p.start for p in points], dtype=np.complex128)
        iterations = np.array([p.iterations for p in points], dtype=np.int64)
        end = np.array(
            [p.end if p.end is not None else complex(np.nan, np.nan) for p in points],
            dtype=np.complex128,
        )
        return cls(start=start, iterations=iterations, end=end)


def escape_time(
    point: complex,
    max_iterations: int,
    observer: Optional[Observer] = None,
    escape_radius: float = ESCAPE_RADIUS,
) -> MandelPoint:
    """Iterate ``z -> z**2 + point`` until it escapes or the budget runs out.

    ``observer`` receives every newly computed trajectory value.
    """

    iterations = 0
    z = point
    while iterations < max_iterations and abs(z) < escape_radius:
        z = z * z + point
        if observer is not None:
            observer(z)
        iterations += 1

    if iterations >= max_iterations:
        return MandelPoint(INSIDE, point, None)
    return MandelPoint(iterations, point, z)


def trace_orbits(
    starts: np.ndarray,
    caps: np.ndarray,
    observer: BatchObserver,
    escape_radius: float = ESCAPE_RADIUS,
) -> int:
    """Walk many trajectories in lock-step, each up to its own cap.

    After every step ``observer`` receives the values just computed by the
    orbits still running. Returns the number of steps taken.
    """

    cs = np.asarray(starts, dtype=np.complex128).ravel()
    caps = np.asarray(caps, dtype=np.int64).ravel()
    zs = cs.copy()

    running = (caps > 0) & (np.abs(zs) < escape_radius)
    cs, zs, caps = cs[running], zs[running], caps[running]

    step = 0
    while zs.size:
        zs = zs * zs + cs
        step += 1
        observer(zs)
        running = (caps > step) & (np.abs(zs) < escape_radius)
        cs, zs, caps = cs[running], zs[running], caps[running]
    return step


@tf.function
def _escape_step(zs: tf.Tensor, cs: tf.Tensor, ns: tf.Tensor, active: tf.Tensor, radius: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor]:
    """Advance every sample that is still inside the escape radius."""

    zs_new = zs * zs + cs
    zs = tf.where(active, zs_new, zs)
    ns = ns + tf.cast(active, tf.int64)
    new_active = tf.logical_and(active, tf.abs(zs) < radius)
    return zs, ns, new_active


@tf.function
def _escape_run(cs: tf.Tensor, max_iterations: tf.Tensor, radius: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Iterate the recurrence for a whole batch using a TensorFlow while loop."""

    max_iterations = tf.cast(max_iterations, tf.int64)
    i = tf.constant(0, dtype=tf.int64)
    zs = tf.identity(cs)
    ns = tf.zeros(tf.shape(cs), dtype=tf.int64)
    active = tf.abs(cs) < radius

    def cond(i: tf.Tensor, zs: tf.Tensor, ns: tf.Tensor, active: tf.Tensor) -> tf.Tensor:
        return tf.logical_and(tf.less(i, max_iterations), tf.reduce_any(active))

    def body(i: tf.Tensor, zs: tf.Tensor, ns: tf.Tensor, active: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
        zs, ns, active = _escape_step(zs, cs, ns, active, radius)
        return i + 1, zs, ns, active

    return tf.while_loop(cond, body, (i, zs, ns, active))


def evaluate_batch(
    points: np.ndarray,
    max_iterations: int,
    escape_radius: float = ESCAPE_RADIUS,
    *,
    device: str = "/CPU:0",
) -> EscapeBatch:
    """Evaluate ``escape_time`` for every sample of ``points`` at once."""

    starts = np.asarray(points, dtype=np.complex128).ravel()
    if starts.size == 0:
        empty = np.array([], dtype=np.complex128)
        return EscapeBatch(empty, np.array([], dtype=np.int64), empty.copy())

    with tf.device(device):
        cs = tf.convert_to_tensor(starts, dtype=tf.complex128)
        radius = tf.constant(escape_radius, dtype=tf.float64)
        limit = tf.constant(max_iterations, dtype=tf.int64)
        _, zs, ns, _ = _escape_run(cs, limit, radius)

    counts = ns.numpy()
    ends = zs.numpy()
    inside = counts >= max_iterations
    iterations = np.where(inside, np.int64(INSIDE), counts).astype(np.int64)
    ends = np.where(inside, complex(np.nan, np.nan), ends)
    return EscapeBatch(start=starts, iterations=iterations, end=ends)

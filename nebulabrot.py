import os
import signal
import sys
import threading
import time
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

VERBOSE = _cli_verbose


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, **kwargs)


import tensorflow as tf
import numpy as np

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")
    for handler in tf.get_logger().handlers:
        handler.setLevel("ERROR")

# Imports for output
import PIL.Image
import imageio

from nebula import (
    AccumulationDriver,
    ColorChannel,
    NebulaConfig,
    PassResult,
    RenderArea,
    reference_channels,
    render_flat,
)
from nebula.accumulator import BATCH_SIZE
from nebula.escape import ESCAPE_RADIUS, MAX_ITERATIONS

log("TensorFlow version: %s" % tf.__version__)

# Sampling is vectorized on the CPU only.
DEVICE = '/CPU:0'

from argparse import ArgumentParser


@dataclass
class OutputConfig:
    image_path: Path
    image_format: str
    snapshot_dir: Path | None
    snapshot_format: str
    gif_path: Path | None
    preview_path: Path | None


def build_parser():
    parser = ArgumentParser(description='Accumulate a multi-channel Buddhabrot ("nebulabrot") image pass after pass.')

    parser.add_argument('--side', type=int,
                        dest='side', help='side length in pixels of the square output image',
                        metavar='SIDE', default=128)

    parser.add_argument('--view-x', type=float, nargs=2,
                        dest='view_x', help='real-axis range of the complex plane shown in the image',
                        metavar=('MIN', 'MAX'), default=[-2.5, 1.5])

    parser.add_argument('--view-y', type=float, nargs=2,
                        dest='view_y', help='imaginary-axis range of the complex plane shown in the image',
                        metavar=('MIN', 'MAX'), default=[-2.0, 2.0])

    parser.add_argument('--compute-x', type=float, nargs=2,
                        dest='compute_x', help='real-axis range from which start points are sampled',
                        metavar=('MIN', 'MAX'), default=[-2.0, 2.0])

    parser.add_argument('--compute-y', type=float, nargs=2,
                        dest='compute_y', help='imaginary-axis range from which start points are sampled',
                        metavar=('MIN', 'MAX'), default=[-2.0, 2.0])

    parser.add_argument('--batch-size', type=int,
                        dest='batch_size', help='number of random start points evaluated per pass',
                        metavar='BATCH_SIZE', default=BATCH_SIZE)

    parser.add_argument('--max-iterations', type=int,
                        dest='max_iterations', help='iteration budget after which a point counts as inside the set',
                        metavar='MAX_ITERATIONS', default=MAX_ITERATIONS)

    parser.add_argument('--escape-radius', type=float,
                        dest='escape_radius', help='magnitude at which a trajectory counts as escaped',
                        metavar='RADIUS', default=ESCAPE_RADIUS)

    parser.add_argument('--channel', dest='channels', action='append', nargs=5,
                        metavar=('LOW', 'HIGH', 'RED', 'GREEN', 'BLUE'),
                        help='Color channel: inclusive iteration range and RGB weights. May be repeated. '
                             'Default: 0-16 blue, 17-256 green, 257 up to the iteration budget red.')

    parser.add_argument('--seed', type=int, default=None,
                        help='seed for the random sampler, for reproducible runs')

    parser.add_argument('--passes', type=int, default=0,
                        help='stop after this many passes. 0 runs until interrupted.')

    parser.add_argument('--output', dest='output', type=str, default='saved.png',
                        help='Image overwritten with the latest accumulated frame after every pass.')

    parser.add_argument('--snapshot-dir', dest='snapshot_dir', type=str,
                        help='Directory in which every pass is stored as <pass>.<format>. Default: ./pass')

    parser.add_argument('--snapshot-format', dest='snapshot_format', type=str, default='jpg',
                        help='file format for per-pass snapshots. Can be any extension supported by Pillow.')

    parser.add_argument('--no-snapshots', dest='no_snapshots', action='store_true',
                        help='Do not store a snapshot for every pass.')

    parser.add_argument('--gif', dest='gif', type=str,
                        help='Also record every pass as a frame of an animated GIF timelapse.')

    parser.add_argument('--preview', dest='preview', type=str,
                        help='Write a classic escape-time image of the view window before the first pass.')

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including TensorFlow diagnostics.')

    return parser


def _normalize_path(path_str: str) -> str:
    return os.path.normpath(os.path.abspath(os.path.expanduser(path_str)))


def _image_path(value: str, default_suffix: str, parser: ArgumentParser, flag: str) -> Path:
    if value.endswith(tuple(filter(None, {os.sep, os.altsep}))):
        parser.error(f"{flag} must be a file path.")
    path = Path(value).expanduser()
    if path.exists() and path.is_dir():
        parser.error(f"{flag} must point to a file, not a directory.")
    if not path.suffix:
        path = path.with_suffix(default_suffix)
    return path.resolve()


def resolve_output_config(opt, parser: ArgumentParser) -> OutputConfig:
    image_path = _image_path(opt.output, ".png", parser, "--output")
    image_format = image_path.suffix.lower().lstrip(".")

    snapshot_format = (opt.snapshot_format or "jpg").lower().lstrip(".")
    if not snapshot_format:
        snapshot_format = "jpg"

    snapshot_dir: Path | None = None
    if opt.no_snapshots:
        if opt.snapshot_dir is not None:
            parser.error("--snapshot-dir cannot be combined with --no-snapshots.")
    else:
        snapshot_dir = Path(opt.snapshot_dir or "./pass").expanduser().resolve()
        if snapshot_dir.exists() and not snapshot_dir.is_dir():
            parser.error("--snapshot-dir must be a directory.")

    gif_path: Path | None = None
    if opt.gif:
        gif_path = _image_path(opt.gif, ".gif", parser, "--gif")
        if gif_path.suffix.lower() != ".gif":
            parser.error("GIF outputs must end with .gif.")

    preview_path: Path | None = None
    if opt.preview:
        preview_path = _image_path(opt.preview, ".png", parser, "--preview")

    written = [str(p) for p in (image_path, gif_path, preview_path) if p is not None]
    if len(set(map(_normalize_path, written))) != len(written):
        parser.error("--output, --gif and --preview must refer to different files.")

    return OutputConfig(
        image_path=image_path,
        image_format=image_format,
        snapshot_dir=snapshot_dir,
        snapshot_format=snapshot_format,
        gif_path=gif_path,
        preview_path=preview_path,
    )


def parse_channels(values, max_iterations: int, parser: ArgumentParser) -> tuple[ColorChannel, ...]:
    if not values:
        return reference_channels(max_iterations)

    channels = []
    for low, high, red, green, blue in values:
        try:
            channel = ColorChannel(int(low), int(high), float(red), float(green), float(blue))
        except ValueError as exc:
            parser.error(f"Invalid --channel {low} {high} {red} {green} {blue}: {exc}")
        channels.append(channel)
    return tuple(channels)


def build_config(opt, parser: ArgumentParser) -> NebulaConfig:
    if opt.passes < 0:
        parser.error("--passes must not be negative.")
    try:
        area = RenderArea(opt.side, tuple(opt.view_x), tuple(opt.view_y))
        return NebulaConfig(
            area=area,
            compute_x=tuple(opt.compute_x),
            compute_y=tuple(opt.compute_y),
            batch_size=opt.batch_size,
            max_iterations=opt.max_iterations,
            escape_radius=opt.escape_radius,
            channels=parse_channels(opt.channels, opt.max_iterations, parser),
            seed=opt.seed,
        )
    except ValueError as exc:
        parser.error(str(exc))


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "JPG":
        return "JPEG"
    if upper == "TIF":
        return "TIFF"
    return upper


def write_single_image(image: PIL.Image.Image, output_path: Path, image_format: str) -> None:
    """Write a single image to ``output_path`` using the provided format."""

    pil_format = _pil_format_name(image_format)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    image.save(str(output_path), format=pil_format)


def write_snapshot(image: PIL.Image.Image, snapshot_dir: Path, index: int, image_format: str) -> Path:
    """Persist the image of pass ``index`` inside ``snapshot_dir``."""

    pil_format = _pil_format_name(image_format)
    snapshot_path = snapshot_dir / f"{index}.{image_format}"
    snapshot_dir.mkdir(parents=True, exist_ok=True)
    image.save(str(snapshot_path), format=pil_format)
    return snapshot_path


def write_gif(writer: Any, frame_array: np.ndarray) -> None:
    """Append ``frame_array`` to an active GIF writer."""

    writer.append_data(frame_array)


@dataclass
class OutputWriters:
    config: OutputConfig

    def __post_init__(self) -> None:
        self._gif_writer = None
        if self.config.gif_path is not None:
            self.config.gif_path.parent.mkdir(parents=True, exist_ok=True)
            self._gif_writer = imageio.get_writer(str(self.config.gif_path), mode='I', duration=0.1, loop=0)

    def write_preview(self, frame_array: np.ndarray) -> None:
        if self.config.preview_path is not None:
            image = PIL.Image.fromarray(frame_array)
            write_single_image(image, self.config.preview_path, self.config.preview_path.suffix.lstrip("."))

    def write_pass(self, index: int, frame_array: np.ndarray) -> None:
        image = PIL.Image.fromarray(frame_array)
        write_single_image(image, self.config.image_path, self.config.image_format)
        if self.config.snapshot_dir is not None:
            write_snapshot(image, self.config.snapshot_dir, index, self.config.snapshot_format)
        if self._gif_writer is not None:
            write_gif(self._gif_writer, frame_array)

    def finalize(self, frame_array: np.ndarray) -> None:
        image = PIL.Image.fromarray(frame_array)
        write_single_image(image, self.config.image_path, self.config.image_format)

    def close(self) -> None:
        if self._gif_writer is not None:
            self._gif_writer.close()
            self._gif_writer = None


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)

    output_config = resolve_output_config(opt, parser)
    config = build_config(opt, parser)

    global VERBOSE
    VERBOSE = bool(opt.verbose)

    area = config.area
    log(f"side: {area.side}")
    log(f"view: {area.view_x} x {area.view_y}")
    log(f"compute: {config.compute_x} x {config.compute_y}")
    log(f"batch size: {config.batch_size}")
    log(f"max iterations: {config.max_iterations}")
    for channel in config.channels:
        log(f"channel {channel.low}..{channel.high}: rgb=({channel.red}, {channel.green}, {channel.blue})")

    driver = AccumulationDriver(config, device=DEVICE, progress=print)
    writers = OutputWriters(output_config)

    if output_config.preview_path is not None:
        preview = render_flat(area, config.max_iterations, config.escape_radius, device=DEVICE)
        writers.write_preview(preview.reshape(area.side, area.side, 3))
        log(f"preview written to {output_config.preview_path}")

    stop = threading.Event()

    def request_stop(signum, frame):
        if stop.is_set():
            raise KeyboardInterrupt
        print("\nInterrupt received, stopping after the current pass.")
        stop.set()

    pass_started = time.perf_counter()

    def on_pass(result: PassResult) -> None:
        nonlocal pass_started
        log(f"pass {result.index} took {time.perf_counter() - pass_started:.2f}s for {result.samples} samples")
        print("Normalize and write")
        try:
            writers.write_pass(result.index, driver.image())
        except OSError as exc:
            print(f"Failed to write pass {result.index}: {exc}")
        pass_started = time.perf_counter()

    previous_handler = signal.signal(signal.SIGINT, request_stop)
    try:
        driver.run(on_pass, stop=stop, max_passes=opt.passes or None)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        writers.close()

    if driver.passes:
        writers.finalize(driver.image())
        print(f"Accumulated {driver.passes} passes into {output_config.image_path}")


if __name__ == '__main__':
    main()

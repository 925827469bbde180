from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

EXAMPLES_ROOT = Path("examples/cli-options")
BASE_ARGS = ["--passes", "1", "--side", "96", "--batch-size", "65536", "--max-iterations", "512", "--seed", "1", "--no-snapshots"]


@dataclass
class Expected:
    path: Path
    is_dir: bool = False


@dataclass
class Example:
    name: str
    args: list[str]
    expected: list[Expected]
    clean: list[Path] | None = None

    def full_args(self) -> list[str]:
        return ["python", "nebulabrot.py", *self.args]


EXAMPLES: list[Example] = [
    Example(
        name="default",
        args=[*BASE_ARGS, "--output", str(EXAMPLES_ROOT / "default" / "nebula.png")],
        expected=[Expected(EXAMPLES_ROOT / "default" / "nebula.png")],
        clean=[EXAMPLES_ROOT / "default"],
    ),
    Example(
        name="side",
        args=[*BASE_ARGS, "--side", "160", "--output", str(EXAMPLES_ROOT / "side" / "large.png")],
        expected=[Expected(EXAMPLES_ROOT / "side" / "large.png")],
        clean=[EXAMPLES_ROOT / "side"],
    ),
    Example(
        name="view",
        args=[
            *BASE_ARGS,
            "--view-x", "-1.0", "0.5",
            "--view-y", "-0.75", "0.75",
            "--output", str(EXAMPLES_ROOT / "view" / "seahorse-valley.png"),
        ],
        expected=[Expected(EXAMPLES_ROOT / "view" / "seahorse-valley.png")],
        clean=[EXAMPLES_ROOT / "view"],
    ),
    Example(
        name="compute-window",
        args=[
            *BASE_ARGS,
            "--compute-x", "-2.5", "1.0",
            "--compute-y", "-1.5", "1.5",
            "--output", str(EXAMPLES_ROOT / "compute-window" / "tight-sampling.png"),
        ],
        expected=[Expected(EXAMPLES_ROOT / "compute-window" / "tight-sampling.png")],
        clean=[EXAMPLES_ROOT / "compute-window"],
    ),
    Example(
        name="channels",
        args=[
            *BASE_ARGS,
            "--channel", "0", "32", "0.2", "0.2", "1.0",
            "--channel", "16", "511", "1.0", "0.6", "0.1",
            "--output", str(EXAMPLES_ROOT / "channels" / "blended.png"),
        ],
        expected=[Expected(EXAMPLES_ROOT / "channels" / "blended.png")],
        clean=[EXAMPLES_ROOT / "channels"],
    ),
    Example(
        name="snapshots",
        args=[
            "--passes", "3",
            "--side", "96",
            "--batch-size", "65536",
            "--max-iterations", "512",
            "--snapshot-dir", str(EXAMPLES_ROOT / "snapshots" / "pass"),
            "--output", str(EXAMPLES_ROOT / "snapshots" / "latest.png"),
        ],
        expected=[
            Expected(EXAMPLES_ROOT / "snapshots" / "latest.png"),
            Expected(EXAMPLES_ROOT / "snapshots" / "pass", is_dir=True),
        ],
        clean=[EXAMPLES_ROOT / "snapshots"],
    ),
    Example(
        name="gif",
        args=[
            *BASE_ARGS[2:],
            "--passes", "3",
            "--gif", str(EXAMPLES_ROOT / "gif" / "exposure.gif"),
            "--output", str(EXAMPLES_ROOT / "gif" / "latest.png"),
        ],
        expected=[
            Expected(EXAMPLES_ROOT / "gif" / "exposure.gif"),
            Expected(EXAMPLES_ROOT / "gif" / "latest.png"),
        ],
        clean=[EXAMPLES_ROOT / "gif"],
    ),
    Example(
        name="preview",
        args=[
            *BASE_ARGS,
            "--preview", str(EXAMPLES_ROOT / "preview" / "escape-time.png"),
            "--output", str(EXAMPLES_ROOT / "preview" / "nebula.png"),
        ],
        expected=[
            Expected(EXAMPLES_ROOT / "preview" / "escape-time.png"),
            Expected(EXAMPLES_ROOT / "preview" / "nebula.png"),
        ],
        clean=[EXAMPLES_ROOT / "preview"],
    ),
    Example(
        name="verbose",
        args=[*BASE_ARGS, "--verbose", "--output", str(EXAMPLES_ROOT / "verbose" / "diagnostic.png")],
        expected=[Expected(EXAMPLES_ROOT / "verbose" / "diagnostic.png")],
        clean=[EXAMPLES_ROOT / "verbose"],
    ),
]


def _ensure_clean(paths: Iterable[Path]) -> None:
    for path in paths:
        if path.exists():
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()


def _prepare(example: Example) -> None:
    clean = example.clean or []
    _ensure_clean(clean)
    for expected in example.expected:
        expected.path.parent.mkdir(parents=True, exist_ok=True)


def _verify(example: Example) -> None:
    for expected in example.expected:
        if expected.is_dir:
            if not expected.path.is_dir():
                raise RuntimeError(f"Expected directory {expected.path} was not created")
            if not any(expected.path.iterdir()):
                raise RuntimeError(f"Directory {expected.path} is empty")
        else:
            if not expected.path.is_file():
                raise RuntimeError(f"Expected file {expected.path} was not created")


def main() -> None:
    EXAMPLES_ROOT.mkdir(parents=True, exist_ok=True)
    for example in EXAMPLES:
        print(f"\n[cli-example] {example.name}")
        _prepare(example)
        completed = subprocess.run(example.full_args(), check=True)
        if completed.returncode != 0:
            raise RuntimeError(f"Example {example.name} failed with {completed.returncode}")
        _verify(example)
    print("\nAll CLI examples generated successfully.")


if __name__ == "__main__":
    main()

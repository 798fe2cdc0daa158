"""CLI entry point for vol2dcm."""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from vol2dcm import __version__
from vol2dcm.core.errors import RangeError, SliceConversionError
from vol2dcm.core.types import ConversionOptions, EncodedSlice, Modality
from vol2dcm.core.volume import Volume

app = typer.Typer(
    name="vol2dcm",
    help="Convert a 3D medical image volume into a 2D DICOM series.",
    add_completion=False,
)

# Rich spinners need UTF-8 streams on Windows consoles
try:
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")
except (AttributeError, OSError):
    pass

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("vol2dcm")


def version_callback(value: bool):
    if value:
        console.print(f"vol2dcm {__version__}")
        raise typer.Exit()


@app.command()
def main(
    input_path: Path = typer.Argument(
        ...,
        help="Volume to convert (.npy array or .npz archive).",
        exists=True,
    ),
    output: Path = typer.Option(
        None,
        "-o",
        "--output",
        help="Output directory (default: <input_name>_dicom next to the input).",
    ),
    pattern: str = typer.Option(
        "slice_%04d.dcm",
        "--pattern",
        help="Filename pattern; '%04d' is replaced by the slice index.",
    ),
    description: str = typer.Option(
        "Medical Image Series",
        "--description",
        help="Series Description written to every instance.",
    ),
    series_number: int = typer.Option(
        1,
        "--series-number",
        help="Series Number written to every instance.",
        min=0,
    ),
    instance_start: int = typer.Option(
        1,
        "--instance-start",
        help="Instance Number of the first slice.",
        min=0,
    ),
    modality: str = typer.Option(
        "OT",
        "--modality",
        help=f"Modality code: {', '.join(m.value for m in Modality)}.",
    ),
    series_uid: str = typer.Option(
        None,
        "--series-uid",
        help="Use this Series Instance UID instead of generating one.",
    ),
    compress: bool = typer.Option(
        False,
        "--compress",
        help="Write RLE Lossless compressed pixel data (8 and 16-bit pixels only).",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Reject pixel types without a native DICOM encoding (float, 64-bit).",
    ),
    workers: int = typer.Option(
        1,
        "--workers",
        help="Number of slices converted concurrently.",
        min=1,
    ),
    verbose: bool = typer.Option(
        False,
        "-v",
        "--verbose",
        help="Show detailed processing information.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """Convert a 3D medical image volume into a 2D DICOM series."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    if output is None:
        output = input_path.parent / f"{input_path.stem}_dicom"

    try:
        options = ConversionOptions(
            filename_pattern=pattern,
            series_description=description,
            series_number=series_number,
            instance_number_start=instance_start,
            modality=modality,
            series_instance_uid=series_uid,
            use_compression=compress,
            strict_encoding=strict,
            workers=workers,
        )
        _run(input_path, output, options)
    except SliceConversionError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        if verbose and e.snapshot:
            err_console.print(_snapshot_table(e.snapshot))
        raise typer.Exit(code=1)
    except (ValueError, RangeError) as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except FileNotFoundError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=4)
    except Exception as e:
        err_console.print(f"[red]Error: {e}[/red]")
        if verbose:
            import traceback
            err_console.print(traceback.format_exc())
        raise typer.Exit(code=1)


def _run(input_path: Path, output: Path, options: ConversionOptions) -> None:
    """Load, convert and write the series to ``output``."""
    from vol2dcm.io.volume_reader import load_volume
    from vol2dcm.series.writer import convert_volume

    start_time = time.time()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Loading volume...", total=None)
        volume = load_volume(input_path)
        progress.update(task, description=f"Converting {volume.num_slices} slices...")
        slices = convert_volume(volume, options)
        progress.update(task, description="Writing files...")
        paths = write_slices(slices, output)
        progress.remove_task(task)

    elapsed = time.time() - start_time
    _print_summary(input_path, output, volume, slices, paths, elapsed)


def write_slices(slices: list[EncodedSlice], output_dir: Path) -> list[Path]:
    """Write encoded slices into ``output_dir``; returns the file paths."""
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for encoded in slices:
        path = output_dir / encoded.filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(encoded.data)
        paths.append(path)
    return paths


def _print_summary(
    input_path: Path,
    output: Path,
    volume: Volume,
    slices: list[EncodedSlice],
    paths: list[Path],
    elapsed: float,
) -> None:
    total_kb = sum(len(s.data) for s in slices) / 1024
    dims = "x".join(str(s) for s in volume.size)
    console.print(f"\n[green]Conversion complete![/green]")
    console.print(f"  Input:    {input_path} ({dims}, {volume.component_type.value})")
    console.print(f"  Output:   {output}")
    console.print(f"  Slices:   {len(paths)}")
    console.print(f"  Size:     {total_kb:.1f} KB")
    console.print(f"  Time:     {elapsed:.1f}s")


def _snapshot_table(snapshot: dict) -> Table:
    table = Table(title="Tag dictionary of failing slice")
    table.add_column("Keyword", style="bold")
    table.add_column("Value", max_width=60)
    for keyword, value in snapshot.items():
        table.add_row(keyword, value)
    return table


if __name__ == "__main__":
    app()

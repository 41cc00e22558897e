"""
Command-line interface for watermark removal.

Two modes are supported:

- Simple mode: ``unmark a.jpg b.png`` processes each file in place; the
  processing options apply to every file.
- Full mode: ``unmark -i INPUT -o OUTPUT [options]`` processes a single
  file or every image in a directory.
"""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
)

from . import __version__
from .blend import DEFAULT_LOGO_VALUE
from .geometry import Region, WatermarkSize
from .processing import (
    DEFAULT_GATE_THRESHOLD,
    ProcessOptions,
    ProcessResult,
    process_directory,
    process_image,
)
from .stats import ProcessingStats
from .watermark_engine import WatermarkEngine

console = Console()


def configure_logging(verbose=False, quiet=False):
    """Route the package logger through rich.

    Args:
        verbose: Show debug messages
        quiet: Show errors only (wins over verbose)
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logger = logging.getLogger("unmark")
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(RichHandler(console=console, show_path=verbose, markup=False))
    logger.propagate = False


def resolve_force_size(force_small, force_large):
    """Translate the --force-small/--force-large flags.

    Raises:
        click.UsageError: If both flags are given
    """
    if force_small and force_large:
        raise click.UsageError("Cannot specify both --force-small and --force-large")
    if force_small:
        return WatermarkSize.SMALL
    if force_large:
        return WatermarkSize.LARGE
    return None


def parse_region(ctx, param, value):
    """Click callback parsing an 'x,y,w,h' region."""
    if value is None:
        return None
    try:
        return Region.parse(value)
    except ValueError as err:
        raise click.BadParameter(str(err)) from err


def create_engine(bg_small, bg_large, logo_value):
    """Build the engine from explicit captures or the bundled assets."""
    if bool(bg_small) != bool(bg_large):
        raise click.UsageError("--bg-small and --bg-large must be given together")
    if bg_small:
        return WatermarkEngine.from_files(bg_small, bg_large, logo_value=logo_value)
    return WatermarkEngine.from_assets(logo_value=logo_value)


def _print_result(path, result):
    if not result.success:
        console.print(f"[red]✗ {path}: {result.message}[/red]")
    elif result.skipped:
        console.print(f"[yellow]- {path}: {result.message}[/yellow]")
    else:
        console.print(f"[green]✓ {path}: {result.message}[/green]")


def run_simple_mode(images, engine, options, stats):
    """Process each file in place with the given options."""
    for name in images:
        path = Path(name)
        if not path.exists():
            logging.getLogger("unmark").error("File not found: %s", name)
            stats.add_result(path, _failure("File not found"))
            continue
        if path.is_dir():
            logging.getLogger("unmark").error(
                "Skipping directory: %s (use -i <dir> -o <dir>)", name
            )
            stats.add_result(path, _failure("Is a directory"))
            continue

        result = process_image(path, path, engine, options)
        stats.add_result(path, result)
        _print_result(path, result)


def _failure(message):
    return ProcessResult(success=False, message=message)


def run_full_mode(input_path, output_path, engine, options, stats):
    """Process a single file or a directory."""
    input_path = Path(input_path)

    if input_path.is_dir():
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeRemainingColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("[cyan]Processing images", total=None)
            process_directory(
                input_path, output_path, engine, options,
                stats=stats, progress=progress, task_id=task,
            )
        return

    result = process_image(input_path, output_path, engine, options)
    stats.add_result(input_path, result)
    _print_result(input_path, result)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("images", nargs=-1, type=click.Path())
@click.option("-i", "--input", "input_path", type=click.Path(exists=True),
              help="Input image file or directory")
@click.option("-o", "--output", "output_path", type=click.Path(),
              help="Output image file or directory")
@click.option("--remove/--add", "-r/-a", default=True,
              help="Remove the watermark (default) or add it")
@click.option("--force-small", is_flag=True,
              help="Force the 48x48 watermark regardless of image size")
@click.option("--force-large", is_flag=True,
              help="Force the 96x96 watermark regardless of image size")
@click.option("--detect/--no-detect", default=False,
              help="Skip images where no watermark is detected")
@click.option("--threshold", default=DEFAULT_GATE_THRESHOLD, type=click.FloatRange(0.0, 1.0),
              show_default=True, help="Detection confidence needed to process an image")
@click.option("--logo-value", default=DEFAULT_LOGO_VALUE, type=click.FloatRange(0.0, 255.0),
              show_default=True, help="Logo brightness (255 = white)")
@click.option("--region", default=None, callback=parse_region,
              help="Custom watermark region 'x,y,w,h'")
@click.option("--snap", is_flag=True,
              help="Search inside --region for the exact watermark size and position")
@click.option("--quality", default=None, type=click.IntRange(1, 101),
              help="JPEG/WebP quality (101 = lossless WebP)")
@click.option("--bg-small", type=click.Path(exists=True), help="48x48 background capture")
@click.option("--bg-large", type=click.Path(exists=True), help="96x96 background capture")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress all output except errors")
@click.version_option(__version__, "-V", "--version")
def main(
    images,
    input_path,
    output_path,
    remove,
    force_small,
    force_large,
    detect,
    threshold,
    logo_value,
    region,
    snap,
    quality,
    bg_small,
    bg_large,
    verbose,
    quiet,
):
    """Remove (or add) the semi-transparent corner logo watermark from images.

    Simple usage: unmark IMAGE... (edits the files in place)
    """
    configure_logging(verbose, quiet)

    if images and (input_path or output_path):
        raise click.UsageError("Pass either IMAGE... or -i/-o, not both")
    if not images and not (input_path and output_path):
        raise click.UsageError("INPUT and OUTPUT are required (-i/-o), or pass IMAGE...")
    if snap and region is None:
        raise click.UsageError("--snap requires --region")

    force_size = resolve_force_size(force_small, force_large)
    stats = ProcessingStats(verbose=verbose, console=console)

    try:
        engine = create_engine(bg_small, bg_large, logo_value)

        if force_size is not None:
            logging.getLogger("unmark").info(
                "Forcing %dx%d watermark size", force_size.value, force_size.value
            )
        options = ProcessOptions(
            remove=remove,
            force_size=force_size,
            use_detection=detect,
            detection_threshold=threshold,
            region=region,
            snap=snap,
            quality=quality,
        )

        if images:
            run_simple_mode(images, engine, options, stats)
        else:
            run_full_mode(input_path, output_path, engine, options, stats)
    except (FileNotFoundError, ValueError) as e:
        console.print(
            Panel(
                f"[red]{e}[/red]",
                title="[bold red]Error[/bold red]",
                border_style="red",
            )
        )
        sys.exit(1)

    if not quiet and stats.total > 1:
        stats.display_summary()

    sys.exit(1 if stats.failed else 0)


if __name__ == "__main__":
    main()

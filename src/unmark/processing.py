"""Single-image and directory processing on top of WatermarkEngine."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .geometry import Region, WatermarkSize
from .image_io import is_supported_image, load_image, save_image

logger = logging.getLogger(__name__)

# Default confidence gate for batch removal; distinct from the detector's
# own detected threshold
DEFAULT_GATE_THRESHOLD = 0.25


@dataclass
class ProcessOptions:
    """Per-run processing options."""

    remove: bool = True
    force_size: Optional[WatermarkSize] = None
    use_detection: bool = False
    detection_threshold: float = DEFAULT_GATE_THRESHOLD
    region: Optional[Region] = None
    snap: bool = False
    quality: Optional[int] = None


@dataclass
class ProcessResult:
    """Outcome of processing one image."""

    success: bool = False
    skipped: bool = False
    confidence: float = 0.0
    message: str = ""


def _resolve_custom_region(engine, image, options, result):
    """Pick the target region for custom-region processing.

    Returns:
        Region to process, or None when the image should be skipped
    """
    if not options.snap:
        return options.region

    guided = engine.guided_locate(image, options.region)
    result.confidence = guided.confidence
    if guided.found:
        logger.info(
            "Snapped to (%d,%d) %dx%d (%.0f%% confidence)",
            guided.match_region.x, guided.match_region.y,
            guided.match_region.width, guided.match_region.height,
            guided.confidence * 100,
        )
        return guided.match_region
    if options.use_detection:
        return None
    logger.info("No match inside region, using it as given")
    return options.region


def _apply(engine, image, options, result):
    """Run the requested operation. Returns the image, or None if skipped."""
    if options.region is not None:
        target = _resolve_custom_region(engine, image, options, result)
        if target is None:
            result.message = "No watermark found in region, skipped"
            return None
        if options.remove:
            return engine.remove_custom(image, target)
        return engine.add_custom(image, target)

    if options.use_detection and options.remove:
        passed, detection = engine.passes_gate(
            image, options.detection_threshold, options.force_size
        )
        result.confidence = detection.confidence
        if not passed:
            result.message = (
                f"No watermark detected ({detection.confidence * 100:.0f}%), skipped"
            )
            return None

    if options.remove:
        return engine.remove(image, options.force_size)
    return engine.add(image, options.force_size)


def process_image(input_path, output_path, engine, options=None):
    """Load, process and save a single image.

    Errors are reported through the result, never raised.

    Args:
        input_path: Source image
        output_path: Destination image (may equal input_path)
        engine: WatermarkEngine
        options: ProcessOptions, defaults if None

    Returns:
        ProcessResult
    """
    options = options or ProcessOptions()
    result = ProcessResult()
    input_path, output_path = Path(input_path), Path(output_path)

    try:
        image = load_image(input_path)
        logger.info(
            "Processing: %s (%dx%d)", input_path.name, image.shape[1], image.shape[0]
        )

        processed = _apply(engine, image, options, result)
        if processed is None:
            result.success = True
            result.skipped = True
            logger.info("%s: %s", input_path.name, result.message)
            return result

        save_image(processed, output_path, options.quality)

        result.success = True
        result.message = "Watermark removed" if options.remove else "Watermark added"
        logger.info("Saved: %s", output_path.name)
    except Exception as e:
        result.message = f"Error: {e}"
        logger.error("Error processing %s: %s", input_path, e)

    return result


def iter_images(input_dir):
    """Yield supported image files directly inside a directory, sorted."""
    for entry in sorted(Path(input_dir).iterdir()):
        if entry.is_file() and is_supported_image(entry):
            yield entry


def process_directory(input_dir, output_dir, engine, options=None, stats=None,
                      progress=None, task_id=None):
    """Process every supported image in a directory.

    Failures do not stop the batch.

    Args:
        input_dir: Source directory
        output_dir: Destination directory, created if missing
        engine: WatermarkEngine
        options: ProcessOptions
        stats: Optional ProcessingStats to record results into
        progress: Rich progress instance for updates
        task_id: Progress task ID for updates

    Returns:
        List of (path, ProcessResult)
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Batch processing directory: %s", input_dir)

    files = list(iter_images(input_dir))
    if progress is not None and task_id is not None:
        progress.update(task_id, total=len(files))

    results = []
    for path in files:
        if progress is not None and task_id is not None:
            progress.update(task_id, description=f"[yellow]{path.name}")

        result = process_image(path, output_dir / path.name, engine, options)
        results.append((path, result))
        if stats is not None:
            stats.add_result(path, result)

        if progress is not None and task_id is not None:
            progress.update(task_id, advance=1)

    return results

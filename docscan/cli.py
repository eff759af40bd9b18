"""Command-line interface for document scanning."""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import click

from docscan import __version__
from docscan.page_detection.detector import DetectionOptions, detect_document
from docscan.page_detection.perspective import RectifyOptions
from docscan.pipeline import Pipeline, ScanConfig
from docscan.preprocessing.loader import (
    HEIC_EXTENSIONS,
    RAW_EXTENSIONS,
    STANDARD_EXTENSIONS,
    load_image,
)

logger = logging.getLogger(__name__)

_IMAGE_EXTENSIONS = STANDARD_EXTENSIONS + HEIC_EXTENSIONS + RAW_EXTENSIONS


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _collect_inputs(input_paths: tuple, batch: bool, filter_pattern: Optional[str]) -> List[Path]:
    """Expand files and (with --batch) directories into a list of image files."""
    input_files: List[Path] = []

    for input_path_str in input_paths:
        input_path = Path(input_path_str)

        if input_path.is_file():
            input_files.append(input_path)
        elif input_path.is_dir():
            if not batch:
                raise click.UsageError(f"Directory provided but --batch not specified: {input_path}")
            if filter_pattern:
                matches = sorted(input_path.glob(filter_pattern))
                logger.info(f"Found {len(matches)} files matching {filter_pattern}")
            else:
                matches = sorted(p for p in input_path.iterdir() if p.suffix.lower() in _IMAGE_EXTENSIONS)
            input_files.extend(matches)
        else:
            raise click.UsageError(f"Invalid input path: {input_path}")

    return input_files


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """docscan - find the document in a photo and flatten it into a scan."""
    pass


@main.command()
@click.argument('input_paths', nargs=-1, required=True, type=click.Path(exists=True))
@click.option('--output', '-o', 'output_dir', type=click.Path(), default='./output',
              help='Output directory for rectified images')
@click.option('--debug', is_flag=True, help='Save debug visualizations for each image')
@click.option('--batch', is_flag=True, help='Process all images in directory')
@click.option('--filter', 'filter_pattern', type=str, help='Glob pattern to filter files (e.g., "*.jpg")')
@click.option('--aspect', type=float, help='Target output aspect ratio (width / height)')
@click.option('--padding', type=click.IntRange(min=0), default=0, help='White border in pixels')
@click.option('--max-width', type=click.IntRange(min=1), help='Scale output down to at most this width')
@click.option('--max-height', type=click.IntRange(min=1), help='Scale output down to at most this height')
@click.option('--mode', type=click.Choice(['color', 'grayscale', 'binary']), default='color',
              help='Output color mode')
@click.option('--adaptive', is_flag=True, help='Binarize with Sauvola before edge detection')
@click.option('--auto-canny', is_flag=True, help='Pick Canny thresholds from the image')
@click.option('--scale', type=click.FloatRange(min=0.05, max=1.0), default=0.5,
              help='Processing scale for detection')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def scan(
    input_paths: tuple,
    output_dir: str,
    debug: bool,
    batch: bool,
    filter_pattern: Optional[str],
    aspect: Optional[float],
    padding: int,
    max_width: Optional[int],
    max_height: Optional[int],
    mode: str,
    adaptive: bool,
    auto_canny: bool,
    scale: float,
    verbose: bool
) -> None:
    """Detect and rectify the document in each image.

    INPUT_PATHS: One or more image files or directories to process
    """
    _configure_logging(verbose)

    input_files = _collect_inputs(input_paths, batch, filter_pattern)
    if not input_files:
        logger.error("No input files found")
        sys.exit(1)

    logger.info(f"Processing {len(input_files)} file(s)")

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    debug_dir = None
    if debug:
        debug_dir = output_path / 'debug'
        debug_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Debug output will be saved to: {debug_dir}")

    config = ScanConfig(
        detection=DetectionOptions(
            processing_scale=scale,
            use_adaptive_threshold=adaptive,
            auto_canny=auto_canny,
        ),
        rectify=RectifyOptions(
            target_aspect_ratio=aspect,
            padding=padding,
            max_width=max_width,
            max_height=max_height,
            output_mode=mode,
        ),
    )
    pipeline = Pipeline(config)

    results = pipeline.process_batch(
        [str(p) for p in input_files],
        output_dir=str(output_path),
        debug_output_dir=str(debug_dir) if debug_dir else None,
    )

    succeeded = [r for r in results if r.success]
    for result in results:
        if result.success:
            click.echo(f"{result.input_path} -> {result.output_path}")
        else:
            reason = result.failure.value if result.failure else "unknown"
            click.echo(f"{result.input_path}: {reason}", err=True)

    logger.info(f"COMPLETE: Scanned {len(succeeded)}/{len(input_files)} file(s)")
    logger.info(f"Output directory: {output_path.absolute()}")

    if not succeeded:
        sys.exit(1)


@main.command()
@click.argument('input_paths', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--adaptive', is_flag=True, help='Binarize with Sauvola before edge detection')
@click.option('--scale', type=click.FloatRange(min=0.05, max=1.0), default=0.5,
              help='Processing scale for detection')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def detect(input_paths: tuple, adaptive: bool, scale: float, verbose: bool) -> None:
    """Print detected corners, confidence and orientation for each image.

    INPUT_PATHS: One or more image files
    """
    _configure_logging(verbose)
    options = DetectionOptions(processing_scale=scale, use_adaptive_threshold=adaptive)

    for input_path in input_paths:
        image, _ = load_image(input_path)
        outcome = detect_document(image, options)

        if not outcome.success:
            click.echo(f"{input_path}: {outcome.failure.value} ({outcome.message})")
            continue

        corners = ", ".join(f"({p.x:.1f}, {p.y:.1f})" for p in outcome.quad.corners)
        info = outcome.angle_info
        click.echo(f"{input_path}: corners [{corners}]")
        click.echo(
            f"  confidence={outcome.confidence:.3f} area_ratio={outcome.area_ratio:.3f} "
            f"rotation={info.rotation_angle:.2f} hskew={info.horizontal_skew:.2f} "
            f"vskew={info.vertical_skew:.2f} upside_down={info.is_upside_down}"
        )


if __name__ == '__main__':
    main()

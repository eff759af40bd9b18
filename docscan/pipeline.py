"""Main pipeline orchestrator: load, detect, rectify, save."""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from docscan.errors import FailureReason
from docscan.page_detection.detector import DetectionOptions, DetectionOutcome, detect_document
from docscan.page_detection.perspective import RectificationResult, RectifyOptions, rectify_document
from docscan.preprocessing.loader import ImageMetadata, load_image, save_image
from docscan.preprocessing.normalizer import normalize, to_grayscale

logger = logging.getLogger(__name__)


@dataclass
class ScanConfig:
    """All tunable parameters in one place."""

    # Preprocessing
    max_working_resolution: int = 4000  # px, longest edge

    # Detection and rectification
    detection: DetectionOptions = field(default_factory=DetectionOptions)
    rectify: RectifyOptions = field(default_factory=RectifyOptions)

    # Output
    output_format: str = "jpeg"
    jpeg_quality: int = 92


@dataclass
class ScanResult:
    """Result of scanning one image."""

    input_path: str
    metadata: Optional[ImageMetadata]
    processing_time: float
    steps_completed: List[str]
    detection: Optional[DetectionOutcome] = None
    rectification: Optional[RectificationResult] = None
    failure: Optional[FailureReason] = None
    output_path: Optional[Path] = None

    @property
    def success(self) -> bool:
        return self.failure is None and self.rectification is not None and self.rectification.success

    @property
    def output_image(self) -> Optional[np.ndarray]:
        if self.rectification is None:
            return None
        return self.rectification.image


class Pipeline:
    """Detect-then-correct pipeline over image files."""

    def __init__(self, config: Optional[ScanConfig] = None) -> None:
        """Initialize pipeline with configuration.

        Args:
            config: Scan configuration. If None, uses defaults.
        """
        self.config = config or ScanConfig()
        self.step_times: Dict[str, float] = {}

    def scan_array(
        self,
        image: np.ndarray,
        debug_dir: Optional[Path] = None,
    ) -> ScanResult:
        """Detect and rectify a document in an in-memory image.

        Stops at the first failed stage; the failure reason is recorded on the
        result rather than raised.
        """
        start_time = time.time()
        steps_completed: List[str] = []

        step_start = time.time()
        detection = detect_document(image, self.config.detection)
        self.step_times['detect'] = time.time() - step_start
        logger.info(f"Detection time: {self.step_times['detect']:.3f}s")

        if debug_dir and detection.failure != FailureReason.INVALID_INPUT:
            self._save_detection_debug(image, detection, debug_dir)

        if not detection.success:
            return ScanResult(
                input_path="<array>",
                metadata=None,
                processing_time=time.time() - start_time,
                steps_completed=steps_completed,
                detection=detection,
                failure=detection.failure,
            )
        steps_completed.append('detect')

        step_start = time.time()
        rectification = rectify_document(image, detection.corners, self.config.rectify)
        self.step_times['rectify'] = time.time() - step_start
        logger.info(f"Rectify time: {self.step_times['rectify']:.3f}s")

        if rectification.success:
            steps_completed.append('rectify')
            if debug_dir:
                from docscan.utils.debug import save_debug_image
                save_debug_image(
                    rectification.image,
                    debug_dir / "04_rectified.jpg",
                    f"Rectified {rectification.output_size[0]}x{rectification.output_size[1]}"
                )

        return ScanResult(
            input_path="<array>",
            metadata=None,
            processing_time=time.time() - start_time,
            steps_completed=steps_completed,
            detection=detection,
            rectification=rectification,
            failure=rectification.failure,
        )

    def _save_detection_debug(self, image: np.ndarray, detection: DetectionOutcome, debug_dir: Path) -> None:
        from docscan.utils.debug import draw_detection, save_debug_image

        save_debug_image(to_grayscale(image), debug_dir / "01_grayscale.jpg", "Intensity field")
        if detection.edge_mask is not None:
            save_debug_image(detection.edge_mask, debug_dir / "02_edges.jpg", "Closed edge mask")
        save_debug_image(
            draw_detection(image, detection),
            debug_dir / "03_detected.jpg",
            f"Detection (success={detection.success}, confidence={detection.confidence:.2f})"
        )

    def process(
        self,
        input_path: str,
        output_dir: Optional[str] = None,
        debug_output_dir: Optional[str] = None,
    ) -> ScanResult:
        """Scan a single image file.

        Args:
            input_path: Path to input image
            output_dir: Optional directory to write the rectified image to
            debug_output_dir: Optional directory for debug output

        Returns:
            ScanResult with the detection, the rectification and timing
        """
        start_time = time.time()
        debug_dir: Optional[Path] = None

        if debug_output_dir:
            debug_dir = Path(debug_output_dir)
            debug_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Processing: {input_path}")

        step_start = time.time()
        image, metadata = load_image(input_path)
        self.step_times['load'] = time.time() - step_start
        logger.info(f"Load time: {self.step_times['load']:.3f}s")

        step_start = time.time()
        working = normalize(image, self.config.max_working_resolution).image
        self.step_times['normalize'] = time.time() - step_start

        result = self.scan_array(working, debug_dir)
        result.input_path = str(input_path)
        result.metadata = metadata
        result.steps_completed = ['load', 'normalize'] + result.steps_completed

        if result.success and output_dir:
            ext = '.jpg' if self.config.output_format.lower() in ('jpeg', 'jpg') else f".{self.config.output_format.lower()}"
            output_path = Path(output_dir) / f"{Path(input_path).stem}_scan{ext}"
            result.output_path = save_image(result.output_image, output_path, quality=self.config.jpeg_quality)
            result.steps_completed.append('save')
            logger.info(f"Saved: {result.output_path}")
        elif not result.success:
            reason = result.failure.value if result.failure else "unknown"
            logger.warning(f"No document extracted from {input_path}: {reason}")

        result.processing_time = time.time() - start_time
        logger.info(f"Total time: {result.processing_time:.3f}s")

        return result

    def process_batch(
        self,
        input_paths: List[str],
        output_dir: Optional[str] = None,
        debug_output_dir: Optional[str] = None,
    ) -> List[ScanResult]:
        """Scan multiple image files, skipping those that raise.

        Args:
            input_paths: List of paths to input images
            output_dir: Optional directory for rectified images
            debug_output_dir: Optional directory for debug output

        Returns:
            List of ScanResult objects, one per file that could be read
        """
        results = []

        for i, path in enumerate(input_paths, 1):
            logger.info(f"Processing {i}/{len(input_paths)}: {path}")

            # Separate debug directory per image
            if debug_output_dir:
                debug_dir = Path(debug_output_dir) / Path(path).stem
            else:
                debug_dir = None

            try:
                result = self.process(
                    path,
                    output_dir=output_dir,
                    debug_output_dir=str(debug_dir) if debug_dir else None,
                )
                results.append(result)
            except (OSError, ValueError, ImportError) as e:
                logger.error(f"Error processing {path}: {e}", exc_info=True)
                continue

        return results

"""Compute MIG and NCC displacement for every experiment of an image tree.

Folder structure of the input::

    images/
        Gain_1/
            Move_1/
                Exp_1/frame_0.png, frame_1.png, ...
                Exp_2/...
            Move_2/...
        Gain_2/...

Every exposure folder gets a ``Results.csv`` at the same relative location
below the results root. With ``--ncc-images`` the frames are also written
with the matched region drawn on them.
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, replace
from pathlib import Path

import cv2
from tqdm import tqdm

from decorr.config import PipelineConfig, load_config
from decorr.errors import DecorrError, InputRootMissingError, ResultsWriteError
from decorr.frames import list_frames, load_gray, reference_frame
from decorr.metrics import annotate_match, get_roi, match_template, mean_intensity_gradient
from decorr.results import RESULTS_FILENAME, ResultsWriter, build_row
from decorr.utils import create_folders, setup_logging
from decorr.walker import ExperimentFolder, iter_experiments

logger = logging.getLogger(__name__)

LOG_FILENAME = "decorr.log"


@dataclass(frozen=True)
class ExperimentResult:
    experiment: ExperimentFolder
    ok: bool
    frames_processed: int = 0
    csv_path: Path | None = None
    error: str | None = None


def _write_ncc_image(path: Path, image) -> None:
    if not cv2.imwrite(str(path), image):
        raise ResultsWriteError(f"Could not write annotated image {path}")


def process_experiment(experiment: ExperimentFolder, config: PipelineConfig) -> ExperimentResult:
    """Match and measure every frame of one experiment and write its results CSV.

    :param experiment: experiment folder to process
    :param config: pipeline configuration
    :return: outcome of the experiment, failures are reported here and never raised
    """
    results_dir = config.results_root / experiment.relative
    csv_path = results_dir / RESULTS_FILENAME
    create_folders(results_dir)
    ncc_dir = None
    if config.ncc_images_root is not None:
        ncc_dir = config.ncc_images_root / experiment.relative
        create_folders(ncc_dir)

    roi_size = (config.roi.width, config.roi.height)
    writer = ResultsWriter(csv_path)
    try:
        with writer:
            frames = list_frames(experiment.path, config.frame_pattern)
            ref = reference_frame(frames, config.reference_index)
            roi = get_roi(load_gray(ref.path), config.roi)

            size_warned = False
            for frame in tqdm(frames, desc=str(experiment), leave=False):
                logger.info(f"Reading image : {frame.path}")
                img = load_gray(frame.path)
                if not size_warned and img.shape != (config.frame_height, config.frame_width):
                    # shifts are measured from the centre of each frame as loaded
                    logger.warning(f"{experiment}: {frame.name} is {img.shape[1]}x{img.shape[0]}, expected "
                                   f"{config.frame_width}x{config.frame_height}")
                    size_warned = True

                match = match_template(img, roi)
                distance = None if config.calibration_mode else config.transform.to_mm(match.shift_x, match.shift_y)
                writer.write_row(build_row(match, distance, mean_intensity_gradient(img)))

                if ncc_dir is not None:
                    _write_ncc_image(ncc_dir / frame.name, annotate_match(img, match, roi_size))
    except (DecorrError, OSError) as e:
        logger.error(f"Experiment {experiment} failed: {e}")
        return ExperimentResult(experiment, ok=False, frames_processed=writer.rows_written,
                                csv_path=csv_path, error=str(e))

    logger.info(f"{experiment}: wrote {writer.rows_written} rows to {csv_path}")
    return ExperimentResult(experiment, ok=True, frames_processed=writer.rows_written, csv_path=csv_path)


def run(config: PipelineConfig) -> list[ExperimentResult]:
    """Process every experiment below the images root.

    :param config: pipeline configuration
    :return: one result per processed experiment, in walk order
    :raises InputRootMissingError: if the images root does not exist
    """
    results = []
    for experiment in iter_experiments(config.images_root):
        result = process_experiment(experiment, config)
        results.append(result)
        if not result.ok and not config.continue_on_error:
            logger.error("Stopping after failed experiment")
            break
    failures = sum(not r.ok for r in results)
    logger.info(f"Completed {len(results)} experiments, Successes: {len(results) - failures}, "
                f"Failures: {failures}")
    return results


def main(argv: list[str] | None = None) -> int:
    """Command line entry point, returns the process exit code."""
    ap = argparse.ArgumentParser(description="Compute MIG and NCC displacement for laser decorrelation images")
    ap.add_argument("--config", default=None, help="YAML file with calibration and ROI constants")
    ap.add_argument("--images", default=None, help="root of the gain/movement/exposure image tree")
    ap.add_argument("--results", default=None, help="root of the mirrored results tree")
    ap.add_argument("--ncc-images", default=None, help="also write annotated frames below this root")
    ap.add_argument("--calibration", action="store_true", help="leave the mm columns empty")
    ap.add_argument("--stop-on-error", action="store_true", help="stop after the first failed experiment")
    ap.add_argument("--log-level", default="INFO")
    args = ap.parse_args(argv)

    level = getattr(logging, args.log_level.upper(), logging.INFO)
    setup_logging(level=level)
    try:
        config = load_config(args.config).with_paths(args.images, args.results, args.ncc_images)
    except (DecorrError, OSError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    if args.calibration or args.stop_on_error:
        config = replace(config,
                         calibration_mode=config.calibration_mode or args.calibration,
                         continue_on_error=config.continue_on_error and not args.stop_on_error)

    try:
        if not config.images_root.exists():
            raise InputRootMissingError(f"Images directory {config.images_root} does not exist")
        setup_logging(config.results_root / LOG_FILENAME, level=level)
        results = run(config)
    except InputRootMissingError as e:
        logger.error(f"{e}. Please copy it from the acquisition project.")
        return 1
    except OSError as e:
        logger.error(f"Cannot write to results directory {config.results_root}: {e}")
        return 1
    return 0 if all(r.ok for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())

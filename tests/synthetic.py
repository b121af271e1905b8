"""Synthetic image trees for the tests."""
from pathlib import Path

import cv2
import numpy as np

from decorr.config import PipelineConfig, RoiGeometry

FRAME_WIDTH = 64
FRAME_HEIGHT = 48
# 16x16 block centred in the 64x48 frame
SMALL_ROI = RoiGeometry(width=16, height=16, top_left_x=24, top_left_y=16)


def small_config(images_root, results_root, **kwargs) -> PipelineConfig:
    return PipelineConfig(images_root=Path(images_root), results_root=Path(results_root),
                          roi=SMALL_ROI, frame_width=FRAME_WIDTH, frame_height=FRAME_HEIGHT,
                          **kwargs)


def textured_frame(seed: int = 0, width: int = FRAME_WIDTH, height: int = FRAME_HEIGHT) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width), dtype=np.uint8)


def shifted(frame: np.ndarray, dx: int, dy: int) -> np.ndarray:
    """Move the frame content dx pixels right and dy pixels down."""
    return np.roll(frame, shift=(dy, dx), axis=(0, 1))


def make_tree(root: Path, gains: int = 2, movements: int = 2, exposures: int = 2,
              frames: int = 3) -> list[Path]:
    """Write a gain/movement/exposure tree; frame i is moved by (i, -i) pixels."""
    base = textured_frame()
    folders = []
    for g in range(gains):
        for m in range(movements):
            for e in range(exposures):
                folder = Path(root, f"Gain_{g}", f"Move_{m}", f"Exp_{e}")
                folder.mkdir(parents=True)
                for i in range(frames):
                    cv2.imwrite(str(folder / f"frame_{i}.png"), shifted(base, i, -i))
                folders.append(folder)
    return folders

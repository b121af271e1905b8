"""Per-frame metrics: NCC template matching and Mean Intensity Gradient (MIG)."""
from __future__ import annotations

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from decorr.config import RoiGeometry
from decorr.errors import RoiOutOfBoundsError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchResult:
    """Best NCC match of the reference region in a frame.

    ``shift_x``/``shift_y`` are measured from the frame centre to the centre
    of the match: positive means right/down, negative left/up.
    """

    match_loc: tuple[int, int]
    confidence: float
    shift_x: int
    shift_y: int


def get_roi(frame: np.ndarray, roi: RoiGeometry) -> np.ndarray:
    """Crop the reference region out of a frame.

    :param frame: 2D grayscale reference frame
    :param roi: geometry of the region
    :return: copy of the region
    :raises RoiOutOfBoundsError: if the region exceeds the frame
    """
    height, width = frame.shape[:2]
    x0, y0 = roi.top_left_x, roi.top_left_y
    x1, y1 = x0 + roi.width, y0 + roi.height
    if x0 < 0 or y0 < 0 or x1 > width or y1 > height:
        raise RoiOutOfBoundsError(
            f"ROI ({x0}, {y0}, {roi.width}x{roi.height}) outside frame of size {width}x{height}")
    return frame[y0:y1, x0:x1].copy()


def match_template(frame: np.ndarray, roi: np.ndarray) -> MatchResult:
    """Locate the reference region in a frame with normalized cross-correlation.

    :param frame: 2D grayscale frame to search
    :param roi: 2D grayscale template of the same dtype
    :return: location, confidence in percent and pixel shift of the best match
    :raises RoiOutOfBoundsError: if the template is larger than the frame
    """
    frame_h, frame_w = frame.shape[:2]
    roi_h, roi_w = roi.shape[:2]
    if roi_h > frame_h or roi_w > frame_w:
        raise RoiOutOfBoundsError(f"Template {roi_w}x{roi_h} larger than frame {frame_w}x{frame_h}")

    result = cv2.matchTemplate(frame, roi, cv2.TM_CCORR_NORMED)
    _, max_val, _, max_loc = cv2.minMaxLoc(result)
    confidence = float(np.clip(max_val * 100.0, 0.0, 100.0))

    shift_y = (max_loc[1] + roi_h // 2) - frame_h // 2
    shift_x = (max_loc[0] + roi_w // 2) - frame_w // 2
    return MatchResult(match_loc=(int(max_loc[0]), int(max_loc[1])),
                       confidence=confidence,
                       shift_x=int(shift_x),
                       shift_y=int(shift_y))


def mean_intensity_gradient(frame: np.ndarray) -> float:
    """Average Sobel gradient magnitude of a frame, a proxy for its sharpness.

    :param frame: 2D grayscale frame
    :return: sum of the gradient magnitude divided by the number of pixels
    :raises ValueError: if the frame is empty
    """
    if frame is None or frame.size == 0:
        raise ValueError("Image is empty or corrupted")
    dx = cv2.Sobel(frame, cv2.CV_32F, 1, 0, ksize=3).astype(np.float64)
    dy = cv2.Sobel(frame, cv2.CV_32F, 0, 1, ksize=3).astype(np.float64)
    # cv2.magnitude rounds differently depending on buffer alignment
    mag = np.sqrt(dx * dx + dy * dy)
    return float(np.sum(mag) / (frame.shape[0] * frame.shape[1]))


def annotate_match(frame: np.ndarray, match: MatchResult, roi_size: tuple[int, int]) -> np.ndarray:
    """Draw the matched region and its confidence on a copy of the frame.

    :param frame: 2D grayscale frame
    :param match: match found in the frame
    :param roi_size: (width, height) of the reference region
    :return: annotated copy of the frame
    """
    out = frame.copy()
    x, y = match.match_loc
    cv2.rectangle(out, (x, y), (x + roi_size[0], y + roi_size[1]), 0, 3)
    cv2.putText(out, f"Confidence: {round(match.confidence)}%", (10, 40),
                cv2.FONT_HERSHEY_SIMPLEX, 1.5, 0, 3)
    return out

"""Listing, ordering and loading of the frames of one experiment."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from decorr.errors import FilenameParseError, FrameLoadError

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"\d+")


@dataclass(frozen=True)
class Frame:
    index: int
    path: Path

    @property
    def name(self) -> str:
        return self.path.name


def frame_index(name: str) -> int:
    """Return the frame index embedded in a file name.

    The index is the first run of digits, e.g. ``frame_12.png`` -> 12.

    :param name: file name
    :return: frame index
    :raises FilenameParseError: if the name contains no digit
    """
    match = _DIGITS.search(name)
    if match is None:
        raise FilenameParseError(f"No frame index in file name {name!r}")
    return int(match.group())


def sort_frames(names: list[str]) -> list[str]:
    """Sort file names by their embedded frame index (names break ties)."""
    return sorted(names, key=lambda n: (frame_index(n), n))


def list_frames(folder: Path, pattern: str = "*") -> list[Frame]:
    """List the frame files of an experiment folder in frame order.

    :param folder: experiment folder
    :param pattern: glob pattern selecting the frame files
    :return: frames sorted by index
    :raises FilenameParseError: if a matching file name has no frame index
    """
    names = [p.name for p in folder.glob(pattern) if p.is_file()]
    return [Frame(frame_index(n), folder / n) for n in sort_frames(names)]


def reference_frame(frames: list[Frame], index: int = 0) -> Frame:
    """Pick the frame the reference region is cropped from.

    :param frames: frames of the experiment
    :param index: frame index of the reference frame
    :return: the reference frame
    :raises FrameLoadError: if no frame carries ``index``
    """
    for frame in frames:
        if frame.index == index:
            return frame
    raise FrameLoadError(f"No reference frame with index {index} among {len(frames)} frames")


def load_gray(path: Path) -> np.ndarray:
    """Read an image as 8-bit grayscale.

    :param path: image file
    :return: 2D uint8 array
    :raises FrameLoadError: if the file is missing or cannot be decoded
    """
    image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
    if image is None or image.size == 0:
        raise FrameLoadError(f"Image is empty or corrupted: {path}")
    return image

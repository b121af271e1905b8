"""Discovery of experiment folders in the gain / movement / exposure image tree."""
from __future__ import annotations

import logging
import typing
from dataclasses import dataclass
from pathlib import Path

from decorr.errors import InputRootMissingError

if typing.TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExperimentFolder:
    """Leaf folder of the image tree holding the frames of one experiment."""

    gain: str
    movement: str
    exposure: str
    path: Path

    @property
    def relative(self) -> Path:
        """Location below the images root, used to mirror the output trees."""
        return Path(self.gain, self.movement, self.exposure)

    def __str__(self) -> str:
        return self.relative.as_posix()


def _subdirectories(path: Path) -> list[Path]:
    return sorted((p for p in path.iterdir() if p.is_dir()), key=lambda p: p.name)


def iter_experiments(root: str | Path) -> Iterator[ExperimentFolder]:
    """Enumerate the experiment folders below ``root``.

    The tree has exactly three levels: camera gain, movement and exposure.
    Files found at any level are skipped.

    :param root: images root directory
    :yield: one descriptor per exposure folder, in name order
    :raises InputRootMissingError: if ``root`` does not exist
    """
    root = Path(root)
    if not root.exists():
        raise InputRootMissingError(f"Images directory {root} does not exist")
    logger.info(f"Images directory found: {root}")

    for gain_dir in _subdirectories(root):
        logger.info(f"Inside camera param directory : {gain_dir}")
        for movement_dir in _subdirectories(gain_dir):
            logger.info(f"Inside movement directory : {movement_dir}")
            for exposure_dir in _subdirectories(movement_dir):
                logger.info(f"Inside experiment directory : {exposure_dir}")
                yield ExperimentFolder(gain=gain_dir.name,
                                       movement=movement_dir.name,
                                       exposure=exposure_dir.name,
                                       path=exposure_dir)

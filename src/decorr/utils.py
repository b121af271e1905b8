"""Utilities shared by the decorr pipeline: logging, YAML and folder handling."""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_file: Path | None = None, level=logging.INFO) -> None:
    """Log to the console and, if given, to a file."""
    handlers: list[logging.Handler] = []

    console = logging.StreamHandler(stream=sys.stdout)
    console.setLevel(level)
    handlers.append(console)

    if log_file is not None:
        # Make sure parent dirs exist
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fileh = logging.FileHandler(log_file, encoding="utf-8")
        fileh.setLevel(level)
        handlers.append(fileh)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True,  # replace any pre-existing handlers
    )


def load_yaml(path: str | Path) -> dict:
    """Load a YAML file and return its contents as a dictionary."""
    with Path(path).open(encoding="utf-8") as f:
        return yaml.safe_load(f)


def create_folders(path: Path) -> bool:
    """Create a folder and its parents if they do not exist yet.

    :param path: folder to create
    :return: True if the folder exists afterwards, False if it could not be created
    """
    try:
        if path.exists():
            logger.info(f"Folder already exists at path : {path}")
        else:
            path.mkdir(parents=True, exist_ok=True)
            logger.info(f"Folder created at path : {path}")
    except OSError as e:
        logger.error(f"Error creating folder {path}: {e}")
        return False
    return True

"""Scratch directory owned by a single deployment run."""

from __future__ import annotations

import logging
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from simforge.utils import get_utc_now, scratch_prefix

logger = logging.getLogger(__name__)


class ScratchWorkspace:
    """
    Uniquely named temporary directory, removed when the block exits.

    Usage:
        with ScratchWorkspace() as workspace:
            bundle = resolver.resolve(reference, workspace.path)
    """

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else None
        self.path: Optional[Path] = None
        self.created_at: Optional[datetime] = None

    def __enter__(self) -> ScratchWorkspace:
        self.created_at = get_utc_now()
        if self.root is not None:
            self.root.mkdir(parents=True, exist_ok=True)
        self.path = Path(
            tempfile.mkdtemp(
                prefix=scratch_prefix(self.created_at),
                dir=str(self.root) if self.root is not None else None,
            )
        )
        logger.debug("Created scratch workspace %s", self.path)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Remove the workspace and everything extracted into it."""
        if self.path is None:
            return
        shutil.rmtree(self.path, ignore_errors=True)
        if self.path.exists():
            logger.warning("Could not fully remove scratch workspace %s", self.path)
        else:
            logger.debug("Removed scratch workspace %s", self.path)

    @property
    def exists(self) -> bool:
        return self.path is not None and self.path.exists()

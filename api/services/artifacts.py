"""Durable storage of rendered certificate PDFs on the local filesystem.

Files are named ``<certificate_id>.pdf`` under the configured directory and
served by the static mount at ``/certificates``.
"""

import asyncio
import os
import re
import tempfile
from pathlib import Path

from core.logger import get_logger

logger = get_logger(__name__)

ARTIFACT_URL_PREFIX = "/certificates"

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


class ArtifactExistsError(Exception):
    """Raised when an artifact with the same certificate id is already stored."""

    def __init__(self, certificate_id: str):
        self.certificate_id = certificate_id
        super().__init__(f"Artifact already exists for {certificate_id}")


def _fsync_directory(path: Path) -> None:
    # Persists the new directory entry; not supported on Windows
    if os.name != "posix":
        return
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class ArtifactStorage:
    """Write-once PDF storage.

    ``write`` resolves only after the bytes are flushed, fsynced and linked
    under their final name. Linking is exclusive, so an existing artifact is
    never overwritten and a half-written file is never visible.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def path_for(self, certificate_id: str) -> Path:
        if not _SAFE_NAME.match(certificate_id):
            raise ValueError(f"Invalid certificate id: {certificate_id!r}")
        return self.root / f"{certificate_id}.pdf"

    @staticmethod
    def ref_for(certificate_id: str) -> str:
        """Public path of the artifact, as stored on the record."""
        return f"{ARTIFACT_URL_PREFIX}/{certificate_id}.pdf"

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _write_sync(self, certificate_id: str, data: bytes) -> None:
        final_path = self.path_for(certificate_id)
        self.ensure_root()

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{certificate_id}.", suffix=".tmp", dir=self.root
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            try:
                os.link(tmp_path, final_path)
            except FileExistsError as e:
                raise ArtifactExistsError(certificate_id) from e
            _fsync_directory(self.root)
        finally:
            tmp_path.unlink(missing_ok=True)

    async def write(self, certificate_id: str, data: bytes) -> str:
        """Durably store ``data`` and return the artifact ref.

        Raises:
            ArtifactExistsError: An artifact for this id already exists
            OSError: The file could not be written
        """
        await asyncio.to_thread(self._write_sync, certificate_id, data)
        logger.debug("artifact.written", certificate_id=certificate_id, size=len(data))
        return self.ref_for(certificate_id)

    async def delete(self, certificate_id: str) -> bool:
        """Remove an artifact. Returns False when there was nothing to remove."""
        path = self.path_for(certificate_id)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        logger.debug("artifact.deleted", certificate_id=certificate_id)
        return True

"""Lookup of optional branding images (signature, watermark)."""

from pathlib import Path

from core.logger import get_logger

logger = get_logger(__name__)


class AssetStore:
    """Reads image assets from a directory.

    A missing asset is a normal condition, not an error: the renderer simply
    leaves that element out. Any other I/O problem propagates.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def find_asset(self, name: str | None) -> bytes | None:
        """Return the asset bytes, or None when it is not configured or absent."""
        if not name:
            return None

        path = self.root / name
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            logger.debug("asset.missing", asset=name)
            return None

        if not data:
            logger.warning("asset.empty", asset=name)
            return None
        return data

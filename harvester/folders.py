import webbrowser
from pathlib import Path

from loguru import logger


def open_folder(folder: Path) -> bool:
    """Opens `folder` in the platform file browser. Returns False if nothing could handle it."""
    folder = Path(folder).resolve()
    if not folder.exists():
        logger.warning(f"[OPEN] {folder} does not exist")
        return False

    opened = webbrowser.open(folder.as_uri())
    if not opened:
        logger.warning(f"[OPEN] No handler for {folder}")
    return opened

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


CHROME_ARGS = [
    "--disable-blink-features=AutomationControlled",
    # Keeps navigator.webdriver from being set, fewer bot walls.

    "--no-sandbox",
    # Needed inside Docker / CI where the sandbox cannot start.

    "--disable-dev-shm-usage",
    # /dev/shm is tiny in containers and Chromium crashes on it.
]


UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/133.0.0.0 Safari/537.36"
)
# Real desktop Chrome UA, used for both the browser and the image fetcher.

VIEWPORT = {"width": 1366, "height": 900}

# Navigation
NAV_TIMEOUT_MS = 60_000
NAV_WAIT_UNTIL = "networkidle"

# Loop mode: scroll two screens, then give lazy images time to arrive
LOOP_SCROLL_VIEWPORTS = 2
LOOP_DELAY_MS = 2_000

# Bounded mode: small steps until the page ends or the cap is hit
SCROLL_STEP_PX = 100
SCROLL_INTERVAL_MS = 50
SCROLL_CAP_PX = 15_000

# Image selection
MIN_IMAGE_WIDTH = 50
IMAGE_LINK_EXTENSIONS = ("jpg", "jpeg", "png", "webp", "svg", "ico", "gif")

# Query params that only select a resized variant of the same image
STRIPPED_PARAMS = frozenset({"w", "h", "width", "height", "resize"})

DEFAULT_EXTENSION = ".jpg"
MAX_EXTENSION_LEN = 5
HASH_LEN = 10

DOWNLOAD_TIMEOUT_S = 30
DOWNLOAD_CHUNK = 64 * 1024

# Free-text routing
PNG_KEYWORDS = ("logo", "icon", "symbol", "png")
PNG_SEARCH_URL = "https://www.pngwing.com/en/search?q={query}"
PHOTO_SEARCH_URL = "https://unsplash.com/s/photos/{query}"


@dataclass
class Settings:
    """Runtime settings shared by the queue, orchestrator and CLI."""

    downloads_dir: Path = Path("downloads")
    history_file: Path = Path("history.json")
    storage_state: Optional[str] = None  # Playwright storage_state json for login-walled sites

    nav_timeout_ms: int = NAV_TIMEOUT_MS
    nav_wait_until: str = NAV_WAIT_UNTIL
    loop_delay_ms: int = LOOP_DELAY_MS
    loop_scroll_viewports: int = LOOP_SCROLL_VIEWPORTS
    scroll_step_px: int = SCROLL_STEP_PX
    scroll_interval_ms: int = SCROLL_INTERVAL_MS
    scroll_cap_px: int = SCROLL_CAP_PX

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls()
        if os.environ.get("HARVESTER_DOWNLOADS_DIR"):
            settings.downloads_dir = Path(os.environ["HARVESTER_DOWNLOADS_DIR"])
        if os.environ.get("HARVESTER_HISTORY_FILE"):
            settings.history_file = Path(os.environ["HARVESTER_HISTORY_FILE"])
        if os.environ.get("HARVESTER_STORAGE_STATE"):
            settings.storage_state = os.environ["HARVESTER_STORAGE_STATE"]
        return settings

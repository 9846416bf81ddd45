from dataclasses import dataclass                 # lightweight record for one <img> read from the DOM
from typing import List, Optional

from harvester.resolver import ContentType


@dataclass
class ImageRecord:                                 # Raw facts about one <img>, before any policy is applied
    src: Optional[str]                            # Rendered source (img.src, already absolute)
    srcset: Optional[str] = None                  # Responsive source set, "url 640w, url 1280w"
    link_href: Optional[str] = None               # href of the closest enclosing <a>, if any
    width: int = 0                                # naturalWidth in px (0 when not loaded yet)


class PageCapability:                              # What the orchestrator needs from a rendered page
    headless: bool = True                         # False = visible browser window

    async def navigate(                           # Load the page; never raises on load failure
        self, url: str, timeout_ms: int, wait_until: str
    ) -> bool: ...

    async def extract_images(                     # Current candidate image URLs for this content type
        self, content_type: ContentType
    ) -> List[str]:
        """Implement in concrete adapters: read the DOM and apply the selection policy."""
        raise NotImplementedError

    async def scroll_by(self, amount: int): ...   # Scroll the window vertically by `amount` px

    async def viewport_height(self) -> int: ...   # window.innerHeight

    async def scroll_height(self) -> int: ...     # document.body.scrollHeight

    async def wait(self, delay_ms: int): ...      # Let the page settle / lazy images load

    async def close(self): ...                    # Release the browser; called exactly once

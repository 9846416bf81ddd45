import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import quote, urlsplit

from harvester.config import PHOTO_SEARCH_URL, PNG_KEYWORDS, PNG_SEARCH_URL


class ContentType(str, Enum):
    URL = "url"
    PNG_SEARCH = "png_search"
    PHOTO_SEARCH = "photo_search"


@dataclass(frozen=True)
class ResolvedTarget:
    target_url: str
    content_type: ContentType
    folder_path: Path


_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")
_WWW_RE = re.compile(r"^www\.")


def _sanitize(text: str) -> str:
    return _NON_ALNUM_RE.sub("_", text)


def _url_folder_name(url: str) -> str:
    """
    "https://www.example.com/gallery/" -> "example_com_gallery_"
    "https://example.com"              -> "example_com_home"
    """
    parts = urlsplit(url)
    host = _WWW_RE.sub("", parts.hostname or "").replace(".", "_")
    path = _sanitize(parts.path)
    if path in ("", "_"):
        path = "_home"
    return f"{host}{path}"


def resolve(user_input: str, downloads_dir: Path) -> ResolvedTarget:
    """
    Maps what the user typed to a page address, a content type and the
    folder the images of this request go to. Pure and deterministic.
    """
    if _SCHEME_RE.match(user_input):
        return ResolvedTarget(
            target_url=user_input,
            content_type=ContentType.URL,
            folder_path=Path(downloads_dir) / _url_folder_name(user_input),
        )

    # encodeURIComponent-compatible escaping
    query = quote(user_input, safe="!~*'()")
    lowered = user_input.lower()

    if any(k in lowered for k in PNG_KEYWORDS):
        content_type = ContentType.PNG_SEARCH
        target_url = PNG_SEARCH_URL.format(query=query)
        label = "logo"
    else:
        content_type = ContentType.PHOTO_SEARCH
        target_url = PHOTO_SEARCH_URL.format(query=query)
        label = "photo"

    folder_name = f"search_{label}_{_sanitize(user_input)}"
    return ResolvedTarget(
        target_url=target_url,
        content_type=content_type,
        folder_path=Path(downloads_dir) / folder_name,
    )

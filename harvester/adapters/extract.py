import re
from typing import Iterable, List, Optional

from harvester.adapters.base import ImageRecord
from harvester.config import IMAGE_LINK_EXTENSIONS, MIN_IMAGE_WIDTH
from harvester.resolver import ContentType

_IMAGE_LINK_RE = re.compile(
    r"\.(%s)(\?.*)?$" % "|".join(IMAGE_LINK_EXTENSIONS), re.IGNORECASE
)


def _is_absolute(url: Optional[str]) -> bool:
    return bool(url) and url.startswith("http")


def largest_from_srcset(srcset: str) -> Optional[str]:
    # "a.jpg 320w, b.jpg 1280w, c.jpg" -> "b.jpg"; entries without a width count as 0
    candidates = []
    for part in srcset.split(","):
        bits = part.strip().split()
        if not bits:
            continue
        width = 0
        if len(bits) > 1:
            match = re.match(r"\d+", bits[1])
            width = int(match.group()) if match else 0
        candidates.append((width, bits[0]))

    if not candidates:
        return None
    # stable sort keeps document order between equal widths
    candidates.sort(key=lambda c: c[0], reverse=True)
    return candidates[0][1]


def select_image_urls(records: Iterable[ImageRecord], content_type: ContentType) -> List[str]:
    """
    Applies the per-content-type selection policy to the raw <img> records.

    Icon searches take every src as-is. Everything else prefers a link that
    points straight at an image file, then the widest srcset entry, then the
    rendered src, and drops thumbnails (<= MIN_IMAGE_WIDTH px) and relative
    or data: addresses.
    """
    out: List[str] = []
    for rec in records:
        if content_type == ContentType.PNG_SEARCH:
            if _is_absolute(rec.src):
                out.append(rec.src)
            continue

        if rec.link_href and _IMAGE_LINK_RE.search(rec.link_href):
            if _is_absolute(rec.link_href):
                out.append(rec.link_href)
            continue

        best = rec.src
        if rec.srcset:
            best = largest_from_srcset(rec.srcset) or best

        if rec.width > MIN_IMAGE_WIDTH and _is_absolute(best):
            out.append(best)
    return out

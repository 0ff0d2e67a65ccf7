"""Reply clean-up and image extraction."""

from __future__ import annotations

import re
from typing import Iterable

from avatar_chat.catalog.directives import parse_image_directives

_MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_ATTACHMENT_RE = re.compile(r"attachment://\S+")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def clean_image_references(text: str) -> str:
    """Strip markdown images and attachment:// tokens; display directives stay."""
    lines: list[str] = []
    for line in text.splitlines():
        cleaned = _ATTACHMENT_RE.sub("", _MARKDOWN_IMAGE_RE.sub("", line)).rstrip()
        if line.strip() and not cleaned.strip():
            continue
        lines.append(cleaned)
    return _EXCESS_NEWLINES_RE.sub("\n\n", "\n".join(lines)).strip()


def extract_images(text: str, queued: Iterable[dict[str, str]] = ()) -> list[dict[str, str]]:
    """Images referenced by directives in *text*, then tool-queued ones, unique by URL."""
    images: list[dict[str, str]] = []
    seen: set[str] = set()
    candidates = [{"url": d.url, "caption": d.label} for d in parse_image_directives(text)]
    candidates += [{"url": img["url"], "caption": img.get("caption", "")} for img in queued]
    for image in candidates:
        if image["url"] in seen:
            continue
        seen.add(image["url"])
        images.append(image)
    return images

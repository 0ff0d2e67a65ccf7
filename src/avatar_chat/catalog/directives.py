"""Image display directives.

Tools emit ``[IMAGE:{url}:{label}]`` lines; the model copies them into its
answer and the channel renderer turns them into something the channel can
show.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

IMAGE_DIRECTIVE_RE = re.compile(r"\[IMAGE:(?P<url>https?://[^\s\]]+):(?P<label>[^\]:\n]*)\]")

_LABEL_FORBIDDEN = re.compile(r"[:\[\]\r\n]+")


@dataclass(frozen=True)
class ImageDirective:
    url: str
    label: str


def sanitize_label(label: str) -> str:
    return " ".join(_LABEL_FORBIDDEN.sub(" ", label).split())


def build_image_directive(url: str, label: str) -> str:
    return f"[IMAGE:{url.strip()}:{sanitize_label(label)}]"


def parse_image_directives(text: str) -> list[ImageDirective]:
    return [
        ImageDirective(url=m.group("url"), label=m.group("label").strip())
        for m in IMAGE_DIRECTIVE_RE.finditer(text)
    ]

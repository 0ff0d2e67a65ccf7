"""Channel rendering of image display directives."""

from __future__ import annotations

from avatar_chat.catalog.directives import IMAGE_DIRECTIVE_RE
from avatar_chat.core.types import Platform


def render_for_platform(text: str, platform: Platform) -> str:
    """Replace ``[IMAGE:url:label]`` directives with channel-appropriate markup.

    The web widget renders markdown images; WhatsApp and the other text
    channels get the bare URL on its own line so the client previews it.
    """
    if platform == Platform.WEB:
        return IMAGE_DIRECTIVE_RE.sub(lambda m: f"![{m.group('label')}]({m.group('url')})", text)

    def _bare(match) -> str:
        before = text[: match.start()]
        after = text[match.end() :]
        lead = "" if not before or before.endswith("\n") else "\n"
        trail = "" if not after or after.startswith("\n") else "\n"
        return f"{lead}{match.group('url')}{trail}"

    return IMAGE_DIRECTIVE_RE.sub(_bare, text)

# stalk/utils/file_icons.py
"""Emoji icons shown next to file messages, keyed by MIME type."""

from typing import Optional

DEFAULT_FILE_ICON = "📎"

_PREFIX_ICONS = (
    ("image/", "🖼️"),
    ("audio/", "🎵"),
    ("video/", "🎥"),
)

_SUBSTRING_ICONS = (
    ("pdf", "📄"),
    ("document", "📝"),
    ("word", "📝"),
    ("spreadsheet", "📊"),
    ("excel", "📊"),
    ("zip", "🗜️"),
    ("rar", "🗜️"),
)


def file_icon_for(mime_type: Optional[str]) -> Optional[str]:
    """Return the icon for a MIME type, or None when there is no file."""
    if not mime_type:
        return None
    normalized = mime_type.lower()
    for prefix, icon in _PREFIX_ICONS:
        if normalized.startswith(prefix):
            return icon
    for fragment, icon in _SUBSTRING_ICONS:
        if fragment in normalized:
            return icon
    return DEFAULT_FILE_ICON

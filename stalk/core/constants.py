# stalk/core/constants.py
"""Application-wide constants."""

BRAND_NAME = "sTalk"

API_TITLE = f"{BRAND_NAME} API"
API_VERSION = "1.0.0"
API_DESCRIPTION = (
    "Realtime 1:1 chat backend: durable messages, live WebSocket delivery, "
    "presence/typing broadcast and web push fanout."
)

# Delivery group prefix; one group per user, shared by all of that user's devices
USER_GROUP_PREFIX = "user:"

# Canonical conversation key separator (sorted handles joined with this)
CONVERSATION_KEY_SEPARATOR = "_"

# Push payload limits
PUSH_BODY_PREVIEW_CHARS = 120
DEFAULT_PUSH_ICON = "/icons/icon-192x192.png"
DEFAULT_PUSH_BADGE = "/icons/badge-72x72.png"

MESSAGE_KIND_TEXT = "text"
MESSAGE_KIND_FILE = "file"

MAX_TEXT_LENGTH = 10000

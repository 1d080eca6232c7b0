"""Pre-send gate for chat posts.

Only plain text (letters, numbers, punctuation, whitespace, emoji) or one of the
enumerated stickers may be posted.
"""

import re
import unicodedata

from playroom.models.dc_models import ChatKindModel

STICKERS = (
    "thumbs_up",
    "clap",
    "laugh",
    "cry",
    "fire",
    "heart",
    "party",
    "good_game",
)

URL_PATTERN = re.compile(r"https?://[^\s]+", re.IGNORECASE)
MARKUP_PATTERN = re.compile(r"<[^>]*>")
BASE64_IMAGE_PATTERN = re.compile(r"^data:image/[a-z]+;base64,", re.IGNORECASE)
FILE_EXTENSION_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif|pdf|docx|zip|mp4|mp3)$", re.IGNORECASE)

# Letters, numbers, punctuation and separators; emoji pictographs are "So"
_ALLOWED_CATEGORIES = ("L", "N", "P", "Z", "So")
# Zero width joiner and variation selectors glue multi-codepoint emoji together
_EMOJI_JOINERS = {"\u200d", "\ufe0e", "\ufe0f"}
# Fitzpatrick skin tone modifiers are category Sk, unlike other modifier symbols
_SKIN_TONES = range(0x1F3FB, 0x1F400)


def _is_allowed_character(char: str) -> bool:
    if char in _EMOJI_JOINERS or ord(char) in _SKIN_TONES:
        return True
    category = unicodedata.category(char)
    return category in _ALLOWED_CATEGORIES or category[0] in _ALLOWED_CATEGORIES


def text_rejection(text: str, max_length: int) -> str | None:
    """Return why `text` may not be posted, or None when it is fine."""
    if not text:
        return "Message is empty."
    if len(text) > max_length:
        return f"Message is longer than {max_length} characters."
    if URL_PATTERN.search(text):
        return "Links are not allowed."
    if MARKUP_PATTERN.search(text):
        return "Markup is not allowed."
    if BASE64_IMAGE_PATTERN.search(text):
        return "Images are not allowed."
    if FILE_EXTENSION_PATTERN.search(text):
        return "Files are not allowed."
    if not all(_is_allowed_character(char) for char in text):
        return "Only text and emoji are allowed."
    return None


def validate_chat_post(kind: ChatKindModel, payload: str, max_length: int) -> tuple[str, str | None]:
    """Normalize a post and check it.

    Returns:
        tuple[str, str | None]: The payload to store and the rejection reason (None when valid)
    """
    if kind == ChatKindModel.sticker:
        if payload not in STICKERS:
            return payload, f"Unknown sticker: {payload!r}."
        return payload, None
    trimmed = payload.strip()
    return trimmed, text_rejection(trimmed, max_length)

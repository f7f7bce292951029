"""Clipboard access."""

from __future__ import annotations

import pyperclip
from loguru import logger


def copy_to_clipboard(text: str) -> bool:
    """Copy ``text``; ``False`` when no clipboard mechanism (pbcopy, xclip, xsel, wl-copy) exists."""

    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as exc:
        logger.debug("clipboard.unavailable error={}", exc)
        return False
    return True

"""Agent response delivery for Telegram chats.

This module handles:
1. Sending agent Markdown in the configured markup mode
2. Falling back to plain text when Telegram rejects the markup
3. Splitting long plain texts to respect Telegram's length limits
4. Rendering intermediate agent steps
"""

from collections.abc import Mapping
import logging
from typing import Any

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import InlineKeyboardMarkup

from botovis_telegram.config import CONFIG
from tg_markup import (
    FALLBACK_TEXT,
    FormattedMessage,
    MarkupMode,
    format_message,
    format_step,
    strip_markdown,
)

LOGGER = logging.getLogger(__name__)


TELEGRAM_MAX_LEN = 4096
# Telegram hard limit is 4096, we use buffer for safety
SAFE_MAX_LENGTH = 4000


def find_split_point(text: str, max_pos: int) -> int:
    """Find optimal split point before max_pos.

    Boundary priority: newline > dot > character

    Args:
        text: Plain text to analyze for split point
        max_pos: Maximum position to split at

    Returns:
        Position to split at (inclusive of boundary character)
    """
    if max_pos >= len(text):
        return len(text)

    # Priority 1: Newline boundary
    split = text.rfind('\n', 0, max_pos)
    if split > max_pos * 0.75:  # Accept if reasonably close (75%+)
        return split + 1  # Include the newline

    # Priority 2: Dot boundary (sentence end)
    split = text.rfind('.', 0, max_pos)
    if split > max_pos * 0.8:  # Accept if reasonably close (80%+)
        return split + 1  # Include the dot

    # Priority 3: Hard split at max_pos
    return max_pos


def split_plain_text(text: str, max_length: int = SAFE_MAX_LENGTH) -> list[str]:
    """Split plain text into chunks of at most max_length characters."""
    chunks: list[str] = []
    pos = 0
    while pos < len(text):
        end = pos + find_split_point(text[pos:], max_length)
        chunk = text[pos:end].strip()
        if chunk:  # Avoid empty chunks
            chunks.append(chunk)
        pos = end
    return chunks or [FALLBACK_TEXT]


async def send_plain_message(
    bot: Bot,
    chat_id: int,
    text: str,
    reply_markup: InlineKeyboardMarkup | None = None,
) -> None:
    """Send text without parse mode, split into several messages if needed.

    The keyboard, if any, is attached to the last chunk.
    """
    chunks = split_plain_text(text)
    for i, chunk in enumerate(chunks):
        markup = reply_markup if i == len(chunks) - 1 else None
        await bot.send_message(chat_id, chunk, parse_mode=None, reply_markup=markup)


async def send_formatted_message(
    bot: Bot, chat_id: int, content: str, mode: MarkupMode | None = None
) -> None:
    """Send agent Markdown, retrying as plain text if Telegram rejects it.

    Args:
        bot: Bot instance
        chat_id: Target chat
        content: Raw Markdown from the agent
        mode: Markup mode (defaults to the configured one)
    """
    formatted = format_message(content, CONFIG.markup_mode if mode is None else mode)

    if len(formatted.text) > TELEGRAM_MAX_LEN:
        LOGGER.info('Response of %d chars sent as plain text chunks', len(formatted.text))
        await send_plain_message(bot, chat_id, strip_markdown(content))
        return

    try:
        await bot.send_message(chat_id, formatted.text, parse_mode=formatted.parse_mode)
    except TelegramBadRequest as e:
        if formatted.parse_mode is None:
            raise
        LOGGER.warning('Telegram rejected %s markup, sending plain text: %s', formatted.mode, e)
        await send_plain_message(bot, chat_id, strip_markdown(content))


async def send_step(
    bot: Bot, chat_id: int, step: Mapping[str, Any], mode: MarkupMode | None = None
) -> None:
    """Send one intermediate agent step; steps without an action are skipped."""
    action = step.get('action') or ''
    if not action:
        return

    mode = CONFIG.markup_mode if mode is None else mode
    text = format_step(step.get('thought') or '', action, step.get('action_params'), mode)
    formatted = FormattedMessage(text, mode)
    try:
        await bot.send_message(chat_id, formatted.text, parse_mode=formatted.parse_mode)
    except TelegramBadRequest as e:
        LOGGER.warning('Failed to send step %s: %s', action, e)
        await bot.send_message(chat_id, f'🔧 {action}', parse_mode=None)

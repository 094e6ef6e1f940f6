"""Markdown to Telegram MarkdownV2 conversion.

MarkdownV2 reserves a set of characters that must be backslash-escaped
anywhere outside code. Code spans are kept verbatim, bold is rewritten to the
single-asterisk syntax, and everything else is escaped.

See: https://core.telegram.org/bots/api#markdownv2-style
"""

from dataclasses import dataclass
import logging
import re

from tg_markup.config import FALLBACK_TEXT, FormattedMessage, MarkupMode
from tg_markup.plain import strip_markdown
from tg_markup.tables import convert_tables
from tg_markup.utils import FENCE_RE, INLINE_CODE_RE, SENTINEL, Placeholders, sanitize

LOGGER = logging.getLogger(__name__)

# The 18 documented characters plus the backslash itself
RESERVED_CHARS = '_*[]()~`>#+-=|{}.!\\'

_RESERVED_RE = re.compile(f'([{re.escape(RESERVED_CHARS)}])')
_BOLD_RE = re.compile(r'\*\*(.+?)\*\*')
# Telegram rejects raw ` and \ inside pre and code entities
_UNSAFE_CODE_RE = re.compile(r'[`\\]')


@dataclass(frozen=True)
class Converted:
    """Successful conversion."""

    text: str


@dataclass(frozen=True)
class ConversionFailed:
    """Conversion that would produce markup Telegram rejects."""

    reason: str


ConversionResult = Converted | ConversionFailed


def escape_markdown_v2(text: str) -> str:
    """Escape all special characters required by Telegram MarkdownV2."""
    return _RESERVED_RE.sub(r'\\\1', text)


def escape_markdown_v2_code(text: str) -> str:
    """Escape text placed inside a MarkdownV2 code or pre entity."""
    return text.replace('\\', '\\\\').replace('`', '\\`')


def to_markdown_v2(text: str) -> ConversionResult:
    """Convert Markdown to Telegram MarkdownV2.

    Args:
        text: Markdown text

    Returns:
        ``Converted`` with the MarkdownV2 text, or ``ConversionFailed`` when the
        result could not be delivered safely
    """
    spans = Placeholders()
    unsafe: list[str] = []
    text = sanitize(text)

    def _protect_block(match: re.Match[str]) -> str:
        if _UNSAFE_CODE_RE.search(match.group(2)):
            unsafe.append(match.group(0))
        return spans.stash(match.group(0))

    def _protect_inline(match: re.Match[str]) -> str:
        if '\\' in match.group(1):
            unsafe.append(match.group(0))
        return spans.stash(match.group(0))

    text = FENCE_RE.sub(_protect_block, text)
    text = INLINE_CODE_RE.sub(_protect_inline, text)
    if unsafe:
        return ConversionFailed(f'{len(unsafe)} code span(s) need escaping')

    # Bold markers must survive the escape pass below
    text = _BOLD_RE.sub(lambda m: spans.stash(f'*{escape_markdown_v2(m.group(1))}*'), text)

    text = escape_markdown_v2(text)
    text = spans.restore(text, escape=escape_markdown_v2)

    if SENTINEL in text:
        return ConversionFailed('unresolved placeholder')
    return Converted(text)


def format_markdown_v2(message: str) -> FormattedMessage:
    """Format an agent response for ``parse_mode='MarkdownV2'``.

    Falls back to plain text (no parse mode) when conversion fails.
    """
    if not message.strip():
        return FormattedMessage(FALLBACK_TEXT, MarkupMode.NONE)

    message = convert_tables(message)

    match to_markdown_v2(message):
        case Converted(text=text) if text.strip():
            return FormattedMessage(text, MarkupMode.MARKDOWN_V2)
        case Converted():
            return FormattedMessage(FALLBACK_TEXT, MarkupMode.NONE)
        case ConversionFailed(reason=reason):
            LOGGER.warning('MarkdownV2 conversion failed, sending plain text: %s', reason)
            return FormattedMessage(strip_markdown(message) or FALLBACK_TEXT, MarkupMode.NONE)

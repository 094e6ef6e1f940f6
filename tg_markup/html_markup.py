"""Markdown to Telegram HTML conversion.

Telegram accepts a small HTML subset (b, i, s, a, code, pre). Agent output is
converted by an ordered chain of regex passes; code spans and tables are
rendered first and kept behind placeholder keys so that later passes never
rewrite their content.
"""

import html
import re

from tg_markup.config import (
    FALLBACK_TEXT,
    HORIZONTAL_RULE,
    FormattedMessage,
    MarkupMode,
)
from tg_markup.tables import TableGrid, render_grid, replace_tables
from tg_markup.utils import FENCE_RE, INLINE_CODE_RE, Placeholders, sanitize

_BOLD_RE = re.compile(r'\*\*(.+?)\*\*', re.DOTALL)
# Not glued to a word char outside, no whitespace just inside
_ITALIC_RE = re.compile(r'(?<![\w*])\*(?![\s*])(.+?)(?<![\s*])\*(?![\w*])')
_STRIKE_RE = re.compile(r'~~(.+?)~~', re.DOTALL)
_LINK_RE = re.compile(r'\[([^\]\n]+)\]\(([^)\s]+)\)')
_HEADER_RE = re.compile(r'^#{1,6}[ \t]+(.+?)[ \t]*$', re.MULTILINE)
_BULLET_RE = re.compile(r'^([ \t]*)[*-][ \t]+', re.MULTILINE)
_ORDERED_RE = re.compile(r'^([ \t]*)(\d+)[.)][ \t]+', re.MULTILINE)
_RULE_RE = re.compile(r'^[ \t]*(?:-{3,}|={3,}|\*{3,})[ \t]*$', re.MULTILINE)
_BLANK_LINES_RE = re.compile(r'\n{3,}')


def escape_html(text: str) -> str:
    """Escape text for Telegram HTML (``&``, ``<``, ``>`` and quotes)."""
    return html.escape(text, quote=True)


def escape_html_code(text: str) -> str:
    """Escape code content: only ``&``, ``<`` and ``>`` are significant there."""
    return html.escape(text, quote=False)


def _protect_code_blocks(text: str, spans: Placeholders) -> str:
    def _replace(match: re.Match[str]) -> str:
        language, code = match.group(1), match.group(2).rstrip()
        attr = f' class="language-{escape_html(language)}"' if language else ''
        return spans.stash(f'<pre{attr}>{escape_html_code(code)}</pre>', plain=code)

    return FENCE_RE.sub(_replace, text)


def _protect_inline_code(text: str, spans: Placeholders) -> str:
    def _replace(match: re.Match[str]) -> str:
        code = match.group(1)
        return spans.stash(f'<code>{escape_html_code(code)}</code>', plain=code)

    return INLINE_CODE_RE.sub(_replace, text)


def _protect_tables(text: str, spans: Placeholders) -> str:
    # Cells are already escaped and may hold inline code keys
    def _visible(cell: str) -> str:
        return spans.plain(html.unescape(cell))

    def _render(grid: TableGrid) -> str:
        grid_text = render_grid(grid, _visible)
        return spans.stash(f'<pre>{escape_html_code(grid_text)}</pre>', plain=grid_text)

    return replace_tables(text, _render)


def markdown_to_html(text: str) -> str:
    """Convert agent Markdown to Telegram-supported HTML.

    Pass order matters: code is protected before escaping, escaping happens
    before any tag is produced, and emphasis rules run from the widest
    (``**``) to the narrowest (``*``).

    Args:
        text: Markdown text

    Returns:
        HTML string safe for ``parse_mode='HTML'``
    """
    spans = Placeholders()
    text = sanitize(text)

    text = _protect_code_blocks(text, spans)
    text = _protect_inline_code(text, spans)
    text = escape_html(text)
    text = _protect_tables(text, spans)
    # A `***` rule would otherwise open a bold span
    text = _RULE_RE.sub(lambda _: spans.stash(HORIZONTAL_RULE), text)

    text = _BOLD_RE.sub(r'<b>\1</b>', text)
    text = _ITALIC_RE.sub(r'<i>\1</i>', text)
    text = _STRIKE_RE.sub(r'<s>\1</s>', text)
    text = _LINK_RE.sub(r'<a href="\2">\1</a>', text)
    text = _HEADER_RE.sub(r'<b>\1</b>', text)
    text = _BULLET_RE.sub(r'\1• ', text)
    text = _ORDERED_RE.sub(r'\1\2. ', text)
    text = _BLANK_LINES_RE.sub('\n\n', text)

    text = spans.restore(text, escape=escape_html)
    return text.strip()


def format_html(message: str) -> FormattedMessage:
    """Format an agent response for ``parse_mode='HTML'``."""
    text = markdown_to_html(message)
    if not text:
        return FormattedMessage(FALLBACK_TEXT, MarkupMode.NONE)
    return FormattedMessage(text, MarkupMode.HTML)

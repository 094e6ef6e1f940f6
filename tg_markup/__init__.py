"""Markdown to Telegram markup formatter.

Converts the Markdown subset an agent emits into Telegram HTML or MarkdownV2,
falling back to plain text whenever formatted delivery is unsafe.

Example:
    >>> from tg_markup import MarkupMode, format_message
    >>> formatted = format_message('**Bold** and `code`', MarkupMode.HTML)
    >>> formatted.text
    '<b>Bold</b> and <code>code</code>'
    >>> formatted.parse_mode
    'HTML'
"""

from tg_markup.config import FALLBACK_TEXT, FormattedMessage, MarkupMode, PendingAction
from tg_markup.html_markup import escape_html, format_html, markdown_to_html
from tg_markup.markdown_v2 import (
    ConversionFailed,
    Converted,
    escape_markdown_v2,
    format_markdown_v2,
    to_markdown_v2,
)
from tg_markup.plain import strip_markdown
from tg_markup.renderers import format_confirmation, format_step
from tg_markup.tables import convert_tables

__version__ = '0.1.0'

__all__ = [
    'FALLBACK_TEXT',
    'ConversionFailed',
    'Converted',
    'FormattedMessage',
    'MarkupMode',
    'PendingAction',
    'convert_tables',
    'escape_html',
    'escape_markdown_v2',
    'format_confirmation',
    'format_html',
    'format_markdown_v2',
    'format_message',
    'format_step',
    'markdown_to_html',
    'strip_markdown',
    'to_markdown_v2',
]


def format_message(message: str, mode: MarkupMode = MarkupMode.HTML) -> FormattedMessage:
    """Format an agent response for the given markup mode.

    ``MarkupMode.NONE`` strips all Markdown.
    """
    match mode:
        case MarkupMode.HTML:
            return format_html(message)
        case MarkupMode.MARKDOWN_V2:
            return format_markdown_v2(message)
        case _:
            text = strip_markdown(message)
            return FormattedMessage(text or FALLBACK_TEXT, MarkupMode.NONE)

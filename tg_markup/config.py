"""Constants and data models for Markdown to Telegram markup conversion."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypedDict


class MarkupMode(StrEnum):
    """Telegram parse mode a formatted text already conforms to.

    Values match the Bot API ``parse_mode`` strings; ``NONE`` means the text
    must be sent without any parse mode.
    """

    NONE = ''
    HTML = 'HTML'
    MARKDOWN_V2 = 'MarkdownV2'


@dataclass(frozen=True)
class FormattedMessage:
    """Rendered text paired with the markup mode it was rendered for.

    Attributes:
        text: Text ready to be sent to Telegram
        mode: Markup dialect the text conforms to
    """

    text: str
    mode: MarkupMode

    @property
    def parse_mode(self) -> str | None:
        """Value for aiogram's ``parse_mode=`` argument (None for plain text)."""
        if self.mode is MarkupMode.NONE:
            return None
        return self.mode.value


class PendingAction(TypedDict):
    """Write action waiting for the user's confirmation.

    Shape produced by the agent: ``params`` values are scalars or nested
    mappings; ``params['table']`` names the affected table when present.
    """

    action: str
    params: dict[str, Any]


# Text sent when the agent produced nothing printable
FALLBACK_TEXT = '...'

# Horizontal rule replacement (box drawing char U+2500)
HORIZONTAL_RULE = '─' * 15

# Table grid separators
TABLE_CELL_SEPARATOR = ' │ '
TABLE_RULE_CHAR = '─'
TABLE_RULE_JOINT = '─┼─'

# Nested parameter values longer than this (as one-line JSON) get their own block
NESTED_INLINE_WIDTH = 60

"""Tests for tg_markup MarkdownV2 conversion and its plain-text fallback."""

import pytest

from tg_markup import (
    FALLBACK_TEXT,
    ConversionFailed,
    Converted,
    MarkupMode,
    escape_markdown_v2,
    format_markdown_v2,
    to_markdown_v2,
)
from tg_markup.markdown_v2 import RESERVED_CHARS

# ============================================================================
# Escaping
# ============================================================================


@pytest.mark.parametrize('char', list(RESERVED_CHARS))
def test_every_reserved_char_is_escaped(char: str) -> None:
    assert escape_markdown_v2(f'a{char}b') == f'a\\{char}b'


def test_plain_punctuation_is_escaped() -> None:
    result = to_markdown_v2('Price: 5.99 (approx)!')
    assert result == Converted('Price: 5\\.99 \\(approx\\)\\!')


def test_no_reserved_char_left_unescaped_outside_code() -> None:
    """Every reserved character outside code carries a backslash."""
    chars = RESERVED_CHARS.replace('`', '')
    result = to_markdown_v2(chars)
    assert isinstance(result, Converted)
    assert result.text == ''.join(f'\\{c}' for c in chars)


# ============================================================================
# Code and bold
# ============================================================================


@pytest.mark.parametrize(
    'markdown',
    [
        '`a_b.c`',
        '```py\nx = a_b(1)\n```',
        '```\n| not | a | table |\n```',
    ],
)
def test_code_is_kept_verbatim(markdown: str) -> None:
    assert to_markdown_v2(markdown) == Converted(markdown)


def test_code_next_to_text() -> None:
    result = to_markdown_v2('Run `make all`.')
    assert result == Converted('Run `make all`\\.')


@pytest.mark.parametrize(
    ('markdown', 'expected'),
    [
        ('a **b.c** d', 'a *b\\.c* d'),
        ('x **`y_z`** w', 'x *`y_z`* w'),
        ('**one** and **two**', '*one* and *two*'),
    ],
)
def test_bold_is_rewritten_to_single_asterisks(markdown: str, expected: str) -> None:
    assert to_markdown_v2(markdown) == Converted(expected)


@pytest.mark.parametrize(
    'markdown',
    [
        'Path `C:\\temp`',
        '```\na`b\n```',
        '```\nprint("\\n")\n```',
    ],
)
def test_code_needing_escapes_fails_conversion(markdown: str) -> None:
    """Backticks and backslashes inside code cannot be sent raw."""
    assert isinstance(to_markdown_v2(markdown), ConversionFailed)


def test_sentinel_bytes_are_dropped() -> None:
    assert to_markdown_v2('a\x000\x00b') == Converted('a0b')


@pytest.mark.parametrize(
    ('markdown', 'expected'),
    [
        ('`a`1`b`', '`a`1`b`'),
        ('**x**1**y**', '*x*1*y*'),
        ('`a` 12 `b` 3 `c`', '`a` 12 `b` 3 `c`'),
    ],
)
def test_digits_between_protected_spans(markdown: str, expected: str) -> None:
    assert to_markdown_v2(markdown) == Converted(expected)
    assert format_markdown_v2(markdown).mode is MarkupMode.MARKDOWN_V2


# ============================================================================
# format_markdown_v2
# ============================================================================


def test_format_markdown_v2_marks_mode() -> None:
    formatted = format_markdown_v2('Done.')
    assert formatted.text == 'Done\\.'
    assert formatted.mode is MarkupMode.MARKDOWN_V2
    assert formatted.parse_mode == 'MarkdownV2'


def test_failed_conversion_falls_back_to_plain_text() -> None:
    formatted = format_markdown_v2('Path `C:\\temp`')
    assert formatted.text == 'Path C:\\temp'
    assert formatted.mode is MarkupMode.NONE
    assert formatted.parse_mode is None


def test_tables_are_sent_as_code_block() -> None:
    formatted = format_markdown_v2('| a | b |\n|---|---|\n| 1 | 2 |')
    assert formatted.mode is MarkupMode.MARKDOWN_V2
    assert formatted.text == '```\na │ b\n──┼──\n1 │ 2\n```'


@pytest.mark.parametrize('message', ['', '  \n', '\x00'])
def test_empty_message_falls_back(message: str) -> None:
    formatted = format_markdown_v2(message)
    assert formatted.text == FALLBACK_TEXT
    assert formatted.mode is MarkupMode.NONE


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

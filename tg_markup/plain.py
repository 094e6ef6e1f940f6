"""Markdown stripping for plain-text delivery."""

import re

from tg_markup.utils import FENCE_RE, INLINE_CODE_RE

_ESCAPED_RE = re.compile(r'\\([_*\[\]()~`>#+\-=|{}.!\\])')
_BULLET_RE = re.compile(r'^([ \t]*)[*-][ \t]+', re.MULTILINE)
_EMPHASIS_RE = re.compile(r'\*{1,2}(.+?)\*{1,2}')
_STRIKE_RE = re.compile(r'~~(.+?)~~')
_LINK_RE = re.compile(r'\[([^\]\n]+)\]\(([^)\s]+)\)')
_HEADER_RE = re.compile(r'^#{1,6}[ \t]+', re.MULTILINE)
_TABLE_SEPARATOR_RE = re.compile(r'^[ \t]*\|[-:| \t]*-[-:| \t]*\|?[ \t]*$\n?', re.MULTILINE)
_RULE_RE = re.compile(r'^[ \t]*(?:[-=*_─][ \t]*){3,}$', re.MULTILINE)
_BLANK_LINES_RE = re.compile(r'\n{3,}')


def strip_markdown(text: str) -> str:
    """Strip Markdown formatting, keeping the readable text.

    Used whenever formatted delivery is not possible; never raises.

    Args:
        text: Markdown (or already escaped MarkdownV2) text

    Returns:
        Plain text without code fences, emphasis markers or table pipes
    """
    text = text.replace('\r\n', '\n')
    text = _ESCAPED_RE.sub(r'\1', text)
    text = FENCE_RE.sub(lambda m: m.group(2).rstrip(), text)
    text = text.replace('```', '')
    text = INLINE_CODE_RE.sub(r'\1', text)
    # Rules first: *** would otherwise read as emphasis, - - - as a bullet
    text = _RULE_RE.sub('', text)
    text = _TABLE_SEPARATOR_RE.sub('', text)
    text = _BULLET_RE.sub(r'\1• ', text)
    text = _EMPHASIS_RE.sub(r'\1', text)
    text = _STRIKE_RE.sub(r'\1', text)
    text = _LINK_RE.sub(r'\1 (\2)', text)
    text = _HEADER_RE.sub('', text)
    text = text.replace('|', ' ')
    text = _BLANK_LINES_RE.sub('\n\n', text)
    return text.strip()

"""Shared helpers for the formatting passes."""

from collections.abc import Callable
import re

# Reserved control bytes: stripped from input, so they only ever appear in keys.
# Distinct open and close bytes keep two adjacent keys from forming a third.
SENTINEL = '\x00'
SENTINEL_CLOSE = '\x01'

# ```lang\ncode``` (language optional); non-greedy, unterminated fences never match
FENCE_RE = re.compile(r'```(?:([^\s`]+)?[ \t]*\n)?(.*?)```', re.DOTALL)

# `code` on a single line, no embedded backtick
INLINE_CODE_RE = re.compile(r'`([^`\n]+)`')


def _key_pattern(escape: Callable[[str], str] | None = None) -> re.Pattern[str]:
    opening = escape(SENTINEL) if escape else SENTINEL
    closing = escape(SENTINEL_CLOSE) if escape else SENTINEL_CLOSE
    return re.compile(f'{re.escape(opening)}\\d+{re.escape(closing)}')


_KEY_RE = _key_pattern()


def sanitize(text: str) -> str:
    """Normalize line endings and drop sentinel bytes from user text."""
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    return text.replace(SENTINEL, '').replace(SENTINEL_CLOSE, '')


class Placeholders:
    """Pass-local table of protected spans.

    Each protected span is replaced by a unique key built from the reserved
    sentinel byte. The table lives for one formatting call only: create it,
    stash spans, run the text passes, then ``restore``.

    Example:
        >>> spans = Placeholders()
        >>> text = spans.stash('<code>x</code>', plain='x') + ' and more'
        >>> spans.restore(text)
        '<code>x</code> and more'
    """

    def __init__(self) -> None:
        self._rendered: dict[str, str] = {}
        self._plain: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._rendered)

    def stash(self, rendered: str, plain: str | None = None) -> str:
        """Remember a span and return the key that stands in for it.

        Args:
            rendered: Final replacement for the key
            plain: Visible text of the span (defaults to ``rendered``)

        Returns:
            Key to put into the text instead of the span
        """
        key = f'{SENTINEL}{len(self._rendered)}{SENTINEL_CLOSE}'
        self._rendered[key] = rendered
        self._plain[key] = rendered if plain is None else plain
        return key

    def plain(self, text: str) -> str:
        """Replace keys in ``text`` by the visible text of their spans."""
        return _KEY_RE.sub(lambda m: self._plain.get(m.group(0), m.group(0)), text)

    def restore(self, text: str, escape: Callable[[str], str] | None = None) -> str:
        """Put the rendered spans back.

        Keys are looked up in the form ``escape`` gives them, since the text
        around them went through that escaping. A rendered span may itself
        contain keys of spans stashed before it; those are restored too.
        Unknown keys are left in place.

        Args:
            text: Text containing keys
            escape: Escaping the text went through after the keys were placed

        Returns:
            Text with every known key replaced
        """
        pattern = _key_pattern(escape)
        needles = {(escape(key) if escape else key): key for key in self._rendered}

        def _replace(match: re.Match[str]) -> str:
            key = needles.get(match.group(0))
            if key is None:
                return match.group(0)
            return pattern.sub(_replace, self._rendered[key])

        return pattern.sub(_replace, text)

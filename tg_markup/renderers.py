"""Renderers for agent confirmation prompts and intermediate steps.

Both render into whichever markup dialect is active, using the same escaping
primitives as the message formatters.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import json
from typing import Any

from tg_markup.config import NESTED_INLINE_WIDTH, MarkupMode, PendingAction
from tg_markup.html_markup import escape_html, escape_html_code
from tg_markup.markdown_v2 import escape_markdown_v2, escape_markdown_v2_code


@dataclass(frozen=True)
class Dialect:
    """Escaping and inline markup primitives of one markup mode."""

    mode: MarkupMode
    escape: Callable[[str], str]
    bold: Callable[[str], str]
    italic: Callable[[str], str]
    code: Callable[[str], str]


HTML_DIALECT = Dialect(
    mode=MarkupMode.HTML,
    escape=escape_html,
    bold=lambda text: f'<b>{escape_html(text)}</b>',
    italic=lambda text: f'<i>{escape_html(text)}</i>',
    code=lambda text: f'<code>{escape_html_code(text)}</code>',
)

MARKDOWN_V2_DIALECT = Dialect(
    mode=MarkupMode.MARKDOWN_V2,
    escape=escape_markdown_v2,
    bold=lambda text: f'*{escape_markdown_v2(text)}*',
    italic=lambda text: f'_{escape_markdown_v2(text)}_',
    code=lambda text: f'`{escape_markdown_v2_code(text)}`',
)

PLAIN_DIALECT = Dialect(
    mode=MarkupMode.NONE,
    escape=str,
    bold=str,
    italic=str,
    code=str,
)

_DIALECTS = {d.mode: d for d in (HTML_DIALECT, MARKDOWN_V2_DIALECT, PLAIN_DIALECT)}


def dialect_for(mode: MarkupMode) -> Dialect:
    return _DIALECTS[mode]


def _one_line(value: Any) -> str:
    """Render a parameter value on a single line."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def flatten_params(
    params: Mapping[str, Any], depth: int = 0
) -> list[tuple[int, str, str | None]]:
    """Flatten a (possibly nested) parameter map into indented lines.

    Nested mappings short enough to read on one line are inlined as JSON;
    longer ones get a header line with no value followed by their own
    entries one level deeper.

    Args:
        params: Parameter map
        depth: Indentation level of ``params`` entries

    Returns:
        ``(depth, key, value)`` tuples; ``value`` is None for block headers
    """
    lines: list[tuple[int, str, str | None]] = []
    for key, value in params.items():
        if isinstance(value, Mapping) and value:
            compact = _one_line(value)
            if len(compact) <= NESTED_INLINE_WIDTH:
                lines.append((depth, str(key), compact))
            else:
                lines.append((depth, str(key), None))
                lines.extend(flatten_params(value, depth + 1))
        else:
            lines.append((depth, str(key), _one_line(value)))
    return lines


def _render_param_lines(params: Mapping[str, Any], dialect: Dialect, depth: int) -> list[str]:
    rendered = []
    for level, key, value in flatten_params(params, depth):
        indent = '   ' * level
        item = f'{key}:' if value is None else f'{key}: {value}'
        rendered.append(f'{indent}• {dialect.escape(item)}')
    return rendered


def format_confirmation(
    message: str,
    pending_action: PendingAction | None,
    mode: MarkupMode = MarkupMode.HTML,
) -> str:
    """Render a write-action confirmation prompt.

    Args:
        message: Agent's description of the action
        pending_action: Action awaiting confirmation, if known
        mode: Markup mode the result is sent with

    Returns:
        Text in ``mode`` markup
    """
    dialect = dialect_for(mode)
    lines = [f'⚠️ {dialect.bold("Write operation")}', '']

    if pending_action:
        action = pending_action.get('action') or 'unknown'
        params = pending_action.get('params') or {}
        table = params.get('table', '')
        lines.append(dialect.escape(f'🔧 {action}: {table}'))
        lines.extend(
            _render_param_lines(
                {k: v for k, v in params.items() if k != 'table'}, dialect, depth=1
            )
        )
        lines.append('')

    if message:
        lines.append(dialect.escape(message))

    return '\n'.join(lines).strip()


def format_step(
    thought: str,
    action: str,
    params: Mapping[str, Any] | None = None,
    mode: MarkupMode = MarkupMode.HTML,
) -> str:
    """Render one intermediate reasoning step (thought and tool call)."""
    dialect = dialect_for(mode)
    parts = []

    if thought:
        parts.append(f'💭 {dialect.italic(thought)}')

    if action:
        parts.append(f'🔧 {dialect.code(action)}')
        if params:
            parts.extend(_render_param_lines(params, dialect, depth=1))

    return '\n'.join(parts)

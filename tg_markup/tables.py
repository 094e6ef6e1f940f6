"""Markdown pipe tables rendered as monospace grids.

Telegram has no table markup, so a table such as::

    | Name | Price |
    |------|-------|
    | iPhone | 999 |

is re-laid out with padded columns and sent inside a preformatted block::

    Name   │ Price
    ───────┼──────
    iPhone │ 999
"""

from collections.abc import Callable
import re

from tg_markup.config import TABLE_CELL_SEPARATOR, TABLE_RULE_CHAR, TABLE_RULE_JOINT
from tg_markup.utils import INLINE_CODE_RE

# Header row, separator row, then one or more data rows; every line is |-delimited
TABLE_RE = re.compile(
    r'^[ \t]*\|.+\|[ \t]*\n'
    r'[ \t]*\|[-:| \t]+\|[ \t]*\n'
    r'(?:[ \t]*\|.+\|[ \t]*(?:\n|$))+',
    re.MULTILINE,
)

_SEPARATOR_RE = re.compile(r'^[-:| \t]+$')

# A row of cells, or None for a separator row
TableGrid = list[list[str] | None]


def _split_row(line: str) -> list[str]:
    """Split ``| a | b |`` into ``['a', 'b']``."""
    line = line.strip()
    if line.startswith('|'):
        line = line[1:]
    if line.endswith('|'):
        line = line[:-1]
    return [cell.strip() for cell in line.split('|')]


def parse_table(block: str) -> TableGrid | None:
    """Parse a matched table block into a grid.

    Args:
        block: Text matched by ``TABLE_RE``

    Returns:
        Grid rows (separator rows as None), or None when fewer than
        two rows were found
    """
    grid: TableGrid = []
    for line in block.strip().split('\n'):
        content = line.strip().strip('|')
        if _SEPARATOR_RE.match(content) and '-' in content:
            grid.append(None)
        else:
            grid.append(_split_row(line))

    if len(grid) < 2 or not any(row is not None for row in grid):
        return None
    return grid


def render_grid(grid: TableGrid, visible: Callable[[str], str] = str) -> str:
    """Lay out a grid as padded monospace lines.

    The first data row fixes the column count; shorter rows are padded with
    empty cells, longer ones truncated.

    Args:
        grid: Parsed table grid
        visible: Maps a raw cell to the text actually displayed

    Returns:
        Grid lines joined with newlines (no surrounding block markup)
    """
    rows = [None if row is None else [visible(cell) for cell in row] for row in grid]
    header = next(row for row in rows if row is not None)
    col_count = len(header)

    widths = [0] * col_count
    for row in rows:
        if row is None:
            continue
        for j, cell in enumerate(row[:col_count]):
            widths[j] = max(widths[j], len(cell))

    lines = []
    for row in rows:
        if row is None:
            lines.append(TABLE_RULE_JOINT.join(TABLE_RULE_CHAR * w for w in widths))
            continue
        cells = row[:col_count] + [''] * (col_count - len(row))
        lines.append(
            TABLE_CELL_SEPARATOR.join(cell.ljust(w) for cell, w in zip(cells, widths))
        )
    return '\n'.join(lines)


def replace_tables(text: str, render: Callable[[TableGrid], str]) -> str:
    """Replace every parsable table block in ``text`` with ``render(grid)``.

    Blocks that do not parse are left untouched.
    """

    def _replace(match: re.Match[str]) -> str:
        block = match.group(0)
        grid = parse_table(block)
        if grid is None:
            return block
        trailing = '\n' if block.endswith('\n') else ''
        return render(grid) + trailing

    return TABLE_RE.sub(_replace, text)


def _strip_inline_code(cell: str) -> str:
    return INLINE_CODE_RE.sub(r'\1', cell)


def convert_tables(text: str) -> str:
    """Convert Markdown tables to monospace grids inside ``` fences."""
    return replace_tables(
        text, lambda grid: f'```\n{render_grid(grid, _strip_inline_code)}\n```'
    )

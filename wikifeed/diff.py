"""
Line based diffs of page revisions, formatted for feed items.
"""

import difflib
from collections.abc import Iterator, Sequence

from .utils import hsc


def unified_diff(old: Sequence[str], new: Sequence[str]) -> str:
    """
    Plain text unified diff. The result is not escaped.
    """
    return '\n'.join(difflib.unified_diff(old, new, lineterm='', n=2))


def _row(
    left_marker: str, left: str | None, right_marker: str, right: str | None
) -> str:
    def cells(marker: str, line: str | None, css: str) -> str:
        if line is None:
            return '<td colspan="2"></td>'
        return f'<td>{marker}</td><td class="{css}">{hsc(line)}</td>'

    return (
        '<tr>'
        + cells(left_marker, left, 'diff-deletedline' if left_marker else 'diff-context')
        + cells(right_marker, right, 'diff-addedline' if right_marker else 'diff-context')
        + '</tr>'
    )


def _table_rows(old: Sequence[str], new: Sequence[str]) -> Iterator[str]:
    matcher = difflib.SequenceMatcher(None, old, new, autojunk=False)
    for group in matcher.get_grouped_opcodes(2):
        first = group[0]
        yield (
            f'<tr><td class="diff-blockheader" colspan="2">Line {first[1] + 1}:</td>'
            f'<td class="diff-blockheader" colspan="2">Line {first[3] + 1}:</td></tr>'
        )
        for tag, i1, i2, j1, j2 in group:
            if tag == 'equal':
                for left, right in zip(old[i1:i2], new[j1:j2]):
                    yield _row('', left, '', right)
                continue
            deleted = list(old[i1:i2]) if tag in ('replace', 'delete') else []
            added = list(new[j1:j2]) if tag in ('replace', 'insert') else []
            for index in range(max(len(deleted), len(added))):
                left = deleted[index] if index < len(deleted) else None
                right = added[index] if index < len(added) else None
                yield _row(
                    '-' if left is not None else '',
                    left,
                    '+' if right is not None else '',
                    right,
                )


def table_diff(old: Sequence[str], new: Sequence[str]) -> str:
    """
    Four column HTML table rows (marker and text for each side).
    All line content is escaped, so the result is safe markup.
    """
    return ''.join(_table_rows(old, new))

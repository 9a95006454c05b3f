"""
Line diff between generated and clinician-edited draft content.

Content is rendered to text (format_content_for_diff) and compared line by
line with a longest-common-subsequence walk. The LCS table is quadratic in
memory, so inputs above DRAFT_DIFF_MAX_LINES / DRAFT_DIFF_MAX_CHARS skip it
entirely and return a fallback result for side-by-side rendering.
"""
from array import array
from dataclasses import dataclass, field
from typing import List, Optional

from django.conf import settings

from apps.core.observability import metrics, get_sanitized_logger

logger = get_sanitized_logger(__name__)

DEFAULT_MAX_LINES = 4000
DEFAULT_MAX_CHARS = 200_000

ADDED = 'added'
REMOVED = 'removed'
UNCHANGED = 'unchanged'


@dataclass
class DiffLine:
    type: str
    text: str


@dataclass
class DiffResult:
    """
    fallback=True means the input exceeded the size ceiling: lines is empty
    and the caller should render original_text and edited_text side by side.
    """
    lines: List[DiffLine] = field(default_factory=list)
    added_count: int = 0
    removed_count: int = 0
    unchanged_count: int = 0
    has_changes: bool = False
    fallback: bool = False
    reason: Optional[str] = None
    original_text: str = ''
    edited_text: str = ''


def _format_value(value, indent):
    pad = '  ' * indent
    if isinstance(value, dict):
        lines = []
        for key, item in value.items():
            if isinstance(item, (dict, list)):
                lines.append(f'{pad}{key}:')
                lines.extend(_format_value(item, indent + 1))
            else:
                lines.append(f'{pad}{key}: {_scalar(item)}')
        return lines
    if isinstance(value, list):
        lines = []
        for item in value:
            if isinstance(item, (dict, list)):
                lines.append(f'{pad}-')
                lines.extend(_format_value(item, indent + 1))
            else:
                lines.append(f'{pad}- {_scalar(item)}')
        return lines
    return [f'{pad}{line}' for line in _scalar(value).splitlines()]


def _scalar(value):
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'yes' if value else 'no'
    return str(value)


def format_content_for_diff(content):
    """Render draft content (str, dict or list) as diffable text."""
    if content is None:
        return ''
    if isinstance(content, str):
        return content
    return '\n'.join(_format_value(content, 0))


def get_diff_limits():
    return (
        getattr(settings, 'DRAFT_DIFF_MAX_LINES', DEFAULT_MAX_LINES),
        getattr(settings, 'DRAFT_DIFF_MAX_CHARS', DEFAULT_MAX_CHARS),
    )


def is_diff_too_large(original_text, edited_text):
    """
    Return a reason string when the combined input exceeds the ceiling, else None.
    """
    max_lines, max_chars = get_diff_limits()
    total_chars = len(original_text) + len(edited_text)
    if total_chars > max_chars:
        return f'Combined content of {total_chars} characters exceeds the {max_chars} character diff limit.'
    total_lines = len(original_text.splitlines()) + len(edited_text.splitlines())
    if total_lines > max_lines:
        return f'Combined content of {total_lines} lines exceeds the {max_lines} line diff limit.'
    return None


def _lcs_table(a, b):
    """
    Suffix LCS lengths: table[i][j] is the LCS length of a[i:] and b[j:].
    """
    n, m = len(a), len(b)
    table = [array('I', [0]) * (m + 1) for _ in range(n + 1)]
    for i in range(n - 1, -1, -1):
        row, below, ai = table[i], table[i + 1], a[i]
        for j in range(m - 1, -1, -1):
            if ai == b[j]:
                row[j] = below[j + 1] + 1
            else:
                row[j] = max(below[j], row[j + 1])
    return table


def _diff_lines(a, b):
    # Common prefix and suffix never enter the LCS table
    start = 0
    while start < len(a) and start < len(b) and a[start] == b[start]:
        start += 1
    end_a, end_b = len(a), len(b)
    while end_a > start and end_b > start and a[end_a - 1] == b[end_b - 1]:
        end_a -= 1
        end_b -= 1

    lines = [DiffLine(UNCHANGED, text) for text in a[:start]]

    mid_a, mid_b = a[start:end_a], b[start:end_b]
    if mid_a and mid_b:
        table = _lcs_table(mid_a, mid_b)
        i = j = 0
        while i < len(mid_a) and j < len(mid_b):
            if mid_a[i] == mid_b[j]:
                lines.append(DiffLine(UNCHANGED, mid_a[i]))
                i += 1
                j += 1
            elif table[i + 1][j] >= table[i][j + 1]:
                lines.append(DiffLine(REMOVED, mid_a[i]))
                i += 1
            else:
                lines.append(DiffLine(ADDED, mid_b[j]))
                j += 1
        lines.extend(DiffLine(REMOVED, text) for text in mid_a[i:])
        lines.extend(DiffLine(ADDED, text) for text in mid_b[j:])
    else:
        lines.extend(DiffLine(REMOVED, text) for text in mid_a)
        lines.extend(DiffLine(ADDED, text) for text in mid_b)

    lines.extend(DiffLine(UNCHANGED, text) for text in a[end_a:])
    return lines


def compute_diff(original_content, edited_content):
    """
    Diff generated content against the clinician's edit.

    Never raises for large input: above the ceiling a DiffResult with
    fallback=True is returned instead.
    """
    original_text = format_content_for_diff(original_content)
    edited_text = format_content_for_diff(edited_content)

    reason = is_diff_too_large(original_text, edited_text)
    if reason:
        metrics.draft_diff_fallback_total.inc()
        logger.info(
            'Draft diff skipped: input too large',
            extra={
                'event': 'draft_diff_fallback',
                'original_length': len(original_text),
                'edited_length': len(edited_text),
            }
        )
        return DiffResult(
            has_changes=original_text != edited_text,
            fallback=True,
            reason=reason,
            original_text=original_text,
            edited_text=edited_text,
        )

    lines = _diff_lines(original_text.splitlines(), edited_text.splitlines())
    added = sum(1 for line in lines if line.type == ADDED)
    removed = sum(1 for line in lines if line.type == REMOVED)
    return DiffResult(
        lines=lines,
        added_count=added,
        removed_count=removed,
        unchanged_count=len(lines) - added - removed,
        has_changes=bool(added or removed),
        original_text=original_text,
        edited_text=edited_text,
    )

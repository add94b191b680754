from __future__ import annotations

"""
Снимок текста буфера с курсором и ограниченным поиском.

Модуль не зависит от Qt: CodeEditor создаёт TextBuffer из документа,
эвристики отступов работают только с ним, а накопленные правки
потом применяются обратно к QTextDocument.
"""

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import List, Optional, Tuple

TAB_WIDTH = 8

STRING = "string"
COMMENT = "comment"

_QUOTES = "'\"`"


@dataclass(frozen=True)
class BufferEdit:
    """One replacement made on the snapshot, in application order."""

    start: int
    removed: int
    inserted: str
    point: int

    @property
    def is_noop(self) -> bool:
        return self.removed == 0 and not self.inserted


def _scan_literals(text: str, start: int = 0) -> List[Tuple[int, int, str]]:
    """Return (start, end, kind) spans of PHP strings and comments from `start` on."""
    spans: List[Tuple[int, int, str]] = []
    n = len(text)
    i = start
    while i < n:
        ch = text[i]
        if ch in _QUOTES:
            j = i + 1
            while j < n:
                if text[j] == "\\":
                    j += 2
                    continue
                if text[j] == ch:
                    j += 1
                    break
                j += 1
            end = min(j, n)
            spans.append((i, end, STRING))
            i = end
        elif ch == "#" or text.startswith("//", i):
            end = text.find("\n", i)
            end = n if end == -1 else end
            spans.append((i, end, COMMENT))
            i = end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            end = n if end == -1 else end + 2
            spans.append((i, end, COMMENT))
            i = end
        else:
            i += 1
    return spans


class TextBuffer:
    """In-memory text with a point, bounded searches and a literal classifier."""

    def __init__(self, text: str, point: int = 0) -> None:
        self.text = text
        self.point = max(0, min(point, len(text)))
        self.edits: List[BufferEdit] = []
        self._spans: Optional[List[Tuple[int, int, str]]] = None
        self._span_starts: List[int] = []
        self._scan_from = 0

    # Lines

    def line_start(self, pos: int) -> int:
        return self.text.rfind("\n", 0, pos) + 1

    def line_end(self, pos: int) -> int:
        end = self.text.find("\n", pos)
        return len(self.text) if end == -1 else end

    def line_text(self, pos: int) -> str:
        return self.text[self.line_start(pos) : self.line_end(pos)]

    def indentation_end(self, pos: int) -> int:
        """Position of the first non-blank character of the line (or its end)."""
        i = self.line_start(pos)
        end = self.line_end(pos)
        while i < end and self.text[i] in " \t":
            i += 1
        return i

    def indentation(self, pos: int) -> int:
        """Column of the first non-blank character on the line holding pos."""
        start = self.line_start(pos)
        return len(self.text[start : self.indentation_end(pos)].expandtabs(TAB_WIDTH))

    # Literals

    def limit_literal_scan(self, pos: int) -> None:
        """Classify literals only from the line holding pos onwards.

        Текст до этой строки считается кодом: так разбор строк и
        комментариев не проходит весь документ на каждое нажатие.
        """
        start = self.line_start(max(0, pos))
        if start != self._scan_from:
            self._scan_from = start
            self._spans = None

    def literal_at(self, pos: int) -> Optional[str]:
        """Return STRING or COMMENT if the character at pos is inside a literal."""
        if pos < self._scan_from:
            return None
        if self._spans is None:
            self._spans = _scan_literals(self.text, self._scan_from)
            self._span_starts = [start for start, _, _ in self._spans]
        index = bisect_right(self._span_starts, pos) - 1
        if index < 0:
            return None
        start, end, kind = self._spans[index]
        return kind if start <= pos < end else None

    def in_literal(self, pos: int) -> bool:
        return self.literal_at(pos) is not None

    def skip_syntactic_ws_backward(self, pos: int) -> int:
        """Move back over whitespace and comments; return the new position."""
        while pos > 0 and (self.text[pos - 1].isspace() or self.literal_at(pos - 1) == COMMENT):
            pos -= 1
        return pos

    def enclosing_brace(self, pos: int, limit: int = 0) -> Optional[int]:
        """Position of the innermost `{` still open at pos, or None.

        Braces before `limit` are not looked at.
        """
        depth = 0
        for i in range(pos - 1, max(limit, 0) - 1, -1):
            ch = self.text[i]
            if ch not in "{}" or self.in_literal(i):
                continue
            if ch == "}":
                depth += 1
            elif depth == 0:
                return i
            else:
                depth -= 1
        return None

    # Searching

    def search_backward(
        self,
        pattern: re.Pattern[str],
        limit: int,
        start: Optional[int] = None,
        skip_literals: bool = False,
    ) -> Optional[re.Match[str]]:
        """Find the match starting closest before `start` and at or after `limit`.

        The match has to end at or before `start`. Nothing before `limit`
        is looked at; an inverted range simply yields None.
        """
        start = self.point if start is None else start
        for pos in range(start - 1, max(limit, 0) - 1, -1):
            match = pattern.match(self.text, pos, start)
            if match is None:
                continue
            if skip_literals and self.in_literal(pos):
                continue
            return match
        return None

    # Editing

    def insert(self, text: str) -> BufferEdit:
        edit = BufferEdit(self.point, 0, text, self.point + len(text))
        self._replace(edit)
        return edit

    def shift_indentation(self, column: int) -> BufferEdit:
        """Replace the cursor line's leading whitespace with `column` spaces.

        Курсор остаётся привязанным к набранному тексту; на пустой строке
        он переходит в конец строки.
        """
        start = self.line_start(self.point)
        ws_end = self.indentation_end(self.point)
        blank = ws_end == self.line_end(self.point)
        new = " " * max(0, column)
        old_width = ws_end - start
        if self.text[start:ws_end] == new:
            # Отступ уже верный: сдвиг нулевой ширины
            point = self.point if self.point >= ws_end else ws_end
            edit = BufferEdit(start, 0, "", point)
        else:
            if self.point >= ws_end and not blank:
                point = self.point + len(new) - old_width
            else:
                point = start + len(new)
            edit = BufferEdit(start, old_width, new, point)
        self._replace(edit)
        return edit

    def _replace(self, edit: BufferEdit) -> None:
        if not edit.is_noop:
            self.text = self.text[: edit.start] + edit.inserted + self.text[edit.start + edit.removed :]
            self._spans = None
        self.point = edit.point
        self.edits.append(edit)

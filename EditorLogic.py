from __future__ import annotations

"""
Обычные (не XHP) правила отступов PHP-кода.

Эти функции не зависят от Qt и работают с TextBuffer. XhpIndent
передаёт им управление, когда строка не относится к разметке.
"""

import logging
from typing import TYPE_CHECKING, Final

from TextBuffer import TextBuffer

if TYPE_CHECKING:
    from XhpIndent import IndentConfig

logger = logging.getLogger(__name__)

OPENERS: Final[str] = "{(["
CLOSERS: Final[tuple] = ("}", ")", "]")
HOST_ELECTRIC_CHARS: Final[str] = ";,{}:"


def host_indent_column(buffer: TextBuffer, step: int) -> int:
    """Вернуть отступ текущей строки по скобкам.

    Берём отступ предыдущей строки с кодом (комментарии пропускаются),
    добавляем шаг после открывающей скобки и убираем шаг, если строка
    начинается с закрывающей.
    """
    start = buffer.line_start(buffer.point)
    end = buffer.skip_syntactic_ws_backward(start)
    if end == 0:
        return 0
    column = buffer.indentation(end - 1)
    if buffer.text[end - 1] in OPENERS:
        column += step
    if buffer.line_text(start).lstrip().startswith(CLOSERS):
        column -= step
    return max(0, column)


def host_indent_line(buffer: TextBuffer, config: IndentConfig) -> None:
    column = host_indent_column(buffer, config.indent_step)
    buffer.shift_indentation(column)


def host_electric_insert(buffer: TextBuffer, char: str, config: IndentConfig, electric_mode: bool = True) -> None:
    """Insert `char` and, in electric mode, reindent the line by brace rules."""
    buffer.insert(char)
    if electric_mode and char in HOST_ELECTRIC_CHARS:
        host_indent_line(buffer, config)
        if config.debug:
            logger.debug("host electric %r reindented line at %d", char, buffer.line_start(buffer.point))

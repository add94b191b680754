from __future__ import annotations

"""
Отступы для XHP-разметки внутри PHP/Hack кода.

Полного разбора здесь нет: от начала текущей строки ищем назад
ближайшее место, где открывается разметка, и по нескольким шаблонам
уточняем отступ. Если разметки рядом нет, работает обычный отступ
PHP из EditorLogic.
"""

import enum
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Final, FrozenSet, Mapping, Optional, Tuple

from EditorLogic import host_electric_insert, host_indent_line
from TextBuffer import TextBuffer

logger = logging.getLogger(__name__)

STATEMENT_TERMINATOR_RE: Final = re.compile(";")
MARKUP_OPEN_RE: Final = re.compile(r"(?:return +|^ *|==> *|\? *|= *|\( *)<[^<\\]", re.MULTILINE)
MARKUP_CLOSED_LINE_RE: Final = re.compile(r"</|(?:/>|-->)\s*$")
MARKUP_STATEMENT_END_RE: Final = re.compile(r"(?:</[^<>]*>|/>)\s*;$")
INLINE_MARKUP_STATEMENT_RE: Final = re.compile(r"(?:return +|==> *|\? *|= *|\( *)<[^<\\]")
CASE_LABEL_RE: Final = re.compile(r"\s*(?:case\b[^:]*|default\s*|[A-Za-z_]\w*\s*):(?!:)")


class XhpIndentError(Exception):
    """Raised on invalid indentation settings or an internal tag mix-up."""


@dataclass(frozen=True)
class IndentConfig:
    debug: bool = False
    max_backtrack: int = 1000
    indent_step: int = 2
    # Пропускаем "<?php" / "<?hh" в начале файла
    prefix_offset: int = 5

    @classmethod
    def from_settings(cls, settings: Mapping[str, object]) -> IndentConfig:
        """Build a config from the editor's JSON settings dict."""
        values: Dict[str, object] = {"debug": bool(settings.get("xhp_debug", False))}
        for key, name in (("indent_step", "indent_step"), ("xhp_max_backtrack", "max_backtrack")):
            if key not in settings:
                continue
            value = settings[key]
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise XhpIndentError(f"{key} must be a positive integer, got {value!r}")
            values[name] = value
        return cls(**values)


DEFAULT_CONFIG: Final = IndentConfig()


class ContextTag(enum.Enum):
    IN_ATTRIBUTE = "in-attribute"
    IN_MULTILINE_PHP_BLOCK = "in-multiline-php-block"
    IN_CLOSING_ELEMENT = "in-closing-element"
    IN_CLOSING_STATEMENT = "in-closing-statement"
    IN_FIRST_STATEMENT_AFTER_MARKUP = "in-first-statement-after-markup"
    PHP_IN_XHP = "php-in-xhp"
    IN_XHP = "in-xhp"
    IN_PHP = "in-php"


@dataclass(frozen=True)
class ContextResult:
    indent: Optional[int]
    tags: FrozenSet[ContextTag]
    anchor: Optional[int] = None

    @property
    def applicable(self) -> bool:
        return self.indent is not None

    @property
    def in_xhp(self) -> bool:
        return ContextTag.IN_XHP in self.tags

    def describe(self) -> str:
        return ", ".join(sorted(tag.value for tag in self.tags))


@dataclass(frozen=True)
class IndentRule:
    """One row of the refinement table: predicate on the cursor line."""

    name: str
    predicate: Callable[[str], bool]
    delta: int = 0
    tag: Optional[ContextTag] = None
    defer: bool = False

    def matches(self, line: str) -> bool:
        return bool(self.predicate(line))

    def indent(self, base: int, step: int) -> Optional[int]:
        if self.defer:
            return None
        return max(0, base + self.delta * step)


def _starts_attribute(line: str) -> bool:
    return re.match(r"[A-Za-z_]", line) is not None


def _closes_php_block(line: str) -> bool:
    return MARKUP_OPEN_RE.search(line) is None and re.search(r"\}>\s*$", line) is not None


def _starts_closing_element(line: str) -> bool:
    return re.match(r"\s*</", line) is not None


def _is_self_closing_marker(line: str) -> bool:
    return re.match(r"\s*/>[\s;)]*$", line) is not None


def _is_closing_call(line: str) -> bool:
    return re.match(r"\s*\);\s*$", line) is not None


MARKUP_LINE_RULES: Final[Tuple[IndentRule, ...]] = (
    IndentRule("attribute", _starts_attribute, 0, ContextTag.IN_ATTRIBUTE),
    IndentRule("multiline-php-block", _closes_php_block, 0, ContextTag.IN_MULTILINE_PHP_BLOCK, defer=True),
    IndentRule("closing-element", _starts_closing_element, -1, ContextTag.IN_CLOSING_ELEMENT),
    IndentRule("self-closing-marker", _is_self_closing_marker, -1, ContextTag.IN_CLOSING_STATEMENT),
    IndentRule("closing-call", _is_closing_call, -1, ContextTag.IN_CLOSING_STATEMENT),
    IndentRule("default", lambda line: True),
)


def match_rule(line: str, rules: Tuple[IndentRule, ...] = MARKUP_LINE_RULES) -> IndentRule:
    """Return the first rule whose predicate accepts the line."""
    for rule in rules:
        if rule.matches(line):
            return rule
    raise XhpIndentError(f"no indentation rule matched {line!r}")


def previous_terminator(buffer: TextBuffer, limit: Optional[int] = None, start: Optional[int] = None) -> Optional[int]:
    """Position of the nearest `;` before `start` that is not in a string or comment.

    Returns None when nothing is found at or after `limit`, or when
    `limit` lies past `start`.
    """
    start = buffer.point if start is None else start
    limit = 0 if limit is None else limit
    if limit > start:
        return None
    match = buffer.search_backward(STATEMENT_TERMINATOR_RE, limit, start, skip_literals=True)
    return None if match is None else match.start()


def search_bound(buffer: TextBuffer, config: IndentConfig, point: int) -> int:
    floor = max(config.prefix_offset, point - config.max_backtrack)
    brace = buffer.enclosing_brace(point, floor)
    limit = floor if brace is None else max(floor, brace)
    semi = previous_terminator(buffer, limit, point)
    bound = floor
    if brace is not None:
        bound = max(bound, brace + 1)
    if semi is not None:
        bound = max(bound, semi + 1)
    return min(bound, point)


def _check_tags(tags: FrozenSet[object]) -> None:
    unknown = [tag for tag in tags if not isinstance(tag, ContextTag)]
    if unknown:
        raise XhpIndentError(f"unrecognized context tags: {unknown!r}")


def _inside_markup(buffer: TextBuffer, config: IndentConfig, point: int, bound: int, anchor: int) -> ContextResult:
    step = config.indent_step
    matched_line = buffer.line_text(anchor)
    base = buffer.indentation(anchor)
    if MARKUP_CLOSED_LINE_RE.search(matched_line) is None:
        base += step

    rule = match_rule(buffer.line_text(point), MARKUP_LINE_RULES)
    tags = {ContextTag.IN_XHP}
    if rule.tag is not None:
        tags.add(rule.tag)
    brace = buffer.enclosing_brace(buffer.line_end(point), bound + 1)
    if brace is not None and brace > bound:
        tags.add(ContextTag.PHP_IN_XHP)
    if config.debug:
        logger.debug("markup opens at %d (bound %d), base %d, rule %s", anchor, bound, base, rule.name)
    return ContextResult(rule.indent(base, step), frozenset(tags), anchor)


def _after_markup(buffer: TextBuffer, config: IndentConfig, point: int) -> ContextResult:
    end = buffer.skip_syntactic_ws_backward(point)
    if end > 0:
        prior = buffer.text[buffer.line_start(end - 1) : end]
        if MARKUP_STATEMENT_END_RE.search(prior) and not INLINE_MARKUP_STATEMENT_RE.search(prior):
            line = buffer.line_text(point)
            steps = 2 if line.lstrip().startswith("}") or CASE_LABEL_RE.match(line) else 1
            indent = max(0, buffer.indentation(end - 1) - steps * config.indent_step)
            return ContextResult(indent, frozenset({ContextTag.IN_FIRST_STATEMENT_AFTER_MARKUP}))
    return ContextResult(None, frozenset({ContextTag.IN_PHP}))


def detect_context(buffer: TextBuffer, config: IndentConfig = DEFAULT_CONFIG) -> ContextResult:
    """Work out whether the cursor line belongs to XHP markup and how to indent it."""
    point = buffer.line_start(buffer.point)
    buffer.limit_literal_scan(point - config.max_backtrack)
    bound = search_bound(buffer, config, point)
    match = buffer.search_backward(MARKUP_OPEN_RE, bound, point, skip_literals=True)
    if match is None:
        result = _after_markup(buffer, config, point)
    else:
        result = _inside_markup(buffer, config, point, bound, match.start())
    if config.debug:
        _check_tags(result.tags)
        logger.debug("line at %d: indent=%s tags=[%s] anchor=%s", point, result.indent, result.describe(), result.anchor)
    return result


def in_xhp(buffer: TextBuffer, config: IndentConfig = DEFAULT_CONFIG) -> bool:
    return detect_context(buffer, config).in_xhp


def apply_indent(buffer: Optional[TextBuffer], column: int) -> bool:
    """Shift the cursor line to `column`; False only without a buffer."""
    if buffer is None:
        return False
    buffer.shift_indentation(column)
    return True


Fallback = Callable[[TextBuffer, IndentConfig], None]


def indent_line(
    buffer: Optional[TextBuffer],
    config: IndentConfig = DEFAULT_CONFIG,
    fallback: Fallback = host_indent_line,
) -> bool:
    """Indent the cursor line; True when the XHP rules decided the column."""
    if buffer is None:
        return False
    result = detect_context(buffer, config)
    if not result.applicable:
        fallback(buffer, config)
        return False
    return apply_indent(buffer, result.indent)


ELECTRIC_CHARS: Final[str] = ";,{}:"

HostElectric = Callable[[TextBuffer, str, IndentConfig, bool], None]


def electric_insert(
    buffer: TextBuffer,
    char: str,
    config: IndentConfig = DEFAULT_CONFIG,
    electric_mode: bool = True,
    host: HostElectric = host_electric_insert,
) -> bool:
    """Type `char`; inside markup it goes in as is, elsewhere the host handles it.

    Returns True when the character was inserted literally.
    """
    if len(char) != 1 or char not in ELECTRIC_CHARS:
        raise ValueError(f"not an electric character: {char!r}")
    if electric_mode and in_xhp(buffer, config):
        buffer.insert(char)
        return True
    host(buffer, char, config, electric_mode)
    return False


_ELECTRIC_NAMES: Final = {";": "semi", ",": "comma", "{": "lbrace", "}": "rbrace", ":": "colon"}


def _make_electric_handler(char: str) -> Callable[..., bool]:
    def handler(
        buffer: TextBuffer,
        config: IndentConfig = DEFAULT_CONFIG,
        electric_mode: bool = True,
        host: HostElectric = host_electric_insert,
    ) -> bool:
        return electric_insert(buffer, char, config, electric_mode, host)

    handler.__name__ = f"electric_{_ELECTRIC_NAMES[char]}"
    return handler


ELECTRIC_HANDLERS: Final[Dict[str, Callable[..., bool]]] = {char: _make_electric_handler(char) for char in ELECTRIC_CHARS}

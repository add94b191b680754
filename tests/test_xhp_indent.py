import logging

import pytest

import XhpIndent
from TextBuffer import TextBuffer
from XhpIndent import (
    DEFAULT_CONFIG,
    ELECTRIC_CHARS,
    ELECTRIC_HANDLERS,
    ContextResult,
    ContextTag,
    IndentConfig,
    IndentRule,
    XhpIndentError,
    apply_indent,
    detect_context,
    electric_insert,
    in_xhp,
    indent_line,
    previous_terminator,
)


def buffer_at(text: str) -> TextBuffer:
    """Build a buffer with the point where `|` is."""
    point = text.index("|")
    return TextBuffer(text.replace("|", "", 1), point)


class RecordingBuffer(TextBuffer):
    def __init__(self, text: str, point: int) -> None:
        super().__init__(text, point)
        self.searches = []

    def search_backward(self, pattern, limit, start=None, skip_literals=False):
        self.searches.append((limit, self.point if start is None else start))
        return super().search_backward(pattern, limit, start, skip_literals)


# Boundary locator


def test_previous_terminator_skips_strings_and_comments() -> None:
    text = "<?php\nfoo(); $s = 'x;'; // y;\n"
    buf = TextBuffer(text, len(text))
    assert previous_terminator(buf) == text.index("'x;'") + 4


def test_previous_terminator_only_literal_matches() -> None:
    text = "<?php\n$s = 'a;b' // c;\n"
    buf = TextBuffer(text, len(text))
    assert previous_terminator(buf) is None


def test_previous_terminator_respects_limit() -> None:
    text = "<?php\na(); b()\n"
    buf = TextBuffer(text, len(text))
    assert previous_terminator(buf, text.index(";") + 1) is None
    assert previous_terminator(buf, text.index(";")) == text.index(";")


def test_previous_terminator_limit_after_point() -> None:
    buf = TextBuffer("<?php\na();\n", 3)
    assert previous_terminator(buf, 8) is None


# Context detector


def test_child_of_open_element_gets_one_step() -> None:
    result = detect_context(buffer_at("<?php\n  <div>\n|"))
    assert result.indent == 4
    assert result.tags == frozenset({ContextTag.IN_XHP})
    assert result.anchor == 6


def test_line_after_self_closing_tag_keeps_its_indent() -> None:
    result = detect_context(buffer_at("<?php\n$x =\n  <div>\n    <br />\n|"))
    assert result.indent == 4


def test_line_after_closing_tag_keeps_its_indent() -> None:
    result = detect_context(buffer_at("<?php\n$x =\n  <div>\n    <p>\n    </p>\n|"))
    assert result.indent == 4


def test_line_after_markup_comment_keeps_its_indent() -> None:
    result = detect_context(buffer_at("<?php\n$x =\n  <div>\n    <!-- note -->\n|"))
    assert result.indent == 4


def test_closing_element_outdents() -> None:
    result = detect_context(buffer_at("<?php\n$x =\n  <div>\n    <p>\n|    </p>\n"))
    assert result.indent == 4
    assert ContextTag.IN_CLOSING_ELEMENT in result.tags


def test_lone_self_closing_marker_outdents() -> None:
    result = detect_context(buffer_at("<?php\n$x =\n  <img\n    src=\"a.png\"\n|  />;\n"))
    assert result.indent == 2
    assert result.tags == frozenset({ContextTag.IN_XHP, ContextTag.IN_CLOSING_STATEMENT})


def test_closing_call_outdents() -> None:
    result = detect_context(buffer_at("<?php\nrender(\n  <div>\n  </div>\n|);\n"))
    assert result.indent == 0
    assert ContextTag.IN_CLOSING_STATEMENT in result.tags


def test_attribute_at_column_zero() -> None:
    result = detect_context(buffer_at("<?php\n$x =\n  <div\n|class=\"a\">\n"))
    assert result.indent == 4
    assert ContextTag.IN_ATTRIBUTE in result.tags


def test_multiline_php_block_defers() -> None:
    result = detect_context(buffer_at("<?php\n$x =\n  <div\n|    attr={$y}>\n"))
    assert result.indent is None
    assert result.in_xhp
    assert ContextTag.IN_MULTILINE_PHP_BLOCK in result.tags


def test_open_php_brace_inside_markup() -> None:
    result = detect_context(buffer_at("<?php\n$x =\n  <ul>\n|    {array_map(\n"))
    assert result.indent == 4
    assert ContextTag.PHP_IN_XHP in result.tags


def test_return_and_arrow_lead_ins() -> None:
    ret = detect_context(buffer_at("<?php\nfunction f() {\n  return <div>\n|"))
    assert ret.indent == 4
    arrow = detect_context(buffer_at("<?php\n$f = $x ==> <div>\n|"))
    assert arrow.indent == 2
    ternary = detect_context(buffer_at("<?php\n$y = $a\n  ? <b>\n|"))
    assert ternary.indent == 4


def test_heredoc_and_escaped_brackets_are_not_markup() -> None:
    assert detect_context(buffer_at("<?php\n$s = <<<EOT\n|")).tags == frozenset({ContextTag.IN_PHP})
    assert detect_context(buffer_at("<?php\n$s = (<\\x\n|")).indent is None


def test_markup_in_string_is_ignored() -> None:
    result = detect_context(buffer_at("<?php\n$s = '\n  <div>\n'\n|"))
    assert result.tags == frozenset({ContextTag.IN_PHP})
    assert result.indent is None


def test_terminator_in_literal_is_not_a_boundary() -> None:
    result = detect_context(buffer_at("<?php\n$x =\n  <div>\n    {'a;b'}\n|"))
    assert result.indent == 4
    assert result.in_xhp


def test_statement_before_markup_bounds_the_search() -> None:
    result = detect_context(buffer_at("<?php\n$x =\n  <div />;\nfoo(\n|"))
    assert not result.in_xhp


def test_enclosing_brace_bounds_the_search() -> None:
    result = detect_context(buffer_at("<?php\n$x =\n  <div>\n    {foo(\n|"))
    assert result.tags == frozenset({ContextTag.IN_PHP})


def test_first_statement_after_markup() -> None:
    prefix = "<?php\nfunction f() {\n  return\n    <div>\n    </div>;\n"
    closing = detect_context(buffer_at(prefix + "|}\n"))
    assert closing.indent == 0
    assert closing.tags == frozenset({ContextTag.IN_FIRST_STATEMENT_AFTER_MARKUP})
    statement = detect_context(buffer_at(prefix + "|  foo();\n}\n"))
    assert statement.indent == 2


def test_first_statement_after_self_closing_markup() -> None:
    result = detect_context(buffer_at("<?php\nfunction f() {\n  $x =\n    <br\n    />;\n|bar();\n"))
    assert result.indent == 2


def test_case_label_after_markup() -> None:
    text = "<?php\nswitch ($a) {\n  case 1:\n    $x =\n      <div>\n      </div>;\n|  case 2:\n"
    assert detect_context(buffer_at(text)).indent == 2
    text = text.replace("case 2:", "default:")
    assert detect_context(buffer_at(text)).indent == 2


def test_one_line_markup_statement_is_plain_php() -> None:
    assignment = detect_context(buffer_at("<?php\nfunction f() {\n  $x = <br />;\n|  foo();\n}"))
    assert assignment == ContextResult(None, frozenset({ContextTag.IN_PHP}))
    ret = detect_context(buffer_at("<?php\nfunction f() {\n  return <br />;\n|}"))
    assert ret.indent is None


def test_comment_between_markup_and_statement() -> None:
    text = "<?php\nfunction f() {\n  return\n    <div>\n    </div>; // done\n  // more\n|}\n"
    assert detect_context(buffer_at(text)).indent == 0


def test_plain_php_defers() -> None:
    result = detect_context(buffer_at("<?php\nfunction f() {\n|  foo();\n}"))
    assert result == ContextResult(None, frozenset({ContextTag.IN_PHP}), None)
    assert not result.applicable


def test_language_marker_is_skipped() -> None:
    assert not in_xhp(buffer_at("<?php\n|"))
    assert not in_xhp(buffer_at("<?h|"))


def test_outdent_is_clamped_at_zero() -> None:
    result = detect_context(buffer_at("<?php\n</div>\n|</div>\n"))
    assert result.indent == 0


def test_indent_step_is_configurable() -> None:
    config = IndentConfig(indent_step=4)
    assert detect_context(buffer_at("<?php\n  <div>\n|"), config).indent == 6
    assert detect_context(buffer_at("<?php\n  <div>\n    <p>\n|  </p>"), config).indent == 4


def test_search_stays_within_max_backtrack() -> None:
    text = "<?php\n$x =\n  <div>\n" + "    word\n" * 10
    config = IndentConfig(max_backtrack=50)
    buf = RecordingBuffer(text, len(text))
    result = detect_context(buf, config)
    assert result.tags == frozenset({ContextTag.IN_PHP})
    assert buf.searches
    assert all(start - limit <= 50 for limit, start in buf.searches)
    assert detect_context(TextBuffer(text, len(text))).indent == 4


def test_literals_far_above_point_are_not_scanned() -> None:
    # Кавычка дальше max_backtrack не должна прятать разметку
    text = "<?php\n$s = '" + "x;\n" * 2000 + "$x =\n  <div>\n"
    buf = TextBuffer(text, len(text))
    result = detect_context(buf)
    assert result.indent == 4
    assert result.in_xhp
    assert not buf.in_literal(text.index("x;"))


def test_debug_logs_result(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="XhpIndent")
    detect_context(buffer_at("<?php\n  <div>\n|"), IndentConfig(debug=True))
    assert any("indent=4" in record.getMessage() for record in caplog.records)


def test_no_logging_without_debug(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="XhpIndent")
    detect_context(buffer_at("<?php\n  <div>\n|"))
    assert not [record for record in caplog.records if record.name == "XhpIndent"]


def test_unknown_tag_is_fatal_in_debug(monkeypatch: pytest.MonkeyPatch) -> None:
    bogus = (IndentRule("bogus", lambda line: True, 0, "not-a-tag"),)
    monkeypatch.setattr(XhpIndent, "MARKUP_LINE_RULES", bogus)
    buf = buffer_at("<?php\n  <div>\n|")
    assert detect_context(buf).indent == 4
    with pytest.raises(XhpIndentError):
        detect_context(buf, IndentConfig(debug=True))


# Indent applier and dispatcher


def test_indent_line_applies_markup_indent() -> None:
    buf = buffer_at("<?php\n$x =\n  <div>\n|<p />\n")
    assert indent_line(buf) is True
    assert buf.text == "<?php\n$x =\n  <div>\n    <p />\n"
    assert buf.text[buf.point :].startswith("<p />")


def test_indent_line_on_empty_line_moves_to_end() -> None:
    buf = buffer_at("<?php\n  <div>\n|")
    assert indent_line(buf) is True
    assert buf.text == "<?php\n  <div>\n    "
    assert buf.point == len(buf.text)


def test_indent_line_is_idempotent() -> None:
    buf = buffer_at("<?php\n$x =\n  <div>\n   <p>te|xt</p>\n")
    indent_line(buf)
    text, point = buf.text, buf.point
    assert buf.text[point:].startswith("xt")
    indent_line(buf)
    assert buf.text == text
    assert buf.point == point
    assert buf.edits[-1].is_noop


def test_indent_line_falls_back_to_host() -> None:
    buf = buffer_at("<?php\nfunction f() {\n|foo();\n}")
    assert indent_line(buf) is False
    assert buf.text == "<?php\nfunction f() {\n  foo();\n}"


def test_fallback_is_called_unmodified() -> None:
    calls = []
    buf = buffer_at("<?php\nfoo();\n|bar();")
    assert indent_line(buf, DEFAULT_CONFIG, lambda b, c: calls.append((b, c))) is False
    assert calls == [(buf, DEFAULT_CONFIG)]
    assert buf.edits == []


def test_fallback_not_called_inside_markup() -> None:
    calls = []
    buf = buffer_at("<?php\n  <div>\n|")
    assert indent_line(buf, DEFAULT_CONFIG, lambda b, c: calls.append(b)) is True
    assert calls == []


def test_no_buffer() -> None:
    assert apply_indent(None, 4) is False
    assert indent_line(None) is False


# Electric keys


def test_electric_inside_markup_inserts_literally() -> None:
    buf = buffer_at("<?php\n$x =\n  <div>\n      Hello|")
    assert electric_insert(buf, ";") is True
    assert buf.text == "<?php\n$x =\n  <div>\n      Hello;"


def test_electric_outside_markup_uses_host() -> None:
    buf = buffer_at("<?php\nif ($a) {\n  foo();\n  |")
    assert ELECTRIC_HANDLERS["}"](buf) is False
    assert buf.text == "<?php\nif ($a) {\n  foo();\n}"
    assert buf.point == len(buf.text)


def test_electric_mode_off_delegates_to_host() -> None:
    calls = []
    buf = buffer_at("<?php\n$x =\n  <div>\n      Hello|")
    host = lambda b, char, config, electric: calls.append((char, electric))
    assert electric_insert(buf, ",", DEFAULT_CONFIG, electric_mode=False, host=host) is False
    assert calls == [(",", False)]


def test_host_without_electric_mode_only_inserts() -> None:
    buf = buffer_at("<?php\nif ($a) {\n  foo();\n  |")
    ELECTRIC_HANDLERS["}"](buf, DEFAULT_CONFIG, False)
    assert buf.text == "<?php\nif ($a) {\n  foo();\n  }"


def test_electric_handlers_cover_trigger_chars() -> None:
    assert set(ELECTRIC_HANDLERS) == set(ELECTRIC_CHARS) == set(";,{}:")
    assert ELECTRIC_HANDLERS["}"].__name__ == "electric_rbrace"
    assert ELECTRIC_HANDLERS[";"].__name__ == "electric_semi"


def test_electric_rejects_other_chars() -> None:
    with pytest.raises(ValueError):
        electric_insert(TextBuffer("<?php\n"), "x")


# Configuration


def test_config_from_settings() -> None:
    config = IndentConfig.from_settings(
        {"indent_step": 4, "xhp_max_backtrack": 200, "xhp_debug": True, "theme": "dark"}
    )
    assert config == IndentConfig(debug=True, max_backtrack=200, indent_step=4)


def test_config_from_empty_settings() -> None:
    assert IndentConfig.from_settings({}) == DEFAULT_CONFIG


@pytest.mark.parametrize("settings", [{"indent_step": 0}, {"indent_step": True}, {"xhp_max_backtrack": "1000"}])
def test_config_rejects_bad_values(settings: dict) -> None:
    with pytest.raises(XhpIndentError):
        IndentConfig.from_settings(settings)

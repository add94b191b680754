from typing import Optional

from PyQt5.QtCore import Qt, QRect, QSize
from PyQt5.QtGui import QFont, QTextCursor, QPainter
from PyQt5.QtWidgets import QPlainTextEdit, QWidget

from TextBuffer import TextBuffer
from Theme import EditorPalette
from XhpIndent import (
	DEFAULT_CONFIG,
	ELECTRIC_HANDLERS,
	ContextResult,
	IndentConfig,
	detect_context,
	indent_line,
)


def utf16_length(text: str) -> int:
	"""Length of text in UTF-16 code units, the unit of Qt cursor positions."""
	return len(text.encode("utf-16-le")) // 2


def from_utf16(text: str, offset: int) -> int:
	"""Convert a Qt position in text to a Python string index."""
	return len(text.encode("utf-16-le")[: offset * 2].decode("utf-16-le"))


class CodeEditor(QPlainTextEdit):
	"""QPlainTextEdit with XHP-aware indentation for PHP/Hack sources."""

	def __init__(self, palette: Optional[EditorPalette] = None, config: Optional[IndentConfig] = None) -> None:
		super().__init__()
		font = QFont("Consolas", 11)
		font.setStyleHint(QFont.StyleHint.Monospace)
		self.setFont(font)
		self._palette = palette or EditorPalette()
		self._config = config or DEFAULT_CONFIG
		self.electric_mode = True
		self._apply_palette()
		self.cursorPositionChanged.connect(self._handle_cursor_change)

		# Line number area setup
		self._lineNumberArea = _LineNumberArea(self)
		self.blockCountChanged.connect(self._update_line_number_area_width)
		self.updateRequest.connect(self._update_line_number_area)
		self._update_line_number_area_width(0)

		# По умолчанию перенос строк включён; состояние может переопределяться окном
		self.setLineWrapMode(QPlainTextEdit.LineWrapMode.WidgetWidth)

	@property
	def indent_config(self) -> IndentConfig:
		return self._config

	def set_indent_config(self, config: IndentConfig) -> None:
		self._config = config

	def set_electric_enabled(self, enabled: bool) -> None:
		self.electric_mode = bool(enabled)

	def _apply_palette(self) -> None:
		p = self._palette
		self.setStyleSheet(
			f"QPlainTextEdit {{ background-color: {p.background.name()}; color: {p.foreground.name()}; }}"
		)
		if hasattr(self, "_lineNumberArea"):
			self._lineNumberArea.update()

	def set_palette(self, palette: EditorPalette) -> None:
		self._palette = palette
		self._apply_palette()
		self._update_line_number_area_width(0)

	def lineNumberAreaWidth(self) -> int:
		"""Return width of line number area in pixels."""
		digits = len(str(max(1, self.blockCount())))
		fm = self.fontMetrics()
		char_width = fm.horizontalAdvance('9')
		padding = 8  # слева/справа
		return padding + char_width * digits

	def _update_line_number_area_width(self, _):
		self.setViewportMargins(self.lineNumberAreaWidth(), 0, 0, 0)

	def _update_line_number_area(self, rect, dy):
		if dy:
			self._lineNumberArea.scroll(0, dy)
		else:
			self._lineNumberArea.update(0, rect.y(), self._lineNumberArea.width(), rect.height())
		if rect.contains(self.viewport().rect()):
			self._update_line_number_area_width(0)

	def resizeEvent(self, event):  # type: ignore[override]
		super().resizeEvent(event)
		r = QRect(0, 0, self.lineNumberAreaWidth(), self.height())
		self._lineNumberArea.setGeometry(r)

	def _lineNumberAreaPaintEvent(self, event) -> None:
		painter = QPainter(self._lineNumberArea)
		painter.setFont(self.font())
		painter.fillRect(event.rect(), self._palette.background)

		block = self.firstVisibleBlock()
		block_number = block.blockNumber()
		top = int(self.blockBoundingGeometry(block).translated(self.contentOffset()).top())
		bottom = top + int(self.blockBoundingRect(block).height())
		painter.setPen(self._palette.gutter)

		while block.isValid() and top <= event.rect().bottom():
			if block.isVisible() and bottom >= event.rect().top():
				painter.drawText(0, top, self._lineNumberArea.width() - 4, self.fontMetrics().height(),
							   Qt.AlignmentFlag.AlignRight, str(block_number + 1))
			block = block.next()
			block_number += 1
			top = bottom
			bottom = top + int(self.blockBoundingRect(block).height())

	def keyPressEvent(self, event):
		text = event.text()
		key = event.key()

		# Tab: пересчитать отступ текущей строки
		if key == Qt.Key.Key_Tab:
			self.indent_current_line()
			return
		# Enter: новая строка сразу с нужным отступом
		if key in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
			self.newline_and_indent()
			return
		# «Электрические» символы: ; , { } :
		if text and text in ELECTRIC_HANDLERS and not self.textCursor().hasSelection():
			self.electric_key(text)
			return

		super().keyPressEvent(event)

	def _snapshot(self) -> TextBuffer:
		text = self.toPlainText()
		return TextBuffer(text, from_utf16(text, self.textCursor().position()))

	def _apply_edits(self, buffer: TextBuffer) -> None:
		"""Replay the snapshot's edits on the document as one undo step."""
		# Позиции правок в символах Python, у Qt они в UTF-16
		text = self.toPlainText()
		cursor = self.textCursor()
		cursor.beginEditBlock()
		for edit in buffer.edits:
			if edit.is_noop:
				continue
			end = edit.start + edit.removed
			cursor.setPosition(utf16_length(text[: edit.start]))
			cursor.setPosition(utf16_length(text[:end]), QTextCursor.MoveMode.KeepAnchor)
			cursor.insertText(edit.inserted)
			text = text[: edit.start] + edit.inserted + text[end:]
		cursor.setPosition(utf16_length(text[: buffer.point]))
		cursor.endEditBlock()
		self.setTextCursor(cursor)

	def markup_context(self) -> ContextResult:
		"""Detector result for the line under the cursor."""
		return detect_context(self._snapshot(), self._config)

	def indent_current_line(self) -> bool:
		"""Indent the cursor line; True when XHP rules were used."""
		buffer = self._snapshot()
		applied = indent_line(buffer, self._config)
		self._apply_edits(buffer)
		return applied

	def newline_and_indent(self) -> None:
		cursor = self.textCursor()
		if cursor.hasSelection():
			cursor.removeSelectedText()
			self.setTextCursor(cursor)
		buffer = self._snapshot()
		buffer.insert("\n")
		indent_line(buffer, self._config)
		self._apply_edits(buffer)

	def electric_key(self, char: str) -> bool:
		"""Type an electric character; True when it went in without reindenting."""
		buffer = self._snapshot()
		literal = ELECTRIC_HANDLERS[char](buffer, self._config, self.electric_mode)
		self._apply_edits(buffer)
		return literal

	def _handle_cursor_change(self) -> None:
		cursor = self.textCursor()
		parent = self.parent()
		if parent is not None and hasattr(parent, "update_status"):
			context = self.markup_context()
			parent.update_status(cursor.blockNumber() + 1, cursor.positionInBlock() + 1, context.describe())
		self._lineNumberArea.update()

	def set_word_wrap_enabled(self, enabled: bool) -> None:
		"""Включить/выключить перенос строк по ширине виджета."""
		mode = QPlainTextEdit.LineWrapMode.WidgetWidth if enabled else QPlainTextEdit.LineWrapMode.NoWrap
		self.setLineWrapMode(mode)


class _LineNumberArea(QWidget):
	def __init__(self, editor: CodeEditor) -> None:
		super().__init__(editor)
		self._editor = editor

	def sizeHint(self):
		return QSize(self._editor.lineNumberAreaWidth(), 0)

	def paintEvent(self, event):  # type: ignore[override]
		self._editor._lineNumberAreaPaintEvent(event)

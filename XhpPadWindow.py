from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

from PyQt5.QtWidgets import (
	QAction,
	QActionGroup,
	QFileDialog,
	QMainWindow,
	QMessageBox,
	QStatusBar,
)

from CodeEditor import CodeEditor
from Theme import EditorPalette, Theme, palette_for
from XhpIndent import IndentConfig, XhpIndentError

logger = logging.getLogger(__name__)

FILE_FILTER = "PHP / Hack Files (*.php *.hack *.hh);;All Files (*.*)"

class XhpPadWindow(QMainWindow):
	"""Main application window wrapping the code editor."""

	def __init__(self, settings_path: Optional[Path] = None) -> None:
		super().__init__()
		self.setWindowTitle("XhpPad")
		self.resize(900, 650)
		self._settings_path = settings_path or Path.home() / ".xhppad.json"
		self._settings = self._load_settings()
		palette = palette_for(self._settings.get("theme"))

		self.status_bar = QStatusBar()
		self.setStatusBar(self.status_bar)

		self.editor = CodeEditor(palette, self._indent_config_from_settings())
		self.editor.set_electric_enabled(bool(self._settings.get("electric", True)))
		self.setCentralWidget(self.editor)

		self._current_file: Optional[Path] = None
		self._create_actions()
		self._create_menu_bar()
		self._create_settings_menu()
		self._apply_global_theme(palette)

		# Применяем сохранённое состояние переноса строк
		wrap_enabled = bool(self._settings.get("word_wrap", True))
		self.editor.set_word_wrap_enabled(wrap_enabled)
		self.word_wrap_action.setChecked(wrap_enabled)

	def _indent_config_from_settings(self) -> IndentConfig:
		try:
			return IndentConfig.from_settings(self._settings)
		except XhpIndentError as exc:
			logger.warning("invalid indentation settings: %s", exc)
			self.status_bar.showMessage(f"Настройки отступов не применены: {exc}", 5000)
			return IndentConfig(debug=bool(self._settings.get("xhp_debug", False)))

	def _create_actions(self) -> None:
		self.new_action = QAction("&New", self)
		self.new_action.setShortcut("Ctrl+N")
		self.new_action.triggered.connect(self.new_file)

		self.open_action = QAction("&Open…", self)
		self.open_action.setShortcut("Ctrl+O")
		self.open_action.triggered.connect(self.open_file)

		self.save_action = QAction("&Save", self)
		self.save_action.setShortcut("Ctrl+S")
		self.save_action.triggered.connect(self.save_file)

		self.save_as_action = QAction("Save &As…", self)
		self.save_as_action.setShortcut("Ctrl+Shift+S")
		self.save_as_action.triggered.connect(self.save_file_as)

		self.exit_action = QAction("E&xit", self)
		self.exit_action.setShortcut("Ctrl+Q")
		self.exit_action.triggered.connect(self.close)

		self.indent_action = QAction("&Indent Line", self)
		self.indent_action.setShortcut("Ctrl+I")
		self.indent_action.triggered.connect(self.editor.indent_current_line)

		# Word wrap
		self.word_wrap_action = QAction("Word Wrap", self, checkable=True)
		self.word_wrap_action.triggered.connect(self._toggle_word_wrap)

	def _create_menu_bar(self) -> None:
		menu_bar = self.menuBar()
		file_menu = menu_bar.addMenu("&File")
		file_menu.addAction(self.new_action)
		file_menu.addAction(self.open_action)
		file_menu.addSeparator()
		file_menu.addAction(self.save_action)
		file_menu.addAction(self.save_as_action)
		file_menu.addSeparator()
		file_menu.addAction(self.exit_action)

		edit_menu = menu_bar.addMenu("&Edit")
		edit_menu.addAction(self.indent_action)

		view_menu = menu_bar.addMenu("&View")
		view_menu.addAction(self.word_wrap_action)

	def _load_settings(self) -> dict:
		"""Load settings from disk. Returns a dict with at least 'theme'."""
		defaults = {"theme": Theme.DARK.value, "word_wrap": True, "electric": True, "xhp_debug": False}
		if not self._settings_path.exists():
			return defaults
		try:
			with open(self._settings_path, "r", encoding="utf-8") as fh:
				data = json.load(fh)
				for k, v in defaults.items():
					data.setdefault(k, v)
				return data
		except (OSError, ValueError) as exc:
			logger.warning("could not read %s: %s", self._settings_path, exc)
			return defaults

	def _save_settings(self) -> None:
		try:
			with open(self._settings_path, "w", encoding="utf-8") as fh:
				json.dump(self._settings, fh, indent=2)
		except OSError as exc:
			logger.warning("could not write %s: %s", self._settings_path, exc)

	def _create_settings_menu(self) -> None:
		menu_bar = self.menuBar()
		settings_menu = menu_bar.addMenu("&Settings")

		theme_menu = settings_menu.addMenu("Theme")
		action_group = QActionGroup(self)
		action_group.setExclusive(True)

		self.dark_theme_action = QAction("Dark", self, checkable=True)
		self.light_theme_action = QAction("Light", self, checkable=True)
		action_group.addAction(self.dark_theme_action)
		action_group.addAction(self.light_theme_action)

		theme_menu.addAction(self.dark_theme_action)
		theme_menu.addAction(self.light_theme_action)

		current = self._settings.get("theme", Theme.DARK.value)
		self.dark_theme_action.setChecked(current == Theme.DARK.value)
		self.light_theme_action.setChecked(current == Theme.LIGHT.value)

		self.dark_theme_action.triggered.connect(lambda: self._set_theme(Theme.DARK.value))
		self.light_theme_action.triggered.connect(lambda: self._set_theme(Theme.LIGHT.value))

		settings_menu.addSeparator()
		self.electric_action = QAction("Electric Keys", self, checkable=True)
		self.electric_action.setChecked(self.editor.electric_mode)
		self.electric_action.toggled.connect(self._toggle_electric)
		settings_menu.addAction(self.electric_action)

		self.xhp_debug_action = QAction("XHP Debug Logging", self, checkable=True)
		self.xhp_debug_action.setChecked(self.editor.indent_config.debug)
		self.xhp_debug_action.toggled.connect(self._toggle_xhp_debug)
		settings_menu.addAction(self.xhp_debug_action)

	def _set_theme(self, theme_value: str) -> None:
		palette = palette_for(theme_value)
		self._settings["theme"] = theme_value
		self._save_settings()
		self.editor.set_palette(palette)
		self._apply_global_theme(palette)

	def _apply_global_theme(self, palette: EditorPalette) -> None:
		bg = palette.background.name()
		fg = palette.foreground.name()
		accent = palette.accent.name()
		stylesheet = f"""
QMainWindow {{ background-color: {bg}; }}
QMenuBar {{ background-color: {bg}; color: {fg}; }}
QMenuBar::item:selected {{ background: {accent}; }}
QMenu {{ background-color: {bg}; color: {fg}; }}
QMenu::item:selected {{ background: {accent}; }}
QStatusBar {{ background-color: {bg}; color: {fg}; }}
"""
		self.setStyleSheet(stylesheet)

	def _toggle_electric(self, enabled: bool) -> None:
		self.editor.set_electric_enabled(enabled)
		self._settings["electric"] = bool(enabled)
		self._save_settings()

	def _toggle_xhp_debug(self, enabled: bool) -> None:
		self.editor.set_indent_config(replace(self.editor.indent_config, debug=bool(enabled)))
		self._settings["xhp_debug"] = bool(enabled)
		self._save_settings()

	def _toggle_word_wrap(self, checked: bool) -> None:
		self.editor.set_word_wrap_enabled(bool(checked))
		self._settings["word_wrap"] = bool(checked)
		self._save_settings()

	def new_file(self) -> None:
		if not self._maybe_discard_changes():
			return
		self.editor.clear()
		self._current_file = None
		self._update_window_title()

	def open_file(self) -> None:
		if not self._maybe_discard_changes():
			return
		file_path, _ = QFileDialog.getOpenFileName(self, "Open File", str(Path.home()), FILE_FILTER)
		if file_path:
			self.load_path(Path(file_path))

	def load_path(self, path: Path) -> None:
		with open(path, "r", encoding="utf-8") as fh:
			self.editor.setPlainText(fh.read())
		self._current_file = path
		self._update_window_title()

	def save_file(self) -> None:
		if self._current_file is None:
			self.save_file_as()
			return
		self._write_to_path(self._current_file)

	def save_file_as(self) -> None:
		file_path, _ = QFileDialog.getSaveFileName(self, "Save File As", str(Path.home()), FILE_FILTER)
		if file_path:
			self._current_file = Path(file_path)
			self._write_to_path(self._current_file)
			self._update_window_title()

	def closeEvent(self, event):
		if self._maybe_discard_changes():
			event.accept()
		else:
			event.ignore()

	def update_status(self, line: int, column: int, context: str = "") -> None:
		path = str(self._current_file) if self._current_file else "Untitled"
		suffix = f" [{context}]" if context else ""
		self.status_bar.showMessage(f"{path} — Line {line}, Column {column}{suffix}")

	def _maybe_discard_changes(self) -> bool:
		if not self.editor.document().isModified():
			return True
		response = QMessageBox.warning(
			self,
			"Unsaved Changes",
			"The document has unsaved changes. Do you want to continue without saving?",
			QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
			QMessageBox.StandardButton.No,
		)
		return response == QMessageBox.StandardButton.Yes

	def _write_to_path(self, path: Path) -> None:
		with open(path, "w", encoding="utf-8") as fh:
			fh.write(self.editor.toPlainText())
		self.editor.document().setModified(False)

	def _update_window_title(self) -> None:
		suffix = f" — {self._current_file.name}" if self._current_file else ""
		self.setWindowTitle(f"XhpPad{suffix}")

from dataclasses import dataclass, field
from enum import Enum
from PyQt5.QtGui import QColor

@dataclass
class EditorPalette:
	# Базовые цвета по умолчанию (мягкая тёмная схема, One Dark-подобная)
	background: QColor = field(default_factory=lambda: QColor("#282c34"))
	foreground: QColor = field(default_factory=lambda: QColor("#abb2bf"))
	gutter: QColor = field(default_factory=lambda: QColor("#5c6370"))
	accent: QColor = field(default_factory=lambda: QColor("#c678dd"))


class Theme(str, Enum):
	DARK = "dark"
	LIGHT = "light"


# Мягкая светлая палитра
LIGHT_PALETTE = EditorPalette(
	background=QColor("#fafafa"),
	foreground=QColor("#383a42"),
	gutter=QColor("#6a737d"),
	accent=QColor("#a626a4"),
)

# Тёмная палитра по умолчанию (см. значения в EditorPalette)
DARK_PALETTE = EditorPalette()


def palette_for(theme_value: str) -> EditorPalette:
	return DARK_PALETTE if theme_value == Theme.DARK.value else LIGHT_PALETTE

import os

# Qt-тесты запускаются без дисплея
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

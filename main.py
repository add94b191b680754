"""XhpPad – launcher."""

import argparse
import logging
import sys
from pathlib import Path

from PyQt5.QtWidgets import QApplication
from XhpPadWindow import XhpPadWindow


def run() -> None:
    parser = argparse.ArgumentParser(description="PHP/Hack editor with XHP-aware indentation")
    parser.add_argument("file", nargs="?", type=Path, help="file to open")
    parser.add_argument("--debug", action="store_true", help="log indentation decisions")
    args, qt_args = parser.parse_known_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    app = QApplication(sys.argv[:1] + qt_args)
    window = XhpPadWindow()
    if args.file is not None:
        window.load_path(args.file)
    window.show()
    sys.exit(app.exec_())


if __name__ == "__main__":
    run()

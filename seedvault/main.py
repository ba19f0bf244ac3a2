"""
Main entry point for SeedVault.

SECURITY NOTICE:
Seeds are stored encrypted in the local settings file and on tags. Decrypted
seeds are only shown on screen and, on request, copied to the clipboard,
which is cleared automatically.
"""

import os
import sys
import signal
import logging
from typing import Optional

from PyQt5.QtWidgets import QApplication
from PyQt5.QtCore import Qt

from . import config
from .crypto import SeedCipher
from .errors import PersistenceError
from .exchange import TagExchange
from .medium import FileTagMedium
from .qt_interaction import AsyncBridge, QtInteractionService
from .storage import JsonSettingsStore, SeedStorage
from .ui import MainWindow
from .vault import SeedVault

logger = logging.getLogger(__name__)


class SeedVaultApp:
    """Main application class for SeedVault."""

    def __init__(self, config_dir: str = config.DEFAULT_CONFIG_DIR):
        """Initialize the application."""
        self.app = QApplication(sys.argv)
        self.app.setApplicationName(config.APP_NAME)
        self.app.setOrganizationName(config.APP_NAME)
        self.app.setStyle(config.APP_STYLE)

        os.makedirs(config_dir, exist_ok=True)
        self.bridge = AsyncBridge()
        self.interaction = QtInteractionService()
        self.medium = FileTagMedium(os.path.join(config_dir, config.DEFAULT_TAG_FILE))

        store = JsonSettingsStore(os.path.join(config_dir, config.SETTINGS_FILE))
        self.vault = SeedVault(SeedStorage(store), SeedCipher(), self.interaction)
        self.exchange = TagExchange(self.vault, self.medium, self.interaction)
        self.main_window: Optional[MainWindow] = None

        # Handle Ctrl+C gracefully
        signal.signal(signal.SIGINT, signal.SIG_DFL)

    def run(self) -> int:
        """Run the application."""
        try:
            self.vault.load()
        except PersistenceError as e:
            logger.error(f"Could not load seeds: {e}")
            self.bridge.loop.run_until_complete(self.interaction.alert(f"Could not load seeds: {e}"))
            return 1

        self.main_window = MainWindow(self.vault, self.exchange, self.interaction, self.bridge)
        self.main_window.show()
        return self.app.exec_()

    def cleanup(self):
        """Clean up resources."""
        self.interaction.clear_clipboard()
        if not self.bridge.loop.is_closed():
            self.bridge.loop.run_until_complete(self.medium.close())
        self.bridge.close()


def main():
    """Main entry point."""
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')
    # Enable high DPI scaling
    if hasattr(Qt, 'AA_EnableHighDpiScaling'):
        QApplication.setAttribute(Qt.AA_EnableHighDpiScaling, True)

    app = SeedVaultApp()
    try:
        return app.run()
    finally:
        app.cleanup()


if __name__ == "__main__":
    sys.exit(main())

"""
Main window for SeedVault.
"""

import logging
from typing import Optional

from PyQt5.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QPushButton, QLabel,
    QTextEdit, QTableWidget, QTableWidgetItem, QGroupBox
)
from PyQt5.QtCore import Qt

from . import config
from .errors import PersistenceError
from .exchange import TagExchange
from .interaction import ConfirmOptions, PromptOptions
from .qt_interaction import AsyncBridge, QtInteractionService
from .storage import VaultEntry
from .vault import SeedVault

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(self, vault: SeedVault, exchange: TagExchange,
                 interaction: QtInteractionService, bridge: AsyncBridge):
        super().__init__()
        self.vault = vault
        self.exchange = exchange
        self.interaction = interaction
        self.bridge = bridge
        self.interaction.parent = self
        self.init_ui()
        self.vault.subscribe(self.load_entries)
        self.exchange.on_status_change(self.show_status)
        self.load_entries()

    def init_ui(self):
        """Initialize the user interface."""
        self.setWindowTitle(config.APP_TITLE_PREFIX)
        self.setGeometry(100, 100, 900, 600)

        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        layout = QVBoxLayout()
        central_widget.setLayout(layout)

        # Seed entry
        seed_group = QGroupBox("New seed")
        seed_layout = QHBoxLayout()
        self.seed_input = QTextEdit()
        self.seed_input.setPlaceholderText("Type your seed phrase...")
        self.seed_input.setMaximumHeight(80)
        seed_layout.addWidget(self.seed_input)
        self.encrypt_button = QPushButton("Encrypt")
        self.encrypt_button.clicked.connect(self.encrypt_seed)
        seed_layout.addWidget(self.encrypt_button)
        seed_group.setLayout(seed_layout)
        layout.addWidget(seed_group)

        # Tag toolbar
        tag_layout = QHBoxLayout()
        for text, handler in (
            ("Available?", lambda: self.bridge.submit(self.exchange.check_available())),
            ("Enabled?", lambda: self.bridge.submit(self.exchange.check_enabled())),
            ("Tag listener", lambda: self.bridge.submit(self.exchange.start_tag_listener())),
            ("Stop tag listener", lambda: self.bridge.submit(self.exchange.stop_tag_listener())),
            ("Scan tag", lambda: self.bridge.submit(self.exchange.start_listening())),
            ("Stop scanning", lambda: self.bridge.submit(self.exchange.stop_listening())),
            ("Write URI", self.write_uri),
            ("Erase tag", lambda: self.bridge.submit(self.exchange.erase_tag())),
        ):
            button = QPushButton(text)
            button.clicked.connect(handler)
            tag_layout.addWidget(button)
        layout.addLayout(tag_layout)

        # Seed table
        self.table = QTableWidget()
        self.table.setColumnCount(3)
        self.table.setHorizontalHeaderLabels(["Name", "Encrypted seed", "Actions"])
        self.table.setAlternatingRowColors(True)
        self.table.setSelectionBehavior(QTableWidget.SelectRows)
        self.table.setEditTriggers(QTableWidget.NoEditTriggers)
        self.table.horizontalHeader().setStretchLastSection(True)
        self.table.setColumnWidth(0, 150)
        self.table.setColumnWidth(1, 300)
        layout.addWidget(self.table)

        self.statusBar().showMessage(self.exchange.status)
        self.count_label = QLabel("Total Seeds: 0")
        self.count_label.setStyleSheet("padding-right: 10px;")
        self.statusBar().addPermanentWidget(self.count_label)

    def show_status(self, status: str):
        self.statusBar().showMessage(status)

    def load_entries(self):
        """Load entries into the table."""
        self.table.setRowCount(0)
        for entry in self.vault:
            self.add_entry_to_table(entry)
        self.count_label.setText(f"Total Seeds: {len(self.vault)}")

    def add_entry_to_table(self, entry: VaultEntry):
        """Add an entry to the table."""
        row = self.table.rowCount()
        self.table.insertRow(row)

        name_item = QTableWidgetItem(entry.label)
        name_item.setData(Qt.UserRole, entry.ciphertext)
        self.table.setItem(row, 0, name_item)

        preview = entry.ciphertext[:config.CIPHERTEXT_PREVIEW_LENGTH]
        if len(entry.ciphertext) > config.CIPHERTEXT_PREVIEW_LENGTH:
            preview += "..."
        self.table.setItem(row, 1, QTableWidgetItem(preview))

        actions_widget = QWidget()
        actions_layout = QHBoxLayout()
        actions_layout.setContentsMargins(0, 0, 0, 0)

        decrypt_btn = QPushButton("Decrypt")
        decrypt_btn.clicked.connect(lambda: self.decrypt_seed(entry.ciphertext))
        actions_layout.addWidget(decrypt_btn)

        write_btn = QPushButton("Write NFC")
        write_btn.clicked.connect(lambda: self.bridge.submit(self.exchange.export_entry(entry.ciphertext)))
        actions_layout.addWidget(write_btn)

        remove_btn = QPushButton("Remove")
        remove_btn.clicked.connect(lambda: self.bridge.submit(self._remove(entry)))
        actions_layout.addWidget(remove_btn)

        actions_widget.setLayout(actions_layout)
        self.table.setCellWidget(row, 2, actions_widget)

    def encrypt_seed(self):
        """Encrypt the typed seed and clear the input."""
        plaintext = self.seed_input.toPlainText()
        self.seed_input.clear()
        self.bridge.submit(self.vault.encrypt_with_prompt(plaintext))

    def decrypt_seed(self, ciphertext: str):
        index = self._index_of(ciphertext)
        if index is not None:
            self.bridge.submit(self.vault.decrypt_with_prompt(index))

    def write_uri(self):
        self.bridge.submit(self._write_uri())

    async def _write_uri(self):
        reply = await self.interaction.prompt(PromptOptions(
            title="Write URI", message="URI to write to the tag", ok_text="Write", default_text="https://"
        ))
        if reply.result and reply.text:
            await self.exchange.write_uri(reply.text)

    async def _remove(self, entry: VaultEntry):
        confirmed = await self.interaction.confirm(ConfirmOptions(
            title="Confirm Delete",
            message=f"Are you sure you want to remove seed {entry.label}?",
            ok_text="Remove",
        ))
        # Positions may have shifted while the dialog was open
        index = self._index_of(entry.ciphertext)
        if not confirmed or index is None:
            return
        try:
            self.vault.remove_entry(index)
        except PersistenceError as e:
            await self.interaction.alert(f"Could not remove seed: {e}")
            return
        self.statusBar().showMessage(f"Removed seed {entry.label}", 2000)

    def _index_of(self, ciphertext: str) -> Optional[int]:
        return self.vault.lookup_by_ciphertext(ciphertext)

    def closeEvent(self, event):
        """Handle window close event."""
        self.interaction.clear_clipboard()
        event.accept()

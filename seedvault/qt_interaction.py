"""
PyQt5 implementations of the interaction service and the asyncio pump.

Dialogs are modal, so each coroutine resolves once the dialog closes. The
asyncio loop is driven from a QTimer; while a modal dialog runs its nested
Qt event loop the pump skips, since the asyncio loop is still busy inside
the coroutine that opened the dialog.
"""

import asyncio
import logging
from typing import Coroutine, Optional, Set

from PyQt5.QtWidgets import QApplication, QDialog, QInputDialog, QLineEdit, QMessageBox, QWidget
from PyQt5.QtCore import QObject, QTimer

from . import config
from .interaction import ConfirmOptions, InputType, InteractionService, PromptOptions, PromptResult

logger = logging.getLogger(__name__)


class QtInteractionService(InteractionService):
    """Message boxes, input dialogs and the system clipboard."""

    def __init__(self, parent: Optional[QWidget] = None,
                 clipboard_clear_timeout: int = config.CLIPBOARD_CLEAR_TIMEOUT_DEFAULT):
        self.parent = parent
        self.clipboard_clear_timeout = clipboard_clear_timeout
        self.clipboard_timer = QTimer()
        self.clipboard_timer.setSingleShot(True)
        self.clipboard_timer.timeout.connect(self.clear_clipboard)

    async def alert(self, message: str) -> None:
        QMessageBox.information(self.parent, config.APP_NAME, message)

    async def confirm(self, options: ConfirmOptions) -> bool:
        box = QMessageBox(self.parent)
        box.setWindowTitle(options.title)
        box.setText(options.message)
        ok_button = box.addButton(options.ok_text, QMessageBox.AcceptRole)
        cancel_button = box.addButton(options.cancel_text, QMessageBox.RejectRole)
        box.setDefaultButton(ok_button)
        box.setEscapeButton(cancel_button)
        box.exec_()
        return box.clickedButton() is ok_button

    async def prompt(self, options: PromptOptions) -> PromptResult:
        dialog = QInputDialog(self.parent)
        dialog.setWindowTitle(options.title)
        dialog.setLabelText(options.message)
        dialog.setOkButtonText(options.ok_text)
        dialog.setCancelButtonText(options.cancel_text)
        dialog.setTextValue(options.default_text)
        if options.input_type is InputType.PASSWORD:
            dialog.setTextEchoMode(QLineEdit.Password)
        accepted = dialog.exec_() == QDialog.Accepted
        text = dialog.textValue() if accepted else ""
        dialog.setTextValue("")
        return PromptResult(result=accepted, text=text)

    async def copy_to_clipboard(self, text: str) -> None:
        """Copy to clipboard with auto-clear."""
        QApplication.clipboard().setText(text)
        self.clipboard_timer.stop()
        self.clipboard_timer.start(self.clipboard_clear_timeout)

    def clear_clipboard(self) -> None:
        """Clear the clipboard."""
        self.clipboard_timer.stop()
        clipboard = QApplication.clipboard()
        if clipboard.text():
            clipboard.clear()
            logger.debug("Clipboard cleared")


class AsyncBridge(QObject):
    """Runs an asyncio loop in small slices from the Qt event loop."""

    def __init__(self, interval_ms: int = config.ASYNC_PUMP_INTERVAL_MS, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self._tasks: Set[asyncio.Task] = set()
        self.timer = QTimer(self)
        self.timer.timeout.connect(self._pump)
        self.timer.start(interval_ms)

    def _pump(self) -> None:
        if self.loop.is_running() or self.loop.is_closed():
            return
        self.loop.call_soon(self.loop.stop)
        self.loop.run_forever()

    def submit(self, coro: Coroutine) -> asyncio.Task:
        """Schedule ``coro``; failures are logged."""
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task failed: {error}", exc_info=error)

    def close(self) -> None:
        self.timer.stop()
        if self.loop.is_closed():
            return
        pending = [t for t in asyncio.all_tasks(self.loop) if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            self.loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        self.loop.close()

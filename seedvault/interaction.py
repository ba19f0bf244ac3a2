"""
User interaction contract consumed by the vault and the tag exchange.

Every call is a suspension point: the coroutine resolves once the user has
answered or dismissed the dialog. A dismissed dialog resolves as a cancel.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class InputType(Enum):
    TEXT = "text"
    PASSWORD = "password"


@dataclass
class ConfirmOptions:
    title: str
    message: str
    ok_text: str = "OK"
    cancel_text: str = "Cancel"


@dataclass
class PromptOptions:
    title: str
    message: str
    ok_text: str = "OK"
    cancel_text: str = "Cancel"
    input_type: InputType = InputType.TEXT
    default_text: str = ""


@dataclass
class PromptResult:
    result: bool
    text: str = ""


class InteractionService(ABC):
    """Alerts, confirmations, prompts and the clipboard."""

    @abstractmethod
    async def alert(self, message: str) -> None:
        ...

    @abstractmethod
    async def confirm(self, options: ConfirmOptions) -> bool:
        ...

    @abstractmethod
    async def prompt(self, options: PromptOptions) -> PromptResult:
        ...

    @abstractmethod
    async def copy_to_clipboard(self, text: str) -> None:
        ...

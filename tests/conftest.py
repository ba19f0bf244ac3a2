"""
Shared pytest fixtures for the SeedVault test suite.

The cipher fixture uses the smallest Argon2 costs so encryption stays fast;
ciphertexts carry their own costs, so nothing else changes.
"""

import asyncio
import time
from collections import deque

import pytest

from seedvault.crypto import SeedCipher
from seedvault.exchange import TagExchange
from seedvault.interaction import InteractionService, PromptResult
from seedvault.medium import SimulatedTagMedium
from seedvault.storage import MemorySettingsStore, SeedStorage
from seedvault.vault import SeedVault


class ScriptedInteraction(InteractionService):
    """Records every dialog and answers confirms/prompts from queues.

    Unanswered confirms and prompts resolve as a cancel, the same as a
    dismissed dialog.
    """

    def __init__(self):
        self.alerts = []
        self.confirms = []
        self.prompts = []
        self.clipboard = []
        self.confirm_answers = deque()
        self.prompt_answers = deque()

    def answer_confirm(self, *answers):
        self.confirm_answers.extend(answers)

    def answer_prompt(self, text, result=True):
        self.prompt_answers.append(PromptResult(result=result, text=text))

    async def alert(self, message):
        self.alerts.append(message)

    async def confirm(self, options):
        self.confirms.append(options)
        return self.confirm_answers.popleft() if self.confirm_answers else False

    async def prompt(self, options):
        self.prompts.append(options)
        return self.prompt_answers.popleft() if self.prompt_answers else PromptResult(result=False)

    async def copy_to_clipboard(self, text):
        self.clipboard.append(text)


@pytest.fixture
def cipher():
    return SeedCipher(time_cost=1, memory_cost=64, parallelism=1)


@pytest.fixture
def interaction():
    return ScriptedInteraction()


@pytest.fixture
def settings():
    return MemorySettingsStore()


@pytest.fixture
def storage(settings):
    return SeedStorage(settings)


@pytest.fixture
def vault(storage, cipher, interaction):
    v = SeedVault(storage, cipher, interaction)
    v.load()
    return v


@pytest.fixture
def medium():
    return SimulatedTagMedium()


@pytest.fixture
def exchange(vault, medium, interaction):
    return TagExchange(vault, medium, interaction, write_timeout=2)


@pytest.fixture
def wait_until():
    """Return a coroutine function polling ``predicate`` until true or timeout."""
    async def _wait(predicate, timeout=2.0):
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                raise AssertionError("condition not reached in time")
            await asyncio.sleep(0.01)
    return _wait

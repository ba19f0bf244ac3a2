"""
Importing seeds from tags and writing seeds to tags.

A tag carries one NDEF text record holding ``{"name": ..., "encryptedSeed": ...}``.
Reading a tag whose ciphertext is already in the vault only reports the
match; a new ciphertext is imported after the user confirms.
"""

import json
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from . import config
from .errors import MediumError, PayloadFormatError, PersistenceError
from .interaction import ConfirmOptions, InteractionService
from .medium import ListenerOptions, NdefData, TagData, TagMedium
from .storage import VaultEntry
from .vault import SeedVault

logger = logging.getLogger(__name__)

PAYLOAD_KEYS = {'name', 'encryptedSeed'}


class ExchangeState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    PAYLOAD_RECEIVED = "payload_received"
    DUPLICATE = "duplicate"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    IMPORTED = "imported"
    DISCARDED = "discarded"


class ImportOutcome(Enum):
    DUPLICATE = "duplicate"
    IMPORTED = "imported"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class TagPayload:
    label: str
    ciphertext: str


def parse_payload(text: str) -> TagPayload:
    """
    Decode a tag text record.

    Raises:
        PayloadFormatError: Unless ``text`` is a JSON object with exactly the
            string fields ``name`` and ``encryptedSeed``
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise PayloadFormatError("Tag does not contain JSON") from e

    if not isinstance(data, dict) or set(data) != PAYLOAD_KEYS:
        raise PayloadFormatError("Tag does not contain an encrypted seed")
    if not isinstance(data['name'], str) or not isinstance(data['encryptedSeed'], str):
        raise PayloadFormatError("Tag seed fields must be text")
    if not data['encryptedSeed']:
        raise PayloadFormatError("Tag seed is empty")
    return TagPayload(label=data['name'], ciphertext=data['encryptedSeed'])


def serialize_entry(entry: VaultEntry) -> str:
    return json.dumps(entry.to_dict())


class TagExchange:
    """Moves encrypted seeds between the vault and a tag medium."""

    def __init__(self, vault: SeedVault, medium: TagMedium, interaction: InteractionService,
                 write_timeout: float = config.TAG_WRITE_TIMEOUT_SECONDS):
        self.vault = vault
        self.medium = medium
        self.interaction = interaction
        self.write_timeout = write_timeout
        self.state = ExchangeState.IDLE
        self.status = config.STATUS_IDLE
        self.last_tag_id: Optional[str] = None
        self._confirm_lock = asyncio.Lock()
        self._state_listeners: List[Callable[[ExchangeState], None]] = []
        self._status_listeners: List[Callable[[str], None]] = []

    def on_state_change(self, listener: Callable[[ExchangeState], None]) -> None:
        self._state_listeners.append(listener)

    def on_status_change(self, listener: Callable[[str], None]) -> None:
        self._status_listeners.append(listener)

    # Capability probes

    async def check_available(self) -> bool:
        return await self._probe("Available", self.medium.check_available)

    async def check_enabled(self) -> bool:
        return await self._probe("Enabled", self.medium.check_enabled)

    async def _probe(self, name: str, probe: Callable[[], Awaitable[bool]]) -> bool:
        try:
            result = await probe()
        except MediumError as e:
            logger.error(f"{name} probe failed: {e}")
            await self.interaction.alert(str(e))
            return False
        logger.info(f"{name}? {result}")
        await self.interaction.alert(str(result).lower())
        return result

    # Discovery listener

    async def start_tag_listener(self) -> bool:
        try:
            await self.medium.start_discovery_listener(self._on_tag_discovered)
        except MediumError as e:
            logger.error(f"Could not start tag listener: {e}")
            await self.interaction.alert(str(e))
            return False
        logger.info("OnTagDiscovered listener set")
        return True

    async def stop_tag_listener(self) -> None:
        await self.medium.stop_discovery_listener()
        logger.info("OnTagDiscovered listener cleared")

    async def _on_tag_discovered(self, data: TagData) -> None:
        self.last_tag_id = data.id
        logger.info(f"Tag discovered! {data.id}")

    # Import

    async def start_listening(self, stop_after_first_read: bool = True,
                              scan_hint: str = config.TAG_SCAN_HINT) -> bool:
        try:
            await self.medium.start_payload_listener(
                self._on_ndef_discovered,
                ListenerOptions(stop_after_first_read=stop_after_first_read, scan_hint=scan_hint),
            )
        except MediumError as e:
            logger.error(f"Could not start NDEF listener: {e}")
            await self.interaction.alert(str(e))
            return False
        self._set_state(ExchangeState.LISTENING)
        self._set_status("Listening...")
        return True

    async def stop_listening(self) -> None:
        await self.medium.stop_payload_listener()
        self._set_state(ExchangeState.IDLE)
        self._set_status("Stopped listening.")

    async def _on_ndef_discovered(self, data: NdefData) -> None:
        for record in data.message:
            logger.debug(f"Read record {list(record.id)} from tag {data.id}")
            try:
                await self.handle_payload(record.payload_as_string)
            except PayloadFormatError as e:
                logger.warning(f"Ignoring unreadable record on tag {data.id}: {e}")
                await self.interaction.alert(f"Unreadable tag: {e}")
            except PersistenceError as e:
                await self.interaction.alert(f"Import failed: {e}")
        self._settle()

    async def handle_payload(self, text: str) -> ImportOutcome:
        """
        Run one tag payload through the import decision.

        Raises:
            PayloadFormatError: If ``text`` is not a seed payload
            PersistenceError: If the confirmed import cannot be saved
        """
        async with self._confirm_lock:
            try:
                return await self._import(text)
            finally:
                self._settle()

    async def _import(self, text: str) -> ImportOutcome:
        self._set_state(ExchangeState.PAYLOAD_RECEIVED)
        payload = parse_payload(text)

        if await self._report_duplicate(payload):
            return ImportOutcome.DUPLICATE

        self._set_state(ExchangeState.AWAITING_CONFIRMATION)
        confirmed = await self.interaction.confirm(ConfirmOptions(
            title=config.IMPORT_SEED_TITLE,
            message=config.IMPORT_SEED_MESSAGE,
            ok_text="Import",
            cancel_text="Cancel",
        ))
        logger.debug(f"Import dialog result: {confirmed}")
        if not confirmed:
            self._set_state(ExchangeState.DISCARDED)
            return ImportOutcome.DISCARDED

        # The vault may have changed while the dialog was open
        if await self._report_duplicate(payload):
            return ImportOutcome.DUPLICATE

        self.vault.import_entry(payload.label, payload.ciphertext)
        self._set_state(ExchangeState.IMPORTED)
        self._set_status(f"Read: {text}")
        await self.interaction.alert("New seed import successful!")
        return ImportOutcome.IMPORTED

    async def _report_duplicate(self, payload: TagPayload) -> bool:
        index = self.vault.lookup_by_ciphertext(payload.ciphertext)
        if index is None:
            return False
        self._set_state(ExchangeState.DUPLICATE)
        existing = self.vault.entry_at(index)
        logger.info(f"Scanned tag matches existing seed {existing.label}")
        await self.interaction.alert(f"The scanned tag matched with existing seed: {existing.label}")
        return True

    # Export and utility writes

    async def export_entry(self, ciphertext: str) -> bool:
        """Confirm, then write the seed identified by ``ciphertext`` to the next tag."""
        confirmed = await self.interaction.confirm(ConfirmOptions(
            title=config.WRITE_SEED_TITLE,
            message=config.WRITE_SEED_MESSAGE,
            ok_text="Write NFC",
            cancel_text="Cancel",
        ))
        logger.debug(f"Write dialog result: {confirmed}")
        if not confirmed:
            return False

        index = self.vault.lookup_by_ciphertext(ciphertext)
        if index is None:
            await self.interaction.alert("This seed is no longer in the vault")
            return False
        entry = self.vault.entry_at(index)

        message = "NFC tag updated, wrote encrypted seed phrase!"
        if not await self._write(self.medium.write_text(serialize_entry(entry)), message):
            return False
        logger.info(f"Wrote seed {entry.label} to tag")
        await self.interaction.alert(message)
        return True

    async def write_uri(self, uri: str) -> bool:
        return await self._write(self.medium.write_uri(uri), f"Wrote uri '{uri}'")

    async def erase_tag(self) -> bool:
        return await self._write(self.medium.erase(), "Tag erased")

    async def _with_timeout(self, operation: Awaitable[None]) -> None:
        try:
            await asyncio.wait_for(operation, self.write_timeout)
        except asyncio.TimeoutError as e:
            raise MediumError("Timed out waiting for a tag") from e

    async def _write(self, operation: Awaitable[None], status: str) -> bool:
        try:
            await self._with_timeout(operation)
        except MediumError as e:
            logger.error(f"Tag write failed: {e}")
            await self.interaction.alert(f"Tag write failed: {e}")
            return False
        self._set_status(status)
        return True

    def _settle(self) -> None:
        self._set_state(ExchangeState.LISTENING if self.medium.is_listening else ExchangeState.IDLE)

    def _set_state(self, state: ExchangeState) -> None:
        if state is self.state:
            return
        logger.debug(f"Exchange state {self.state.value} -> {state.value}")
        self.state = state
        for listener in list(self._state_listeners):
            listener(state)

    def _set_status(self, status: str) -> None:
        self.status = status
        for listener in list(self._status_listeners):
            listener(status)

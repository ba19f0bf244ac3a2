"""
The seed vault: the ordered collection of encrypted seeds.

SECURITY NOTICE:
Decrypted seeds are handed to the interaction service and returned to the
caller; the vault itself never keeps them.
"""

import asyncio
import logging
from typing import Callable, Iterator, List, Optional

from . import config
from .crypto import SeedCipher
from .errors import DecryptionError, EncryptionError, EntryNotFoundError, PersistenceError
from .interaction import ConfirmOptions, InputType, InteractionService, PromptOptions
from .storage import SeedStorage, VaultEntry

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], None]


class SeedVault:
    """
    Owns the seed list, newest first.

    Entries are identified by their ciphertext; positions are only used as
    the handle for decrypt and remove. Every mutation rewrites the whole list
    to storage, and a failed write leaves the in-memory list untouched.
    """

    def __init__(self, storage: SeedStorage, cipher: SeedCipher, interaction: InteractionService):
        self.storage = storage
        self.cipher = cipher
        self.interaction = interaction
        self._entries: List[VaultEntry] = []
        self._listeners: List[ChangeListener] = []

    def load(self) -> None:
        """Replace the in-memory list with what storage holds."""
        self._entries = self.storage.load()
        logger.info(f"Vault loaded with {len(self._entries)} seeds")
        self._notify()

    @property
    def entries(self) -> List[VaultEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[VaultEntry]:
        return iter(list(self._entries))

    def entry_at(self, index: int) -> VaultEntry:
        if not 0 <= index < len(self._entries):
            raise EntryNotFoundError(f"No seed at position {index}")
        return self._entries[index]

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Call ``listener`` after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def lookup_by_ciphertext(self, ciphertext: str) -> Optional[int]:
        """Position of the first entry with exactly this ciphertext, or None."""
        for i, entry in enumerate(self._entries):
            if entry.ciphertext == ciphertext:
                return i
        return None

    def create_entry(self, plaintext: str, passphrase: str) -> VaultEntry:
        """
        Encrypt a seed and add it to the top of the vault.

        The label is ``#<count + 1>``. No duplicate check is made here; only
        the tag import path deduplicates.

        Raises:
            EncryptionError: If the cipher fails
            PersistenceError: If the vault cannot be saved
        """
        return self._add_encrypted(self.cipher.encrypt(plaintext, passphrase))

    def _add_encrypted(self, ciphertext: str) -> VaultEntry:
        entry = VaultEntry(label=f"#{len(self._entries) + 1}", ciphertext=ciphertext)
        self._insert(entry)
        logger.info(f"Created seed {entry.label}")
        return entry

    def import_entry(self, label: str, ciphertext: str) -> VaultEntry:
        """Add an entry exactly as read from a tag. Callers check for duplicates first."""
        entry = VaultEntry(label=label, ciphertext=ciphertext)
        self._insert(entry)
        logger.info(f"Imported seed {entry.label}")
        return entry

    def remove_entry(self, index: int) -> VaultEntry:
        entry = self.entry_at(index)
        del self._entries[index]
        self._commit(lambda: self._entries.insert(index, entry))
        logger.info(f"Removed seed {entry.label}")
        return entry

    def decrypt(self, index: int, passphrase: str) -> str:
        return self.cipher.decrypt(self.entry_at(index).ciphertext, passphrase)

    async def decrypt_entry(self, index: int, passphrase: str) -> str:
        """
        Decrypt a seed and show it to the user, offering a clipboard copy.

        Raises:
            DecryptionError: On a wrong password or corrupt ciphertext
        """
        ciphertext = self.entry_at(index).ciphertext
        # Key derivation is slow; keep the event loop (and tag polling) running
        plaintext = await asyncio.get_running_loop().run_in_executor(
            None, self.cipher.decrypt, ciphertext, passphrase)
        copy = await self.interaction.confirm(ConfirmOptions(
            title=config.DECRYPTED_SEED_TITLE,
            message=plaintext,
            ok_text="Copy to clipboard",
            cancel_text="Ok",
        ))
        if copy:
            await self.interaction.copy_to_clipboard(plaintext)
            await self.interaction.alert("Saved to clipboard")
        return plaintext

    async def encrypt_with_prompt(self, plaintext: str) -> Optional[VaultEntry]:
        """Ask for a password and encrypt ``plaintext``. Returns None if cancelled or failed."""
        if not plaintext or not plaintext.strip():
            await self.interaction.alert("Enter a seed phrase first")
            return None

        reply = await self.interaction.prompt(PromptOptions(
            title=config.ENCRYPT_SEED_TITLE,
            message=config.ENCRYPT_SEED_MESSAGE,
            ok_text="Encrypt",
            cancel_text="Cancel",
            input_type=InputType.PASSWORD,
        ))
        if not reply.result:
            return None

        try:
            ciphertext = await asyncio.get_running_loop().run_in_executor(
                None, self.cipher.encrypt, plaintext, reply.text)
            return self._add_encrypted(ciphertext)
        except (EncryptionError, PersistenceError) as e:
            logger.error(f"Could not add seed: {e}")
            await self.interaction.alert(f"Could not add seed: {e}")
            return None

    async def decrypt_with_prompt(self, index: int) -> bool:
        """Ask for the password of the seed at ``index`` and show it. Returns True if shown."""
        entry = self.entry_at(index)
        reply = await self.interaction.prompt(PromptOptions(
            title=config.DECRYPT_SEED_TITLE,
            message=config.DECRYPT_SEED_MESSAGE,
            ok_text="Decrypt",
            cancel_text="Cancel",
            input_type=InputType.PASSWORD,
        ))
        if not reply.result:
            return False

        # Positions may have shifted while the prompt was open
        index = self.lookup_by_ciphertext(entry.ciphertext)
        if index is None:
            await self.interaction.alert(f"Seed {entry.label} is no longer in the vault")
            return False

        try:
            await self.decrypt_entry(index, reply.text)
        except DecryptionError as e:
            logger.warning(f"Decryption of seed {entry.label} failed: {e}")
            await self.interaction.alert(f"Could not decrypt seed {entry.label}: {e}")
            return False
        return True

    def _insert(self, entry: VaultEntry) -> None:
        self._entries.insert(0, entry)
        self._commit(lambda: self._entries.pop(0))

    def _commit(self, rollback: Callable[[], object]) -> None:
        try:
            self.storage.save(self._entries)
        except PersistenceError as e:
            logger.error(f"Saving vault failed, change rolled back: {e}")
            rollback()
            raise
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

"""
SeedVault
Copyright (c) 2025

SECURITY NOTICE AND THREAT MODEL:
Seed phrases are encrypted with a per-item password before they are stored or
written to a tag. Plaintext seeds are never persisted; they exist only while a
seed is being encrypted or immediately after it has been decrypted for display.
Keep tags and the settings file offline and treat them as sensitive material.
"""

from .errors import (
    SeedVaultError,
    EncryptionError,
    DecryptionError,
    PayloadFormatError,
    MediumError,
    PersistenceError,
    EntryNotFoundError,
)
from .storage import VaultEntry, SeedStorage
from .vault import SeedVault
from .exchange import TagExchange, ExchangeState, ImportOutcome

__all__ = [
    "SeedVaultError",
    "EncryptionError",
    "DecryptionError",
    "PayloadFormatError",
    "MediumError",
    "PersistenceError",
    "EntryNotFoundError",
    "VaultEntry",
    "SeedStorage",
    "SeedVault",
    "TagExchange",
    "ExchangeState",
    "ImportOutcome",
]

"""
Exception hierarchy for SeedVault.
"""


class SeedVaultError(Exception):
    """Base class for all SeedVault errors."""


class EncryptionError(SeedVaultError):
    """Raised when a seed cannot be encrypted."""


class DecryptionError(SeedVaultError):
    """Raised on a wrong password or a malformed/truncated ciphertext."""


class PayloadFormatError(SeedVaultError):
    """Raised when a tag payload is not a {name, encryptedSeed} JSON object."""


class MediumError(SeedVaultError):
    """Radio or tag level failure: unavailable, disabled, unsupported or removed tag."""


class PersistenceError(SeedVaultError):
    """Raised when the settings store cannot be read or written."""


class EntryNotFoundError(SeedVaultError, IndexError):
    """An operation addressed an entry that does not exist. Indicates a caller bug."""

"""
Configuration constants for the SeedVault application.
"""

import os

# Application Metadata
APP_VERSION = "1.0"  # Use: Current version of the application. Type: str. Range: Semantic versioning string (e.g., "1.0.0")
APP_AUTHOR = "SeedVault Developers"  # Use: Author of the application. Type: str. Range: Any valid string representing the author's name.
APP_NAME = "SeedVault"  # Use: Full name of the application. Type: str. Range: Any valid string.
APP_TITLE_PREFIX = f"{APP_NAME} v{APP_VERSION}"  # Use: Prefix for the application window titles, combining name and version. Type: str (f-string). Range: Derived from APP_NAME and APP_VERSION.

# Security Settings
SALT_SIZE = 16  # Use: Size of the cryptographic salt in bytes for Argon2id key derivation. Type: int. Range: Recommended to be at least 16 bytes (128 bits) for security.
KEY_SIZE = 32  # Use: Size of the encryption key in bytes. Corresponds to AES-256. Type: int. Range: 16 (AES-128), 24 (AES-192), or 32 (AES-256) bytes.
NONCE_SIZE = 12  # Use: Size of the Nonce (Number used once) in bytes for AES-GCM. Type: int. Range: 12 bytes (96 bits) is the recommended size for GCM.
ARGON2_TIME_COST = 2  # Use: Argon2id time cost parameter. Controls the number of iterations. Type: int. Range: Typically 1 to 10. Higher values increase security but also computation time.
ARGON2_MEMORY_COST = 65536  # Use: Argon2id memory cost parameter. Controls the memory usage in KiB. Type: int. Range: At least 8 * ARGON2_PARALLELISM; recommended to be at least 65536 (64 MB).
ARGON2_PARALLELISM = 4  # Use: Argon2id parallelism parameter. Controls the number of threads/lanes. Type: int. Range: Typically 1 to 8, often set to the number of CPU cores.
CIPHERTEXT_MAGIC = b'SVSD'  # Use: Magic bytes prefixed to every ciphertext produced by this application, before base64 encoding. Type: bytes. Range: Exactly 4 bytes.
CIPHERTEXT_VERSION = 1  # Use: Version of the ciphertext envelope format. Type: int. Range: 0-255.
LEGACY_CIPHERTEXT_PREFIX = "U2FsdGVkX1"  # Use: Base64 prefix of OpenSSL "Salted__" ciphertexts written by earlier releases. Type: str. Range: Fixed value.

# Persistence Settings
SEEDS_STORE_KEY = "seeds"  # Use: Logical key in the settings store holding the serialized seed list. Type: str. Range: Any non-empty string.
CONFIG_DIR_NAME = ".seedvault"  # Use: Name of the hidden directory within the user's home directory where SeedVault stores its settings and tag files. Type: str. Range: Any valid directory name.
SETTINGS_FILE = "settings.json"  # Use: Filename of the key-value settings store. Type: str. Range: Any valid filename.
DEFAULT_TAG_FILE = "tag.json"  # Use: Default filename used by the file-backed tag medium. Type: str. Range: Any valid filename.
DEFAULT_CONFIG_DIR = os.path.join(os.path.expanduser("~"), CONFIG_DIR_NAME)  # Use: Absolute path of the configuration directory. Type: str. Range: Derived from the user's home directory.

# Tag Medium Settings
TAG_WRITE_TIMEOUT_SECONDS = 60  # Use: Maximum time to wait for a tag to be presented for a write or erase. Type: int. Range: Positive integer.
TAG_POLL_INTERVAL_SECONDS = 0.5  # Use: Interval at which the file-backed tag medium checks for tag presence and changes. Type: float. Range: Positive number.
TAG_SCAN_HINT = "Hold your tag near the device"  # Use: Hint shown by mediums that display a scan prompt. Type: str. Range: Any descriptive string.
TEXT_RECORD_ID = (1,)  # Use: NDEF record id used for seed text records. Type: tuple[int]. Range: Byte values.
URI_RECORD_ID = (2, 5)  # Use: NDEF record id used for URI records. Type: tuple[int]. Range: Byte values.

# UI Settings
CLIPBOARD_CLEAR_TIMEOUT_DEFAULT_SECONDS = 30  # Use: Default timeout in seconds after which a copied seed is cleared from the clipboard. Type: int. Range: Positive integer.
CLIPBOARD_CLEAR_TIMEOUT_DEFAULT = CLIPBOARD_CLEAR_TIMEOUT_DEFAULT_SECONDS * 1000  # Use: Default clipboard clear timeout in milliseconds. Derived from CLIPBOARD_CLEAR_TIMEOUT_DEFAULT_SECONDS. Type: int. Range: Derived value.
ASYNC_PUMP_INTERVAL_MS = 20  # Use: Interval at which the Qt event loop drives the asyncio event loop. Type: int. Range: Positive integer, small enough to keep tag polling responsive.
CIPHERTEXT_PREVIEW_LENGTH = 24  # Use: Number of ciphertext characters shown in the seed table. Type: int. Range: Positive integer.
APP_STYLE = 'Fusion'  # Use: PyQt5 application style. Type: str. Range: Valid PyQt5 style names (e.g., 'Fusion', 'Windows', 'Macintosh').

# Dialog Strings
STATUS_IDLE = "Press a button..."  # Use: Initial exchange status text. Type: str. Range: Any string.
ENCRYPT_SEED_TITLE = "Encrypt seed"  # Use: Title of the password prompt used to encrypt a new seed. Type: str. Range: Any string.
ENCRYPT_SEED_MESSAGE = "Choose a password for this seed. You will need it to decrypt the seed later."  # Use: Message of the encrypt prompt. Type: str. Range: Any string.
DECRYPT_SEED_TITLE = "Decrypt seed"  # Use: Title of the password prompt used to decrypt a seed. Type: str. Range: Any string.
DECRYPT_SEED_MESSAGE = "Use the password you provided earlier for this seed"  # Use: Message of the decrypt prompt. Type: str. Range: Any string.
DECRYPTED_SEED_TITLE = "Decrypted seed"  # Use: Title of the dialog displaying a decrypted seed. Type: str. Range: Any string.
IMPORT_SEED_TITLE = "New seed detected"  # Use: Title of the tag import confirmation. Type: str. Range: Any string.
IMPORT_SEED_MESSAGE = "New encrypted seed detected! Import now?"  # Use: Message of the tag import confirmation. Type: str. Range: Any string.
WRITE_SEED_TITLE = "Write seed to NFC"  # Use: Title of the tag export confirmation. Type: str. Range: Any string.
WRITE_SEED_MESSAGE = "Tap and hold your NFC tag near your device, press 'Write NFC' when ready!"  # Use: Message of the tag export confirmation. Type: str. Range: Any string.

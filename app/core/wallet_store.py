"""
Embedded Wallet Key Store

This module manages the single self-custodial key pair that represents a user's
on-device wallet. The key pair is a secp256k1 account key; the 0x address is
derived from it on load, so the stored address is never trusted on its own.

Flow:
1. Client asks for its wallet -> get_or_create()
2. If a record exists under the storage key it is returned (is_new=False)
3. Otherwise a fresh key is generated, persisted and returned (is_new=True)
4. On explicit sign-out -> clear(), the next get_or_create() yields a new address

Storage and encryption are injected:
- KeyValueStorage: where the record lives (memory, JSON file, or nothing)
- KeyCipher: how the private key is written (passthrough or Fernet)

The default PassthroughCipher stores the private key in plaintext, matching
the payload format existing devices already hold. Pass a FernetCipher to
encrypt at rest without changing callers.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, NamedTuple, Optional, Protocol, Tuple

from cryptography.fernet import Fernet, InvalidToken
from eth_account import Account

from app.core.config import settings

logger = logging.getLogger(__name__)

WALLET_STORAGE_KEY = "renaissance_embedded_wallet"


@dataclass(frozen=True)
class WalletRecord:
    address: str
    private_key: str  # 0x prefixed hex


class WalletHandle(NamedTuple):
    address: str
    private_key: str
    is_new: bool


# ---------------------------------------------------------------------------
# Storage backends
# ---------------------------------------------------------------------------


class KeyValueStorage(Protocol):
    available: bool

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage, used by tests and short-lived tools."""

    available = True

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """
    Device-local storage backed by a single JSON document.

    Writes go to a temp file in the same directory and are moved into place
    with os.replace, so a crash never leaves a half-written document.
    """

    available = True

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as file:
                data = json.load(file)
        except (OSError, ValueError) as exc:
            logger.warning("wallet storage unreadable at %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".wallet-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file:
                json.dump(data, file)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


class UnavailableStorage:
    """Platform without a persistent local store: nothing is ever kept."""

    available = False

    def get(self, key: str) -> Optional[str]:
        return None

    def set(self, key: str, value: str) -> None:
        return None

    def delete(self, key: str) -> None:
        return None


# ---------------------------------------------------------------------------
# Key ciphers
# ---------------------------------------------------------------------------


class KeyCipher(Protocol):
    def encrypt(self, private_key: str) -> str: ...

    def decrypt(self, stored: str) -> str: ...


class PassthroughCipher:
    """No encryption. Key material is stored as given."""

    def encrypt(self, private_key: str) -> str:
        return private_key

    def decrypt(self, stored: str) -> str:
        return stored


class FernetCipher:
    """Symmetric encryption at rest with a caller-provided Fernet key."""

    def __init__(self, key: str | bytes):
        self._fernet = Fernet(key)

    def encrypt(self, private_key: str) -> str:
        return self._fernet.encrypt(private_key.encode()).decode()

    def decrypt(self, stored: str) -> str:
        try:
            return self._fernet.decrypt(stored.encode()).decode()
        except InvalidToken as exc:
            raise ValueError("stored key cannot be decrypted") from exc


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------

_registry_lock = threading.Lock()
_key_locks: Dict[str, threading.RLock] = {}


def _lock_for(storage_key: str) -> threading.RLock:
    with _registry_lock:
        lock = _key_locks.get(storage_key)
        if lock is None:
            lock = threading.RLock()
            _key_locks[storage_key] = lock
        return lock


def derive_address(private_key: str) -> str:
    """Checksummed 0x address for a hex encoded private key."""
    return Account.from_key(private_key).address


class WalletKeyStore:
    """One wallet per storage key, read and written under a per-key lock."""

    def __init__(
        self,
        storage: KeyValueStorage,
        cipher: Optional[KeyCipher] = None,
        storage_key: str = WALLET_STORAGE_KEY,
    ):
        self.storage = storage
        self.cipher = cipher or PassthroughCipher()
        self.storage_key = storage_key
        self._lock = _lock_for(storage_key)

    def generate(self) -> Tuple[str, str]:
        account = Account.create()
        return account.address, "0x" + bytes(account.key).hex()

    def persist(self, private_key: str, address: str) -> None:
        if not self.storage.available:
            return
        payload = json.dumps(
            {"address": address, "encryptedPrivateKey": self.cipher.encrypt(private_key)}
        )
        with self._lock:
            self.storage.set(self.storage_key, payload)

    def load(self) -> Optional[WalletRecord]:
        if not self.storage.available:
            return None
        raw = self.storage.get(self.storage_key)
        if not raw:
            return None

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("stored wallet payload is not valid JSON, treating as no wallet")
            return None
        if not isinstance(data, dict):
            logger.warning("stored wallet payload has unexpected shape, treating as no wallet")
            return None
        address = data.get("address")
        stored_key = data.get("encryptedPrivateKey")
        if not isinstance(address, str) or not isinstance(stored_key, str):
            logger.warning("stored wallet payload is missing fields, treating as no wallet")
            return None

        try:
            private_key = self.cipher.decrypt(stored_key)
            derived = derive_address(private_key)
        except Exception as exc:
            logger.warning("stored wallet key is unusable (%s), treating as no wallet", type(exc).__name__)
            return None
        if derived.lower() != address.lower():
            logger.warning("stored wallet address does not match its key, treating as no wallet")
            return None

        return WalletRecord(address=address, private_key=private_key)

    def has_wallet(self) -> bool:
        return self.load() is not None

    def get_or_create(self) -> Optional[WalletHandle]:
        if not self.storage.available:
            return None
        with self._lock:
            record = self.load()
            if record is not None:
                return WalletHandle(record.address, record.private_key, False)

            address, private_key = self.generate()
            self.persist(private_key, address)
            logger.info("generated embedded wallet %s", address)
            return WalletHandle(address, private_key, True)

    def clear(self) -> None:
        if not self.storage.available:
            return
        with self._lock:
            self.storage.delete(self.storage_key)


def get_wallet_store() -> WalletKeyStore:
    """Wallet store for this device, built from settings."""
    cipher = FernetCipher(settings.WALLET_ENCRYPTION_KEY) if settings.WALLET_ENCRYPTION_KEY else None
    return WalletKeyStore(
        storage=JsonFileStorage(settings.WALLET_STORE_PATH),
        cipher=cipher,
        storage_key=settings.WALLET_STORAGE_KEY,
    )

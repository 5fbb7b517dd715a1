"""Per-identity watched/to-watch lists and the credential registry."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..database import KeyValueStorage
from ..models import GUEST, Identity, MediaItem
from ..utils import dump_envelope, load_envelope, normalise_email

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
GUEST_LISTS_KEY = "lists:guest"
CREDENTIALS_KEY = "credentials"
SESSION_KEY = "session"
DEFAULT_HASH_ITERATIONS = 210_000


class StoredLists(BaseModel):
    """Serialized form of a list pair."""

    watched: list[MediaItem] = []
    watchlist: list[MediaItem] = []


class Credential(BaseModel):
    """A registered account; the secret is only kept as a salted hash."""

    display_name: str
    salt: str
    iterations: int
    password_hash: str


_REGISTRY_ADAPTER = TypeAdapter(dict[str, Credential])


@dataclass
class ListPair:
    """The watched and to-watch lists of one identity, newest first."""

    watched: list[MediaItem] = field(default_factory=list)
    watchlist: list[MediaItem] = field(default_factory=list)


def lists_key(identity: Identity) -> str:
    """Return the storage key holding the list pair of ``identity``."""

    if identity.email is None:
        return GUEST_LISTS_KEY
    digest = hashlib.sha256(normalise_email(identity.email).encode("utf-8"))
    return f"lists:account:{digest.hexdigest()}"


def hash_secret(secret: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac(
        "sha256", secret.encode("utf-8"), bytes.fromhex(salt), iterations
    ).hex()


class ListStore:
    """Owns the active identity, its list pair and the credential registry.

    Every mutation is written back to storage before the call returns. Read
    failures load as empty values, write failures propagate to the caller.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        hash_iterations: int = DEFAULT_HASH_ITERATIONS,
    ):
        self._storage = storage
        self._hash_iterations = hash_iterations
        self._identity: Identity = GUEST
        self._lists = ListPair()
        self._registry: dict[str, Credential] = {}
        self._lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        storage: KeyValueStorage,
        *,
        hash_iterations: int = DEFAULT_HASH_ITERATIONS,
    ) -> "ListStore":
        """Create a store and restore the registry, session and lists."""

        store = cls(storage, hash_iterations=hash_iterations)
        await store._restore()
        return store

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return not self._identity.is_guest

    @property
    def watched(self) -> tuple[MediaItem, ...]:
        return tuple(self._lists.watched)

    @property
    def watchlist(self) -> tuple[MediaItem, ...]:
        return tuple(self._lists.watchlist)

    def is_watched(self, media_id: int) -> bool:
        return any(item.id == media_id for item in self._lists.watched)

    def is_in_watchlist(self, media_id: int) -> bool:
        return any(item.id == media_id for item in self._lists.watchlist)

    async def add_to_watched(self, item: MediaItem) -> None:
        """Record ``item`` as watched and drop it from the to-watch list."""

        async with self._lock:
            if not self.is_watched(item.id):
                self._lists.watched.insert(0, item.with_kind())
            self._lists.watchlist = [
                entry for entry in self._lists.watchlist if entry.id != item.id
            ]
            await self._save_lists()

    async def remove_from_watched(self, media_id: int) -> None:
        async with self._lock:
            self._lists.watched = [
                entry for entry in self._lists.watched if entry.id != media_id
            ]
            await self._save_lists()

    async def add_to_watchlist(self, item: MediaItem) -> None:
        """Queue ``item``; the watched list is left untouched."""

        async with self._lock:
            if not self.is_in_watchlist(item.id):
                self._lists.watchlist.insert(0, item.with_kind())
            await self._save_lists()

    async def remove_from_watchlist(self, media_id: int) -> None:
        async with self._lock:
            self._lists.watchlist = [
                entry for entry in self._lists.watchlist if entry.id != media_id
            ]
            await self._save_lists()

    async def login(self, email: str, secret: str) -> bool:
        """Switch to the account matching the credentials, if any."""

        key = normalise_email(email)
        credential = self._registry.get(key)
        if credential is None:
            return False
        candidate = await asyncio.to_thread(
            hash_secret, secret, credential.salt, credential.iterations
        )
        if not hmac.compare_digest(candidate, credential.password_hash):
            return False
        async with self._lock:
            await self._switch_identity(
                Identity(email=key, display_name=credential.display_name)
            )
        return True

    async def register(self, email: str, secret: str, display_name: str) -> bool:
        """Create an account and log into it; fails when the email is taken."""

        key = normalise_email(email)
        name = display_name.strip()
        if not key or not secret or not name:
            return False
        async with self._lock:
            if key in self._registry:
                return False
            salt = secrets.token_hex(16)
            password_hash = await asyncio.to_thread(
                hash_secret, secret, salt, self._hash_iterations
            )
            registry = {
                **self._registry,
                key: Credential(
                    display_name=name,
                    salt=salt,
                    iterations=self._hash_iterations,
                    password_hash=password_hash,
                ),
            }
            await self._storage.set(
                CREDENTIALS_KEY,
                dump_envelope(
                    _REGISTRY_ADAPTER.dump_python(registry, mode="json"),
                    version=SCHEMA_VERSION,
                ),
            )
            self._registry = registry
            await self._switch_identity(Identity(email=key, display_name=name))
        return True

    async def logout(self) -> None:
        async with self._lock:
            await self._switch_identity(GUEST)

    async def _switch_identity(self, identity: Identity) -> None:
        self._identity = identity
        await self._storage.set(
            SESSION_KEY, dump_envelope(identity.email, version=SCHEMA_VERSION)
        )
        self._lists = await self._load_lists(identity)
        logger.info(
            "Active identity is now %s", "guest" if identity.is_guest else "an account"
        )

    async def _restore(self) -> None:
        self._registry = await self._load_registry()
        email = await self._read(SESSION_KEY)
        credential = self._registry.get(email) if isinstance(email, str) else None
        if credential is not None:
            self._identity = Identity(email=email, display_name=credential.display_name)
        else:
            self._identity = GUEST
        self._lists = await self._load_lists(self._identity)

    async def _load_registry(self) -> dict[str, Credential]:
        data = await self._read(CREDENTIALS_KEY)
        if data is None:
            return {}
        try:
            return _REGISTRY_ADAPTER.validate_python(data)
        except ValidationError as exc:
            logger.warning("Ignoring unreadable credential registry: %s", exc)
            return {}

    async def _load_lists(self, identity: Identity) -> ListPair:
        data = await self._read(lists_key(identity))
        if data is None:
            return ListPair()
        try:
            stored = StoredLists.model_validate(data)
        except ValidationError as exc:
            logger.warning("Ignoring unreadable list snapshot: %s", exc)
            return ListPair()
        return ListPair(watched=list(stored.watched), watchlist=list(stored.watchlist))

    async def _read(self, key: str) -> Any:
        raw = await self._storage.get(key)
        if raw is None:
            return None
        try:
            return load_envelope(raw, version=SCHEMA_VERSION)
        except ValueError as exc:
            logger.warning("Ignoring stored value %s: %s", key, exc)
            return None

    async def _save_lists(self) -> None:
        snapshot = StoredLists(
            watched=self._lists.watched, watchlist=self._lists.watchlist
        )
        await self._storage.set(
            lists_key(self._identity),
            dump_envelope(
                snapshot.model_dump(mode="json", exclude_none=True),
                version=SCHEMA_VERSION,
            ),
        )

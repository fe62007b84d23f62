"""Persistent per-identity store of delegated credentials.

The whole map lives in memory and is mirrored to a single JSON file on every
mutation (whole-file rewrite). Last write wins; there is no stronger durability
guarantee than that.
"""

import asyncio
import json
import os
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer

from src.auth.errors import StoreIOError
from src.utils.logger import get_logger

logger = get_logger("teams_gateway.auth.token_store")


class CredentialRecord(BaseModel):
    """Cached delegated credential for one identity.

    ``expires_at`` is the token's real expiry minus the safety margin, i.e. the
    moment from which the record must be refreshed before use.
    """

    identity: str = Field(exclude=True)
    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    expires_at: datetime = Field(alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_serializer("expires_at")
    def _serialize_expires_at(self, value: datetime) -> str:
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

    def is_fresh(self, now: datetime) -> bool:
        """True while ``now`` is before the margin-adjusted expiry."""
        return now < self.expires_at


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CredentialStore:
    """In-memory credential map with write-through JSON persistence."""

    def __init__(self, store_path: str | Path):
        self._store_path = Path(store_path)
        self._records: dict[str, CredentialRecord] = {}
        self._write_lock = asyncio.Lock()
        self._load()

    @property
    def path(self) -> Path:
        return self._store_path

    def _load(self) -> None:
        """Load state from disk. No-op if file missing; invalid entries are skipped."""
        if not self._store_path.exists():
            return
        try:
            data = json.loads(self._store_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(
                "token_store.load_error",
                path=str(self._store_path),
                error=str(e),
            )
            return
        if not isinstance(data, dict):
            logger.warning("token_store.load_error", path=str(self._store_path), error="not a JSON object")
            return
        for identity, entry in data.items():
            try:
                record = CredentialRecord(identity=identity, **entry)
            except (TypeError, ValidationError) as e:
                logger.warning("token_store.load_skip_entry", identity=identity, error=str(e))
                continue
            self._records[identity] = record.model_copy(update={"expires_at": _as_utc(record.expires_at)})
        logger.debug("token_store.loaded", path=str(self._store_path), count=len(self._records))

    def _snapshot(self) -> dict[str, dict]:
        return {
            identity: record.model_dump(by_alias=True)
            for identity, record in self._records.items()
        }

    def _write(self, data: dict[str, dict]) -> None:
        self._store_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._store_path.with_name(self._store_path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._store_path)

    async def _persist(self) -> None:
        """Rewrite the whole file from the current in-memory map. Writes are serialized."""
        async with self._write_lock:
            data = self._snapshot()
            try:
                await asyncio.to_thread(self._write, data)
            except OSError as e:
                logger.error(
                    "token_store.save_error",
                    path=str(self._store_path),
                    error=str(e),
                )
                raise StoreIOError(f"failed to write {self._store_path}: {e}") from e

    def get(self, identity: str) -> CredentialRecord | None:
        return self._records.get(identity)

    def identities(self) -> list[str]:
        return sorted(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, identity: object) -> bool:
        return identity in self._records

    async def put(self, record: CredentialRecord) -> None:
        """Insert or replace ``record``; memory is updated even if the write fails."""
        self._records[record.identity] = record.model_copy(
            update={"expires_at": _as_utc(record.expires_at)}
        )
        await self._persist()

    async def evict(self, identity: str) -> bool:
        """Drop ``identity``. Returns True if an entry was removed."""
        if self._records.pop(identity, None) is None:
            return False
        await self._persist()
        return True

    async def clear(self) -> None:
        self._records.clear()
        await self._persist()

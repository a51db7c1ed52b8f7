import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import ValidationError

from fixflow.workflow.errors import CorruptRecord, VersionConflict
from fixflow.workflow.models import FlowSession

logger = logging.getLogger(__name__)


def serialize_session(session: FlowSession) -> Dict[str, Any]:
    return session.model_dump(mode="json")


def deserialize_session(owner_id: str, raw: Dict[str, Any]) -> FlowSession:
    try:
        return FlowSession.model_validate(raw)
    except ValidationError as e:
        logger.error(f"Stored flow for owner {owner_id} could not be decoded: {e}")
        raise CorruptRecord(f"Corrupt flow record for owner {owner_id}") from e


class FlowStore(ABC):
    """
    Keyed persistence for flow sessions, one record per owner.

    Implementations raise StorageFailure for backend errors (CorruptRecord for
    payloads that cannot be decoded) and VersionConflict when `expected_version` does not match the stored record.
    """

    @abstractmethod
    async def get(self, owner_id: str) -> Optional[FlowSession]:
        pass

    @abstractmethod
    async def upsert(self, owner_id: str, session: FlowSession, expected_version: Optional[int] = None) -> None:
        """
        Insert or replace the owner's session. With expected_version set, the
        write only succeeds if a record exists at exactly that version.
        """
        pass

    @abstractmethod
    async def delete(self, owner_id: str, expected_version: Optional[int] = None) -> None:
        """
        Remove the owner's session; missing records are not an error. With
        expected_version set, a record at any other version is left in place
        and VersionConflict is raised.
        """
        pass

    @abstractmethod
    async def delete_expired(self, cutoff: datetime) -> int:
        """Remove every session last updated before cutoff. Returns the count removed."""
        pass

    async def close(self) -> None:
        pass


class InMemoryFlowStore(FlowStore):
    """
    Process-local store for tests and development. Sessions are kept in their
    JSON form so callers never share mutable state with the store.
    """

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get(self, owner_id: str) -> Optional[FlowSession]:
        raw = self._records.get(owner_id)
        if raw is None:
            return None
        return deserialize_session(owner_id, raw)

    async def upsert(self, owner_id: str, session: FlowSession, expected_version: Optional[int] = None) -> None:
        async with self._lock:
            if expected_version is not None:
                current = self._records.get(owner_id)
                actual = current.get("version") if current else None
                if actual != expected_version:
                    raise VersionConflict(owner_id, expected_version, actual)
            self._records[owner_id] = serialize_session(session)

    async def delete(self, owner_id: str, expected_version: Optional[int] = None) -> None:
        async with self._lock:
            current = self._records.get(owner_id)
            if current is None:
                return
            if expected_version is not None and current.get("version") != expected_version:
                raise VersionConflict(owner_id, expected_version, current.get("version"))
            del self._records[owner_id]

    async def delete_expired(self, cutoff: datetime) -> int:
        async with self._lock:
            expired = [
                owner_id for owner_id, raw in self._records.items()
                if deserialize_session(owner_id, raw).updated_at < cutoff
            ]
            for owner_id in expired:
                del self._records[owner_id]
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)


def build_flow_store(backend: Optional[str] = None) -> FlowStore:
    """
    Select the store implementation from configuration (FLOW_STORE_BACKEND).
    """
    from fixflow.core.settings import settings

    backend = backend or settings.flow.store_backend
    if backend == "memory":
        return InMemoryFlowStore()
    if backend == "database":
        from fixflow.db.session import get_sessionmaker
        from fixflow.services.sql_flow_store import SQLFlowStore
        return SQLFlowStore(get_sessionmaker())
    if backend == "redis":
        from fixflow.core.cache import CacheClient
        from fixflow.services.redis_flow_store import RedisFlowStore
        return RedisFlowStore(
            CacheClient.get_client(),
            key_prefix=settings.flow.redis_key_prefix,
            expire_seconds=int(settings.flow.ttl_minutes * 60 * 2),
        )
    raise ValueError(f"Unknown flow store backend '{backend}'")

import json
import logging
from datetime import datetime
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from fixflow.services.flow_store import FlowStore, serialize_session, deserialize_session
from fixflow.workflow.errors import CorruptRecord, StorageFailure, VersionConflict
from fixflow.workflow.models import FlowSession

logger = logging.getLogger(__name__)


class RedisFlowStore(FlowStore):
    """
    Distributed-cache store. One JSON document per owner; the version check
    uses WATCH/MULTI. Keys carry a native expiry as storage hygiene only,
    the engine still enforces the TTL on read.
    """

    def __init__(self, client: redis.Redis, key_prefix: str = "fixflow:flow:", expire_seconds: Optional[int] = None):
        self.client = client
        self.key_prefix = key_prefix
        self.expire_seconds = expire_seconds

    def _key(self, owner_id: str) -> str:
        return f"{self.key_prefix}{owner_id}"

    def _decode(self, owner_id: str, raw) -> FlowSession:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Stored flow for owner {owner_id} is not valid JSON: {e}")
            raise CorruptRecord(f"Corrupt flow record for owner {owner_id}") from e
        return deserialize_session(owner_id, data)

    async def get(self, owner_id: str) -> Optional[FlowSession]:
        try:
            raw = await self.client.get(self._key(owner_id))
        except RedisError as e:
            logger.error(f"Redis flow get failed for owner {owner_id}: {e}")
            raise StorageFailure(f"Could not load flow for owner {owner_id}") from e
        if raw is None:
            return None
        return self._decode(owner_id, raw)

    async def upsert(self, owner_id: str, session: FlowSession, expected_version: Optional[int] = None) -> None:
        key = self._key(owner_id)
        payload = json.dumps(serialize_session(session))
        try:
            if expected_version is None:
                await self.client.set(key, payload, ex=self.expire_seconds)
                return

            async with self.client.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                raw = await pipe.get(key)
                actual = self._decode(owner_id, raw).version if raw is not None else None
                if actual != expected_version:
                    await pipe.unwatch()
                    raise VersionConflict(owner_id, expected_version, actual)
                pipe.multi()
                pipe.set(key, payload, ex=self.expire_seconds)
                await pipe.execute()
        except WatchError as e:
            # Someone wrote the key between WATCH and EXEC
            raise VersionConflict(owner_id, expected_version, None) from e
        except RedisError as e:
            logger.error(f"Redis flow save failed for owner {owner_id}: {e}")
            raise StorageFailure(f"Could not save flow for owner {owner_id}") from e

    async def delete(self, owner_id: str, expected_version: Optional[int] = None) -> None:
        key = self._key(owner_id)
        try:
            if expected_version is None:
                await self.client.delete(key)
                return

            async with self.client.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                raw = await pipe.get(key)
                if raw is None:
                    await pipe.unwatch()
                    return
                actual = self._decode(owner_id, raw).version
                if actual != expected_version:
                    await pipe.unwatch()
                    raise VersionConflict(owner_id, expected_version, actual)
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
        except WatchError as e:
            raise VersionConflict(owner_id, expected_version, None) from e
        except RedisError as e:
            logger.error(f"Redis flow delete failed for owner {owner_id}: {e}")
            raise StorageFailure(f"Could not delete flow for owner {owner_id}") from e

    async def delete_expired(self, cutoff: datetime) -> int:
        removed = 0
        try:
            async for key in self.client.scan_iter(match=f"{self.key_prefix}*"):
                raw = await self.client.get(key)
                if raw is None:
                    continue
                owner_id = key[len(self.key_prefix):] if isinstance(key, str) else key.decode()[len(self.key_prefix):]
                try:
                    updated_at = self._decode(owner_id, raw).updated_at
                except CorruptRecord:
                    # Left for start_flow to overwrite; the native key expiry drops it otherwise
                    logger.warning(f"Skipping undecodable flow record {key} during cleanup")
                    continue
                if updated_at < cutoff:
                    removed += await self.client.delete(key)
        except RedisError as e:
            logger.error(f"Redis expired flow cleanup failed: {e}")
            raise StorageFailure("Could not delete expired flows") from e
        return removed

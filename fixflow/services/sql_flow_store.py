
from datetime import datetime
from typing import Optional
import logging

from sqlalchemy import select, update, delete, insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from fixflow.db.models import FlowStateRecord
from fixflow.services.flow_store import FlowStore, serialize_session, deserialize_session
from fixflow.workflow.errors import StorageFailure, VersionConflict
from fixflow.workflow.models import FlowSession

logger = logging.getLogger(__name__)

def _upsert_statement(dialect_name: str, owner_id: str, values: dict):
    """
    Single-statement insert-or-replace keyed on owner_id, so concurrent first
    writes for one owner cannot collide. Other dialects get a plain INSERT and
    the caller falls back to UPDATE on IntegrityError.
    """
    row = {"owner_id": owner_id, **values}
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert
        stmt = sqlite_insert(FlowStateRecord).values(**row)
        return stmt.on_conflict_do_update(
            index_elements=[FlowStateRecord.owner_id],
            set_={key: stmt.excluded[key] for key in values},
        )
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as pg_insert
        stmt = pg_insert(FlowStateRecord).values(**row)
        return stmt.on_conflict_do_update(
            index_elements=[FlowStateRecord.owner_id],
            set_={key: stmt.excluded[key] for key in values},
        )
    if dialect_name in ("mysql", "mariadb"):
        from sqlalchemy.dialects.mysql import insert as mysql_insert
        stmt = mysql_insert(FlowStateRecord).values(**row)
        return stmt.on_duplicate_key_update(**{key: stmt.inserted[key] for key in values})
    return insert(FlowStateRecord).values(**row)

class SQLFlowStore(FlowStore):
    """
    Durable store backed by the `flow_state` table, one row per owner.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get(self, owner_id: str) -> Optional[FlowSession]:
        try:
            async with self.session_factory() as session:
                stmt = select(FlowStateRecord).where(FlowStateRecord.owner_id == owner_id)
                result = await session.execute(stmt)
                record = result.scalars().first()
        except SQLAlchemyError as e:
            logger.error(f"Flow state load failed for owner {owner_id}: {e}")
            raise StorageFailure(f"Could not load flow for owner {owner_id}") from e

        if record is None:
            return None
        return deserialize_session(owner_id, record.payload)

    async def upsert(self, owner_id: str, flow: FlowSession, expected_version: Optional[int] = None) -> None:
        values = {
            "flow_type": flow.flow_type.value,
            "status": flow.status.value,
            "current_step": flow.current_step,
            "total_steps": flow.total_steps,
            "version": flow.version,
            "payload": serialize_session(flow),
            "updated_at": flow.updated_at,
        }
        try:
            async with self.session_factory() as session:
                if expected_version is not None:
                    # Compare-and-swap on the version column
                    stmt = (
                        update(FlowStateRecord)
                        .where(FlowStateRecord.owner_id == owner_id)
                        .where(FlowStateRecord.version == expected_version)
                        .values(**values)
                    )
                    result = await session.execute(stmt)
                    if result.rowcount == 0:
                        await session.rollback()
                        actual = await session.scalar(
                            select(FlowStateRecord.version).where(FlowStateRecord.owner_id == owner_id)
                        )
                        raise VersionConflict(owner_id, expected_version, actual)
                else:
                    await session.execute(_upsert_statement(session.bind.dialect.name, owner_id, values))

                await session.commit()
        except IntegrityError as e:
            # Dialects without a native upsert: a concurrent insert won the race
            if expected_version is not None:
                logger.error(f"Flow state save failed for owner {owner_id}: {e}")
                raise StorageFailure(f"Could not save flow for owner {owner_id}") from e
            logger.info(f"Concurrent insert for owner {owner_id}, replacing it")
            await self._replace(owner_id, values)
        except SQLAlchemyError as e:
            logger.error(f"Flow state save failed for owner {owner_id}: {e}")
            raise StorageFailure(f"Could not save flow for owner {owner_id}") from e

    async def _replace(self, owner_id: str, values: dict) -> None:
        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(FlowStateRecord).where(FlowStateRecord.owner_id == owner_id).values(**values)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Flow state save failed for owner {owner_id}: {e}")
            raise StorageFailure(f"Could not save flow for owner {owner_id}") from e

    async def delete(self, owner_id: str, expected_version: Optional[int] = None) -> None:
        try:
            async with self.session_factory() as session:
                stmt = delete(FlowStateRecord).where(FlowStateRecord.owner_id == owner_id)
                if expected_version is not None:
                    stmt = stmt.where(FlowStateRecord.version == expected_version)
                result = await session.execute(stmt)
                if expected_version is not None and result.rowcount == 0:
                    actual = await session.scalar(
                        select(FlowStateRecord.version).where(FlowStateRecord.owner_id == owner_id)
                    )
                    if actual is not None:
                        await session.rollback()
                        raise VersionConflict(owner_id, expected_version, actual)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Flow state delete failed for owner {owner_id}: {e}")
            raise StorageFailure(f"Could not delete flow for owner {owner_id}") from e

    async def delete_expired(self, cutoff: datetime) -> int:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(FlowStateRecord).where(FlowStateRecord.updated_at < cutoff)
                )
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Expired flow cleanup failed: {e}")
            raise StorageFailure("Could not delete expired flows") from e

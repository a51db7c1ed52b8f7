"""
Delete flow sessions idle past the TTL. Run from cron; expired sessions are
also dropped lazily when read, so skipping a run is harmless.
"""

import asyncio
import logging

from fixflow.core.logging import setup_logging
from fixflow.core.settings import settings
from fixflow.services.flow_store import build_flow_store
from fixflow.workflow.engine import FlowEngine

setup_logging()
logger = logging.getLogger(__name__)

async def main() -> int:
    if settings.flow.store_backend == "memory":
        logger.warning("In-memory store has nothing to reap across processes")
        return 0

    store = build_flow_store()
    try:
        removed = await FlowEngine(store).reap_expired()
    finally:
        await store.close()
        if settings.flow.store_backend == "database":
            from fixflow.db.session import dispose_engine
            await dispose_engine()
        if settings.flow.store_backend == "redis":
            from fixflow.core.cache import CacheClient
            await CacheClient.close()
    return removed

if __name__ == "__main__":
    asyncio.run(main())

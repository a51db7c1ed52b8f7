"""
Create the flow_state table for FLOW_STORE_BACKEND=database.
The API also creates it on startup; this is for provisioning ahead of time.
"""

import argparse
import asyncio
import logging

from fixflow.core.logging import setup_logging
from fixflow.core.settings import settings
from fixflow.db.models import Base
from fixflow.db.session import dispose_engine, get_engine

setup_logging()
logger = logging.getLogger(__name__)

async def init_flow_tables(drop: bool = False):
    logger.info(f"Initializing flow tables on {settings.db.url.split('@')[-1]}")
    try:
        async with get_engine().begin() as conn:
            if drop:
                # Destroys every in-progress conversation
                logger.warning("Dropping flow tables...")
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Tables ready: {', '.join(Base.metadata.tables)}")
    finally:
        await dispose_engine()

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--drop", action="store_true", help="drop existing flow tables first")
    args = parser.parse_args()
    asyncio.run(init_flow_tables(drop=args.drop))

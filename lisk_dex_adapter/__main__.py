import asyncio

from loguru import logger

from lisk_dex_adapter.adapter import LiskDEXAdapter
from lisk_dex_adapter.config import settings
from lisk_dex_adapter.models import Block
from lisk_dex_adapter.watcher import ChainWatcher


async def log_block(block: Block) -> None:
    logger.info(
        f"New block {block.id} at height {block.height} "
        f"with {block.number_of_transactions} transactions",
    )


async def main() -> None:
    """
    Main entry point for the adapter.

    This function builds the adapter from settings, logs its status and the
    current chain height, then watches the chain for new blocks until it is
    interrupted.

    Returns:
        None
    """
    logger.info("Starting DEX adapter")
    adapter = LiskDEXAdapter(settings)
    watcher = ChainWatcher(
        adapter.repository,
        log_block,
        polling_interval=settings.chain_poll_interval,
        page_limit=settings.blocks_page_limit,
    )
    try:
        logger.info(f"Adapter status: {await adapter.invoke('getStatus')}")
        logger.info(f"Max block height: {await adapter.invoke('getMaxBlockHeight')}")
        await watcher.start()
        while True:
            await asyncio.sleep(3600)
    finally:
        await watcher.stop()
        await adapter.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("DEX adapter stopped")

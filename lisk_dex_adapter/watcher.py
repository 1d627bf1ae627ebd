import asyncio
from typing import Awaitable, Callable, Optional

from loguru import logger

from lisk_dex_adapter.mapper import block_mapper
from lisk_dex_adapter.models import Block
from lisk_dex_adapter.service.repository import ServiceRepository

BlockCallback = Callable[[Block], Awaitable[None]]


class ChainWatcher:
    """
    ChainWatcher polls Lisk Service for new blocks and hands them to a callback.

    repository (ServiceRepository): Repository used to read blocks.
    on_block (BlockCallback): Coroutine called once per new block, in height order.
    polling_interval (float): Seconds to wait between polls of the last block.
    page_limit (int): Maximum number of blocks requested per query.
    last_height (Optional[int]): Height of the last block handed to the callback,
                                 None until the first poll.
    stop_event (asyncio.Event): Event to signal when to stop polling.

    Methods:
        start() -> None:
        poll() -> None:
        stop() -> None:
    """

    def __init__(
        self,
        repository: ServiceRepository,
        on_block: BlockCallback,
        polling_interval: float = 10.0,
        page_limit: int = 100,
    ) -> None:
        # The block at last_height is returned again and dropped by the
        # repository, so a page must hold at least one more block.
        if page_limit < 2:
            raise ValueError("page_limit must be at least 2")
        self.repository = repository
        self.on_block = on_block
        self.polling_interval = polling_interval
        self.page_limit = page_limit
        self.last_height: Optional[int] = None
        self.stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start polling in a background task."""
        self.stop_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.info("Chain watcher started")

    async def _run(self) -> None:
        while not self.stop_event.is_set():
            try:
                await self.poll()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.exception(f"Error polling chain: {exc}")
            try:
                await asyncio.wait_for(self.stop_event.wait(), self.polling_interval)
            except asyncio.TimeoutError:
                continue

    async def poll(self) -> None:
        """
        Hands every block above ``last_height`` to the callback.

        The first poll only records the current height. Blocks are fetched in
        pages of ``page_limit``; ``last_height`` advances after each block so a
        failing callback resumes from the block that failed.
        """
        last_block = await self.repository.get_last_block()
        if last_block is None:
            return
        latest = block_mapper(last_block).height

        if self.last_height is None:
            self.last_height = latest
            logger.info(f"Bootstrapped chain watcher at height {latest}")
            return

        while self.last_height < latest:
            records = await self.repository.get_blocks_between_heights(
                self.last_height, latest, self.page_limit,
            )
            if not records:
                logger.warning(
                    f"No blocks returned between {self.last_height} and {latest}",
                )
                return
            for record in records:
                block = block_mapper(record)
                await self.on_block(block)
                self.last_height = block.height
            logger.info(f"Chain advanced to height {self.last_height}")

    async def stop(self) -> None:
        """Signal the polling loop to stop and wait for it to finish."""
        self.stop_event.set()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

from typing import Any, Dict, List, Optional

from lisk_dex_adapter.models import EndpointSet
from lisk_dex_adapter.service import meta
from lisk_dex_adapter.service.client import FailoverClient
from lisk_dex_adapter.service.meta import (
    BlockFilter,
    BlockSort,
    FilterQuery,
    Range,
    TransactionFilter,
    TransactionSort,
)


def first_or_none(items: Optional[List[Any]]) -> Optional[Any]:
    return items[0] if items else None


def unwrap(response: Any) -> Any:
    """Strip the ``{data, meta}`` envelope Lisk Service wraps its results in."""
    if isinstance(response, dict) and "data" in response:
        return response["data"]
    return response


class ServiceRepository:
    """
    ServiceRepository exposes the Lisk Service queries the DEX relies on.

    Every helper builds a FilterQuery for one resource and sends it through the
    FailoverClient. Results are plain JSON values (lists of records or single
    records) with the response envelope removed.

    Methods:
        get(path: str, params: Dict[str, str]) -> Any:
        post(path: str, payload: Dict[str, Any]) -> Any:
        get_outbound_transactions(...) -> List[Dict[str, Any]]:
        get_inbound_transactions_from_block(...) -> List[Dict[str, Any]]:
        get_outbound_transactions_from_block(...) -> List[Dict[str, Any]]:
        get_last_block() -> Optional[Dict[str, Any]]:
        get_blocks_between_heights(...) -> List[Dict[str, Any]]:
        get_block_at_height(height: int) -> Optional[Dict[str, Any]]:
        get_auth(address: str) -> Dict[str, Any]:
    """

    def __init__(self, endpoints: EndpointSet, timeout: float = 10.0) -> None:
        self.client = FailoverClient(endpoints, timeout=timeout)

    async def close(self) -> None:
        await self.client.close()

    async def get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        response = await self.client.get(path, params or {})
        return unwrap(response)

    async def post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.client.post(path, payload or {})
        return unwrap(response)

    async def find(self, query: FilterQuery) -> Any:
        return await self.get(query.resource.path, query.to_params())

    async def post_transaction(self, transaction_hex: str) -> Dict[str, Any]:
        return await self.post(meta.Transactions.path, {"transaction": transaction_hex})

    async def get_network_status(self) -> Dict[str, Any]:
        return await self.get(meta.NETWORK_STATUS_PATH)

    async def get_network_statistics(self) -> Dict[str, Any]:
        return await self.get(meta.NETWORK_STATISTICS_PATH)

    async def get_fees(self) -> Dict[str, Any]:
        return await self.get(meta.FEES_PATH)

    async def get_blocks(self, query: FilterQuery) -> List[Dict[str, Any]]:
        return await self.find(query) or []

    async def get_transactions(self, query: FilterQuery) -> List[Dict[str, Any]]:
        return await self.find(query) or []

    async def get_auth(self, address: str) -> Dict[str, Any]:
        query = meta.Auth.query().where(meta.AuthFilter.ADDRESS, address)
        return await self.find(query)

    async def get_token_balances(self, address: str) -> List[Dict[str, Any]]:
        query = meta.TokenBalances.query().where(meta.TokenBalanceFilter.ADDRESS, address)
        return await self.find(query) or []

    def _transfers(self) -> FilterQuery:
        return meta.Transactions.query().where(
            TransactionFilter.MODULE_COMMAND, meta.TRANSFER_MODULE_COMMAND,
        )

    async def get_outbound_transactions(
        self,
        sender_address: str,
        from_timestamp: int,
        limit: int,
        order: str = "asc",
    ) -> List[Dict[str, Any]]:
        """
        Get transfers sent by an address, starting at a timestamp.

        Args:
            sender_address (str): The lisk32 sender address.
            from_timestamp (int): Inclusive timestamp to start from.
            limit (int): Maximum number of transactions.
            order (str): "asc" for transactions at or after ``from_timestamp``
                         oldest first, "desc" for transactions at or before it
                         newest first.

        Returns:
            List[Dict[str, Any]]: The matching transactions.
        """
        query = (
            self._transfers()
            .where(TransactionFilter.SENDER_ADDRESS, sender_address)
            .paginate(limit=limit)
        )
        if order == "asc":
            query.where(TransactionFilter.TIMESTAMP, Range(from_timestamp, None))
            query.sort_by(TransactionSort.TIMESTAMP_ASC)
        elif order == "desc":
            query.where(TransactionFilter.TIMESTAMP, Range(0, from_timestamp))
            query.sort_by(TransactionSort.TIMESTAMP_DESC)
        else:
            raise ValueError(f"Unknown order {order!r}, expected 'asc' or 'desc'")
        return await self.get_transactions(query)

    async def get_inbound_transactions_from_block(
        self, recipient_address: str, block_id: str,
    ) -> List[Dict[str, Any]]:
        query = (
            self._transfers()
            .where(TransactionFilter.RECIPIENT_ADDRESS, recipient_address)
            .where(TransactionFilter.BLOCK_ID, block_id)
        )
        return await self.get_transactions(query)

    async def get_outbound_transactions_from_block(
        self, sender_address: str, block_id: str,
    ) -> List[Dict[str, Any]]:
        query = (
            self._transfers()
            .where(TransactionFilter.SENDER_ADDRESS, sender_address)
            .where(TransactionFilter.BLOCK_ID, block_id)
        )
        return await self.get_transactions(query)

    async def get_last_block_below_timestamp(self, timestamp: int) -> Optional[Dict[str, Any]]:
        query = (
            meta.Blocks.query()
            .where(BlockFilter.TIMESTAMP, Range(0, timestamp))
            .sort_by(BlockSort.TIMESTAMP_DESC)
            .paginate(limit=1)
        )
        return first_or_none(await self.get_blocks(query))

    async def get_last_block(self) -> Optional[Dict[str, Any]]:
        query = meta.Blocks.query().sort_by(BlockSort.HEIGHT_DESC).paginate(limit=1)
        return first_or_none(await self.get_blocks(query))

    async def get_blocks_between_heights(
        self,
        from_height: Optional[int],
        to_height: Optional[int],
        limit: int,
    ) -> List[Dict[str, Any]]:
        """
        Get blocks with a height greater than ``from_height`` and at most ``to_height``.

        The height filter of Lisk Service is inclusive on both ends, so the block
        at ``from_height`` is requested too and dropped from the result.

        Args:
            from_height (Optional[int]): Exclusive lower bound, None for unbounded.
            to_height (Optional[int]): Inclusive upper bound, None for unbounded.
            limit (int): Maximum number of blocks requested.

        Returns:
            List[Dict[str, Any]]: The blocks in ascending height order.
        """
        query = (
            meta.Blocks.query()
            .where(BlockFilter.HEIGHT, Range(from_height, to_height))
            .sort_by(BlockSort.HEIGHT_ASC)
            .paginate(limit=limit)
        )
        blocks = await self.get_blocks(query)
        if blocks and blocks[0].get("height") == from_height:
            return blocks[1:]
        return blocks

    async def get_block_at_height(self, height: int) -> Optional[Dict[str, Any]]:
        query = meta.Blocks.query().where(BlockFilter.HEIGHT, height)
        return first_or_none(await self.get_blocks(query))

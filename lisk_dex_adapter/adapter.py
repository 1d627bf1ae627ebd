import inspect
import random
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional

from loguru import logger
from pydantic.alias_generators import to_snake

from lisk_dex_adapter import __version__
from lisk_dex_adapter.assembler import TransactionAssembler
from lisk_dex_adapter.codec import address_from_public_key
from lisk_dex_adapter.config import Settings, settings
from lisk_dex_adapter.errors import (
    AdapterError,
    Entity,
    ErrorKind,
    action_failed,
    not_found,
)
from lisk_dex_adapter.mapper import block_mapper, transaction_mapper
from lisk_dex_adapter.models import AccountAuth, PreparedTransaction
from lisk_dex_adapter.service.repository import ServiceRepository
from lisk_dex_adapter.utils.decorators import log_execution

DEFAULT_MODULE_ALIAS = "lisk_dex_adapter"

# Errors the action layer raises as they are; anything else becomes ACTION_FAILED.
TYPED_KINDS = frozenset(
    {
        ErrorKind.NOT_FOUND,
        ErrorKind.ACCOUNT_NOT_MULTISIG,
        ErrorKind.BROADCAST_REJECTED,
        ErrorKind.INVALID_CONFIGURATION,
        ErrorKind.ACTION_FAILED,
    },
)

Action = Callable[[Dict[str, Any]], Awaitable[Any]]


@contextmanager
def action_errors(message: str) -> Iterator[None]:
    try:
        yield
    except AdapterError as err:
        if err.kind in TYPED_KINDS:
            raise
        raise action_failed(message, err) from err
    except Exception as exc:
        raise action_failed(message, exc) from exc


def timings_enabled(adapter: "LiskDEXAdapter", *args: Any, **kwargs: Any) -> bool:
    return adapter.config.log_action_timings


async def records_or_empty(request: Awaitable[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Await a list query, treating a 404 from Lisk Service as no records."""
    try:
        return await request
    except AdapterError as err:
        if err.is_not_found_response:
            return []
        raise


class LiskDEXAdapter:
    """
    LiskDEXAdapter exposes the chain actions a DEX needs on top of Lisk Service.

    Actions are available as coroutine methods and, under their camelCase
    names, through ``actions`` and ``invoke`` which take a parameter record.

    Methods:
        invoke(action: str, params: Dict[str, Any]) -> Any:
        get_multisig_wallet_members(wallet_address: str) -> List[str]:
        get_min_multisig_required_signatures(wallet_address: str) -> int:
        get_outbound_transactions(...) -> List[Dict[str, Any]]:
        get_inbound_transactions_from_block(...) -> List[Dict[str, Any]]:
        get_outbound_transactions_from_block(...) -> List[Dict[str, Any]]:
        get_max_block_height() -> int:
        get_last_block_at_timestamp(timestamp: int) -> Dict[str, Any]:
        get_blocks_between_heights(...) -> List[Dict[str, Any]]:
        get_block_at_height(height: int) -> Dict[str, Any]:
        post_transaction(transaction: Dict[str, Any]) -> str:
    """

    def __init__(
        self,
        config: Settings = settings,
        repository: Optional[ServiceRepository] = None,
        rng: Optional[random.Random] = None,
        alias: Optional[str] = None,
    ) -> None:
        """
        Initializes the adapter.

        Args:
            config (Settings): Adapter settings.
            repository (Optional[ServiceRepository]): Repository to use instead of one
                                                      built from ``config``.
            rng (Optional[random.Random]): Randomness for quorum selection.
            alias (Optional[str]): Name the adapter is registered under.

        Raises:
            AdapterError: INVALID_CONFIGURATION if no DEX wallet address is set.
        """
        if not config.dex_wallet_address:
            raise AdapterError(
                ErrorKind.INVALID_CONFIGURATION,
                "The dex_wallet_address setting is required",
            )
        self.config = config
        self.alias = alias or DEFAULT_MODULE_ALIAS
        self.repository = repository or ServiceRepository(
            config.endpoint_set, timeout=config.request_timeout,
        )
        self.assembler = TransactionAssembler(
            self.repository, config.dex_wallet_address, rng=rng,
        )
        logger.info(
            f"Initialized {self.alias} for wallet {config.dex_wallet_address} "
            f"on {config.network}",
        )

    async def close(self) -> None:
        await self.repository.close()

    @property
    def actions(self) -> Dict[str, Action]:
        handlers = {
            "getStatus": self.get_status,
            "getMultisigWalletMembers": self.get_multisig_wallet_members,
            "getMinMultisigRequiredSignatures": self.get_min_multisig_required_signatures,
            "getOutboundTransactions": self.get_outbound_transactions,
            "getInboundTransactionsFromBlock": self.get_inbound_transactions_from_block,
            "getOutboundTransactionsFromBlock": self.get_outbound_transactions_from_block,
            "getMaxBlockHeight": self.get_max_block_height,
            "getLastBlockAtTimestamp": self.get_last_block_at_timestamp,
            "getBlocksBetweenHeights": self.get_blocks_between_heights,
            "getBlockAtHeight": self.get_block_at_height,
            "postTransaction": self.post_transaction,
        }
        return {name: _with_params(handler) for name, handler in handlers.items()}

    async def invoke(self, action: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Run an action by name.

        Args:
            action (str): The camelCase action name, ie. "getBlockAtHeight".
            params (Optional[Dict[str, Any]]): The camelCase action parameters.

        Raises:
            AdapterError: ACTION_FAILED for unknown actions, otherwise whatever the
                          action raises.
        """
        handler = self.actions.get(action)
        if handler is None:
            raise action_failed(f"Unknown action {action}")
        return await handler(params or {})

    async def get_status(self) -> Dict[str, Any]:
        return {
            "alias": self.alias,
            "version": __version__,
            "network": self.config.network,
            "endpoints": self.config.endpoint_set.model_dump(),
        }

    async def _get_multisig_auth(self, wallet_address: str) -> AccountAuth:
        try:
            record = await self.repository.get_auth(wallet_address)
        except AdapterError as err:
            if err.is_not_found_response:
                raise not_found(
                    Entity.ACCOUNT, f"Account with address {wallet_address} does not exist", err,
                ) from err
            raise
        if not record:
            raise not_found(Entity.ACCOUNT, f"Account with address {wallet_address} does not exist")
        auth = AccountAuth.model_validate(record)
        if not auth.is_multisig:
            raise AdapterError(
                ErrorKind.ACCOUNT_NOT_MULTISIG,
                f"Account with address {wallet_address} is not a multisig account",
            )
        return auth

    @log_execution(timings_enabled)
    async def get_multisig_wallet_members(self, wallet_address: str) -> List[str]:
        with action_errors(f"Error getting multisig account with address {wallet_address}"):
            auth = await self._get_multisig_auth(wallet_address)
            return [address_from_public_key(key) for key in auth.members]

    @log_execution(timings_enabled)
    async def get_min_multisig_required_signatures(self, wallet_address: str) -> int:
        with action_errors(f"Error getting multisig account with address {wallet_address}"):
            auth = await self._get_multisig_auth(wallet_address)
            return auth.number_of_signatures

    @log_execution(timings_enabled)
    async def get_outbound_transactions(
        self,
        wallet_address: str,
        from_timestamp: int,
        limit: int,
        order: str = "asc",
    ) -> List[Dict[str, Any]]:
        with action_errors(f"Error getting outbound transactions of {wallet_address}"):
            records = await records_or_empty(
                self.repository.get_outbound_transactions(
                    wallet_address, from_timestamp, limit, order,
                ),
            )
            return [_dump(transaction_mapper(record)) for record in records]

    @log_execution(timings_enabled)
    async def get_inbound_transactions_from_block(
        self, wallet_address: str, block_id: str,
    ) -> List[Dict[str, Any]]:
        with action_errors(f"Error getting inbound transactions of {wallet_address} in {block_id}"):
            records = await records_or_empty(
                self.repository.get_inbound_transactions_from_block(wallet_address, block_id),
            )
            return [_dump(transaction_mapper(record)) for record in records]

    @log_execution(timings_enabled)
    async def get_outbound_transactions_from_block(
        self, wallet_address: str, block_id: str,
    ) -> List[Dict[str, Any]]:
        with action_errors(f"Error getting outbound transactions of {wallet_address} in {block_id}"):
            records = await records_or_empty(
                self.repository.get_outbound_transactions_from_block(wallet_address, block_id),
            )
            return [_dump(transaction_mapper(record)) for record in records]

    @log_execution(timings_enabled)
    async def get_max_block_height(self) -> int:
        with action_errors("Error getting the last block"):
            block = await self._single_block(
                self.repository.get_last_block(), "No block could be found",
            )
            return block_mapper(block).height

    @log_execution(timings_enabled)
    async def get_last_block_at_timestamp(self, timestamp: int) -> Dict[str, Any]:
        with action_errors(f"Error getting the last block at timestamp {timestamp}"):
            block = await self._single_block(
                self.repository.get_last_block_below_timestamp(timestamp),
                f"No block found at or before timestamp {timestamp}",
            )
            return _dump(block_mapper(block))

    @log_execution(timings_enabled)
    async def get_blocks_between_heights(
        self,
        from_height: Optional[int],
        to_height: Optional[int],
        limit: int,
    ) -> List[Dict[str, Any]]:
        with action_errors(f"Error getting blocks between heights {from_height} and {to_height}"):
            records = await records_or_empty(
                self.repository.get_blocks_between_heights(from_height, to_height, limit),
            )
            return [_dump(block_mapper(record)) for record in records]

    @log_execution(timings_enabled)
    async def get_block_at_height(self, height: int) -> Dict[str, Any]:
        with action_errors(f"Error getting block at height {height}"):
            block = await self._single_block(
                self.repository.get_block_at_height(height),
                f"No block exists at height {height}",
            )
            return _dump(block_mapper(block))

    async def _single_block(
        self,
        request: Awaitable[Optional[Dict[str, Any]]],
        message: str,
    ) -> Dict[str, Any]:
        try:
            block = await request
        except AdapterError as err:
            if err.is_not_found_response:
                raise not_found(Entity.BLOCK, message, err) from err
            raise
        if block is None:
            raise not_found(Entity.BLOCK, message)
        return block

    @log_execution(timings_enabled)
    async def post_transaction(self, transaction: Dict[str, Any]) -> str:
        with action_errors(f"Error posting transaction {transaction.get('id')}"):
            prepared = PreparedTransaction.model_validate(transaction)
            return await self.assembler.submit(prepared)


def _dump(model: Any) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _with_params(handler: Callable[..., Awaitable[Any]]) -> Action:
    async def run(params: Dict[str, Any]) -> Any:
        kwargs = {to_snake(key): value for key, value in params.items()}
        try:
            inspect.signature(handler).bind(**kwargs)
        except TypeError as exc:
            raise action_failed(f"Invalid parameters for {handler.__name__}: {exc}", exc) from exc
        return await handler(**kwargs)

    run.__name__ = handler.__name__
    return run

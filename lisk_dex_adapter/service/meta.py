"""
Lisk Service v3 resources and the filters they accept.

Interval filters (height, timestamp, amount) are inclusive on both ends and
rendered as ``lo:hi``; an empty side means the interval is open on that side.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

TRANSFER_MODULE_COMMAND = "token:transfer"


class BlockFilter(str, Enum):
    BLOCK_ID = "blockID"
    HEIGHT = "height"  # Can be expressed as an interval ie. 1:20
    GENERATOR_ADDRESS = "generatorAddress"
    TIMESTAMP = "timestamp"  # Can be expressed as an interval ie. 100000:200000


class TransactionFilter(str, Enum):
    TRANSACTION_ID = "transactionID"
    MODULE_COMMAND = "moduleCommand"  # ie. token:transfer
    SENDER_ADDRESS = "senderAddress"
    RECIPIENT_ADDRESS = "recipientAddress"
    ADDRESS = "address"
    AMOUNT = "amount"  # Can be expressed as an interval
    TIMESTAMP = "timestamp"  # Can be expressed as an interval
    BLOCK_ID = "blockID"
    HEIGHT = "height"
    NONCE = "nonce"  # In conjunction with senderAddress
    EXECUTION_STATUS = "executionStatus"


class AuthFilter(str, Enum):
    ADDRESS = "address"


class TokenBalanceFilter(str, Enum):
    ADDRESS = "address"
    TOKEN_ID = "tokenID"


class BlockSort(str, Enum):
    HEIGHT_ASC = "height:asc"
    HEIGHT_DESC = "height:desc"
    TIMESTAMP_ASC = "timestamp:asc"
    TIMESTAMP_DESC = "timestamp:desc"


class TransactionSort(str, Enum):
    AMOUNT_ASC = "amount:asc"
    AMOUNT_DESC = "amount:desc"
    HEIGHT_ASC = "height:asc"
    HEIGHT_DESC = "height:desc"
    TIMESTAMP_ASC = "timestamp:asc"
    TIMESTAMP_DESC = "timestamp:desc"


FilterKey = Union[BlockFilter, TransactionFilter, AuthFilter, TokenBalanceFilter]
SortOrder = Union[BlockSort, TransactionSort]


@dataclass(frozen=True)
class Exact:
    value: Union[str, int]

    def render(self) -> str:
        return f"{self.value}"


@dataclass(frozen=True)
class Range:
    lo: Optional[int] = None
    hi: Optional[int] = None

    def render(self) -> str:
        lo = "" if self.lo is None else self.lo
        hi = "" if self.hi is None else self.hi
        return f"{lo}:{hi}"


@dataclass(frozen=True)
class _Unbounded:
    def render(self) -> str:
        return ""


Unbounded = _Unbounded()

FilterValue = Union[Exact, Range, _Unbounded]


class Resource:
    """A Lisk Service resource: the path it lives at and the filters it accepts."""

    def __init__(self, path: str, filters: Any, sorts: Any = None) -> None:
        self.path = path
        self.filters = filters
        self.sorts = sorts

    def query(self) -> "FilterQuery":
        return FilterQuery(self)


class FilterQuery:
    """
    A set of filters for one resource, plus sort and pagination.

    Keys must belong to the resource's filter enum and a key may only be set
    once unless the new value is equal to the old one.
    """

    def __init__(self, resource: Resource) -> None:
        self.resource = resource
        self.filters: Dict[FilterKey, FilterValue] = {}
        self.sort: Optional[SortOrder] = None
        self.limit: Optional[int] = None
        self.offset: Optional[int] = None

    def where(self, key: FilterKey, value: Union[FilterValue, str, int]) -> "FilterQuery":
        if not isinstance(key, self.resource.filters):
            raise ValueError(f"{key!r} is not a filter of {self.resource.path}")
        if not isinstance(value, (Exact, Range, _Unbounded)):
            value = Exact(value)
        current = self.filters.get(key)
        if current is not None and current != value:
            raise ValueError(
                f"Conflicting values for filter {key.value}: "
                f"{current.render()!r} and {value.render()!r}",
            )
        self.filters[key] = value
        return self

    def sort_by(self, order: SortOrder) -> "FilterQuery":
        if self.resource.sorts is None or not isinstance(order, self.resource.sorts):
            raise ValueError(f"{order!r} is not a sort order of {self.resource.path}")
        self.sort = order
        return self

    def paginate(self, limit: Optional[int] = None, offset: Optional[int] = None) -> "FilterQuery":
        if limit is not None:
            self.limit = limit
        if offset is not None:
            self.offset = offset
        return self

    def to_params(self) -> Dict[str, str]:
        """Render the query as Lisk Service query string parameters."""
        params = {
            key.value: value.render()
            for key, value in self.filters.items()
            if value is not Unbounded
        }
        if self.sort is not None:
            params["sort"] = self.sort.value
        if self.limit is not None:
            params["limit"] = f"{self.limit}"
        if self.offset is not None:
            params["offset"] = f"{self.offset}"
        return params


Blocks = Resource("/api/v3/blocks", BlockFilter, BlockSort)
Transactions = Resource("/api/v3/transactions", TransactionFilter, TransactionSort)
Auth = Resource("/api/v3/auth", AuthFilter)
TokenBalances = Resource("/api/v3/token/balances", TokenBalanceFilter)

NETWORK_STATUS_PATH = "/api/v3/network/status"
NETWORK_STATISTICS_PATH = "/api/v3/network/statistics"
FEES_PATH = "/api/v3/fees"

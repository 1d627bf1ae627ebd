from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from yarl import URL

from lisk_dex_adapter.utils.custom_types import HexBytes, StrInt


class EndpointSet(BaseModel):
    """
    EndpointSet holds the Lisk Service base URLs in the order they are tried.

    Attributes:
        primary (str): The base URL every request is sent to first.
        fallbacks (Tuple[str, ...]): Base URLs tried in order when the primary fails.
    """

    model_config = ConfigDict(frozen=True)

    primary: str
    fallbacks: Tuple[str, ...] = ()

    @field_validator("primary")
    @classmethod
    def _check_primary(cls, value: str) -> str:
        return _normalize_url(value)

    @field_validator("fallbacks")
    @classmethod
    def _check_fallbacks(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(_normalize_url(url) for url in value)


def _normalize_url(value: str) -> str:
    url = URL(value)
    if not url.is_absolute() or url.scheme not in ("http", "https"):
        raise ValueError(f"Endpoint must be an absolute http(s) URL, got {value!r}")
    return str(url).rstrip("/")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Block(_CamelModel):
    """
    Block is a model representing a block as seen by the DEX.

    Attributes:
        id (str): The block ID.
        height (int): The block height, the ordering key of the chain.
        timestamp (int): The block timestamp in seconds.
        number_of_transactions (int): The number of transactions in the block.
    """

    id: str
    height: int
    timestamp: int
    number_of_transactions: int = 0


class Transaction(_CamelModel):
    """
    Transaction is a model representing a token transfer as seen by the DEX.

    The ``id`` is not the ledger transaction ID; it is computed from the sender
    address and nonce so it is known before the transaction is indexed.
    """

    id: str
    message: str = ""
    amount: StrInt
    timestamp: int
    sender_address: str
    recipient_address: str
    nonce: StrInt
    signatures: List[str] = []


class AccountAuth(_CamelModel):
    """
    AccountAuth is the authentication record of a wallet.

    Attributes:
        mandatory_keys (List[str]): Hex public keys that must always sign.
        optional_keys (List[str]): Hex public keys that may sign.
        number_of_signatures (int): Required signatures, 0 for regular accounts.
        nonce (int): The current account nonce.
    """

    mandatory_keys: List[str] = []
    optional_keys: List[str] = []
    number_of_signatures: int = 0
    nonce: StrInt = 0

    @property
    def is_multisig(self) -> bool:
        return self.number_of_signatures > 0

    @property
    def members(self) -> List[str]:
        """Mandatory then optional keys, without duplicates, in first-seen order."""
        return list(dict.fromkeys(self.mandatory_keys + self.optional_keys))


class SignaturePacket(_CamelModel):
    signer_address: str
    public_key: str
    signature: str


class PreparedTransaction(_CamelModel):
    """
    PreparedTransaction is a transfer the DEX wants to broadcast.

    Signatures are collected from the multisig members by the caller; the
    first one belongs to the member which initiated the transfer.
    """

    id: Optional[str] = None
    message: str = ""
    amount: StrInt
    token_id: HexBytes = Field(alias="tokenID")
    timestamp: Optional[int] = None
    sender_address: Optional[str] = None
    recipient_address: str
    signatures: List[SignaturePacket] = []
    module: str = "token"
    command: str = "transfer"
    fee: StrInt
    nonce: StrInt
    sender_public_key: HexBytes

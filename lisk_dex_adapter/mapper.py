from typing import Any, Dict

from lisk_dex_adapter.assembler import compute_transaction_id
from lisk_dex_adapter.models import Block, Transaction


def transaction_mapper(record: Dict[str, Any]) -> Transaction:
    """Map a Lisk Service transaction record to a DEX transaction."""
    sender_address = record["sender"]["address"]
    params = record.get("params", {})
    return Transaction(
        id=compute_transaction_id(sender_address, record["nonce"]),
        message=params.get("data", ""),
        amount=params["amount"],
        timestamp=record["block"]["timestamp"],
        sender_address=sender_address,
        recipient_address=params["recipientAddress"],
        nonce=record["nonce"],
        signatures=record.get("signatures", []),
    )


def block_mapper(record: Dict[str, Any]) -> Block:
    return Block.model_validate(record)

from typing import Annotated

from pydantic import BeforeValidator, PlainSerializer

# Lisk Service reports uint64 values (amount, fee, nonce) as decimal strings.
StrInt = Annotated[
    int,
    BeforeValidator(lambda x: int(x) if isinstance(x, str) else x),
    PlainSerializer(lambda x: f"{x}", return_type=str, when_used="json"),
]


HexBytes = Annotated[
    bytes,
    BeforeValidator(lambda x: bytes.fromhex(x) if isinstance(x, str) else x),
    PlainSerializer(lambda x: x.hex(), return_type=str, when_used="json"),
]

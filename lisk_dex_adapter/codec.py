"""
Binary encoding of Lisk transactions and lisk32 addresses.

Lisk encodes objects like protocol buffers: every field is prefixed with a
varint key ``field_number << 3 | wire_type``, integers are unsigned varints,
bytes and strings are length-prefixed, and arrays repeat the field key for
each item. All fields are written, including empty ones.
"""
import hashlib
from typing import Any, Iterable, List, Sequence, Tuple

VARINT = 0
LENGTH_DELIMITED = 2

LISK32_PREFIX = "lsk"
LISK32_CHARSET = "zxvcpmbn3465o978uyrtkqew2adsjhfg"
LISK32_LENGTH = 41
ADDRESS_LENGTH = 20
TOKEN_ID_LENGTH = 8
MAX_DATA_LENGTH = 64
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)

# (field name, field number, data type)
TRANSFER_PARAMS_SCHEMA: Tuple[Tuple[str, int, str], ...] = (
    ("tokenID", 1, "bytes"),
    ("amount", 2, "uint64"),
    ("recipientAddress", 3, "bytes"),
    ("data", 4, "string"),
)

TRANSACTION_SCHEMA: Tuple[Tuple[str, int, str], ...] = (
    ("module", 1, "string"),
    ("command", 2, "string"),
    ("nonce", 3, "uint64"),
    ("fee", 4, "uint64"),
    ("senderPublicKey", 5, "bytes"),
    ("params", 6, "bytes"),
    ("signatures", 7, "array:bytes"),
)


class AddressError(ValueError):
    pass


def encode_varint(value: int) -> bytes:
    if value < 0:
        raise ValueError(f"Cannot encode negative value {value} as an unsigned varint")
    if value >= 1 << 64:
        raise ValueError(f"Value {value} does not fit in uint64")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _key(field_number: int, wire_type: int) -> bytes:
    return encode_varint((field_number << 3) | wire_type)


def _length_delimited(field_number: int, data: bytes) -> bytes:
    return _key(field_number, LENGTH_DELIMITED) + encode_varint(len(data)) + data


def encode_object(schema: Sequence[Tuple[str, int, str]], values: dict) -> bytes:
    """
    Encode ``values`` following ``schema``, in field number order.

    Raises:
        KeyError: If a schema field is missing from ``values``.
        ValueError: If a value has an unsupported type.
    """
    out = bytearray()
    for name, field_number, data_type in sorted(schema, key=lambda f: f[1]):
        value = values[name]
        if data_type == "uint64":
            out += _key(field_number, VARINT) + encode_varint(int(value))
        elif data_type == "string":
            out += _length_delimited(field_number, value.encode("utf-8"))
        elif data_type == "bytes":
            out += _length_delimited(field_number, bytes(value))
        elif data_type == "array:bytes":
            for item in value:
                out += _length_delimited(field_number, bytes(item))
        else:
            raise ValueError(f"Unsupported data type {data_type} for {name}")
    return bytes(out)


def encode_transfer_params(
    token_id: bytes,
    amount: int,
    recipient_address: bytes,
    data: str,
) -> bytes:
    if len(token_id) != TOKEN_ID_LENGTH:
        raise ValueError(f"tokenID must be {TOKEN_ID_LENGTH} bytes long")
    if len(recipient_address) != ADDRESS_LENGTH:
        raise ValueError(f"recipientAddress must be {ADDRESS_LENGTH} bytes long")
    if len(data) > MAX_DATA_LENGTH:
        raise ValueError(f"data must be at most {MAX_DATA_LENGTH} characters")
    return encode_object(
        TRANSFER_PARAMS_SCHEMA,
        {
            "tokenID": token_id,
            "amount": amount,
            "recipientAddress": recipient_address,
            "data": data,
        },
    )


def encode_transaction(transaction: dict) -> bytes:
    return encode_object(TRANSACTION_SCHEMA, transaction)


def _convert_bits(data: Iterable[int], from_bits: int, to_bits: int) -> List[int]:
    acc = 0
    bits = 0
    out = []
    mask = (1 << to_bits) - 1
    for value in data:
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & mask)
    if bits:
        out.append((acc << (to_bits - bits)) & mask)
    return out


def _polymod(values: Iterable[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ value
        for i, generator in enumerate(_GENERATOR):
            if (top >> i) & 1:
                chk ^= generator
    return chk


def _checksum(uint5: List[int]) -> List[int]:
    mod = _polymod(uint5 + [0] * 6) ^ 1
    return [(mod >> (5 * (5 - i))) & 31 for i in range(6)]


def address_to_lisk32(address: bytes) -> str:
    if len(address) != ADDRESS_LENGTH:
        raise AddressError(f"Address must be {ADDRESS_LENGTH} bytes long")
    uint5 = _convert_bits(address, 8, 5)
    return LISK32_PREFIX + "".join(LISK32_CHARSET[v] for v in uint5 + _checksum(uint5))


def address_from_lisk32(lisk32: str) -> bytes:
    """
    Decode a lisk32 address into its 20 byte binary form.

    Raises:
        AddressError: If the prefix, length, characters or checksum are invalid.
    """
    if len(lisk32) != LISK32_LENGTH or not lisk32.startswith(LISK32_PREFIX):
        raise AddressError(f"Invalid lisk32 address {lisk32!r}")
    try:
        uint5 = [LISK32_CHARSET.index(char) for char in lisk32[len(LISK32_PREFIX):]]
    except ValueError as exc:
        raise AddressError(f"Invalid character in lisk32 address {lisk32!r}") from exc
    if _polymod(uint5) != 1:
        raise AddressError(f"Invalid checksum for lisk32 address {lisk32!r}")
    return bytes(_convert_bits(uint5[:-6], 5, 8))


def address_from_public_key(public_key: Any) -> str:
    """Lisk32 address of a public key (hex string or bytes)."""
    if isinstance(public_key, str):
        public_key = bytes.fromhex(public_key)
    return address_to_lisk32(hashlib.sha256(public_key).digest()[:ADDRESS_LENGTH])

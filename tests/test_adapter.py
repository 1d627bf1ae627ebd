import asyncio
import random

import aiohttp
import pytest
from conftest import FALLBACK_A, PRIMARY, FakeIndex, http_error, make_block, make_transaction
from loguru import logger

from lisk_dex_adapter import codec
from lisk_dex_adapter.adapter import LiskDEXAdapter
from lisk_dex_adapter.assembler import compute_transaction_id
from lisk_dex_adapter.errors import AdapterError, Entity, ErrorKind

MEMBER_KEYS = [f"{i:02x}" * 32 for i in range(1, 5)]
MULTISIG_KEY = "ee" * 32
MULTISIG = codec.address_from_public_key(MULTISIG_KEY)
REGULAR = codec.address_to_lisk32(bytes([3] * 20))
RECIPIENT = codec.address_to_lisk32(bytes([4] * 20))
BLOCK_ID = "3d" * 32


@pytest.fixture
def index():
    return FakeIndex(
        blocks=[make_block(height) for height in range(1, 21)],
        transactions=[
            make_transaction(MULTISIG, RECIPIENT, 1, 1702420100),
            make_transaction(MULTISIG, RECIPIENT, 2, 1702421370, block_id=BLOCK_ID),
            make_transaction(MULTISIG, RECIPIENT, 3, 1702506060, data="hello"),
        ],
        auth={
            MULTISIG: {
                "nonce": "3",
                "numberOfSignatures": 2,
                "mandatoryKeys": MEMBER_KEYS[:1],
                "optionalKeys": MEMBER_KEYS[1:],
            },
            REGULAR: {
                "nonce": "0",
                "numberOfSignatures": 0,
                "mandatoryKeys": [],
                "optionalKeys": [],
            },
        },
        post_response={"transactionID": "ab" * 32},
    )


@pytest.fixture
def adapter(transport, index, make_settings):
    transport.route(PRIMARY, index)
    return LiskDEXAdapter(make_settings(dex_wallet_address=MULTISIG), rng=random.Random(3))


def run(coro):
    return asyncio.run(coro)


def test_missing_wallet_address_is_invalid_configuration(make_settings):
    with pytest.raises(AdapterError) as info:
        LiskDEXAdapter(make_settings())

    assert info.value.kind is ErrorKind.INVALID_CONFIGURATION


def test_multisig_wallet_members_are_addresses(adapter):
    members = run(adapter.invoke("getMultisigWalletMembers", {"walletAddress": MULTISIG}))

    assert members == [codec.address_from_public_key(key) for key in MEMBER_KEYS]


def test_min_required_signatures(adapter):
    assert run(adapter.invoke("getMinMultisigRequiredSignatures", {"walletAddress": MULTISIG})) == 2


@pytest.mark.parametrize("action", ["getMultisigWalletMembers", "getMinMultisigRequiredSignatures"])
def test_regular_account_is_not_multisig(adapter, action):
    with pytest.raises(AdapterError) as info:
        run(adapter.invoke(action, {"walletAddress": REGULAR}))

    match info.value.kind:
        case ErrorKind.ACCOUNT_NOT_MULTISIG:
            pass
        case other:
            pytest.fail(f"Unexpected error kind {other}")


def test_unknown_account_is_not_found(adapter):
    unknown = codec.address_to_lisk32(bytes([9] * 20))

    with pytest.raises(AdapterError) as info:
        run(adapter.get_multisig_wallet_members(unknown))

    assert info.value.kind is ErrorKind.NOT_FOUND
    assert info.value.entity is Entity.ACCOUNT


def test_outbound_transactions_are_mapped(adapter):
    transactions = run(
        adapter.invoke(
            "getOutboundTransactions",
            {"walletAddress": MULTISIG, "fromTimestamp": 0, "limit": 3},
        ),
    )

    assert [tx["timestamp"] for tx in transactions] == [1702420100, 1702421370, 1702506060]
    first = transactions[0]
    assert first["id"] == compute_transaction_id(MULTISIG, 1)
    assert first["senderAddress"] == MULTISIG
    assert first["recipientAddress"] == RECIPIENT
    assert first["amount"] == "100000000"
    assert first["nonce"] == "1"
    assert first["message"] == ""
    assert transactions[2]["message"] == "hello"


def test_outbound_transactions_descending(adapter):
    transactions = run(
        adapter.get_outbound_transactions(MULTISIG, 1702421370, 2, order="desc"),
    )

    assert [tx["timestamp"] for tx in transactions] == [1702421370, 1702420100]


def test_outbound_transactions_none_after_timestamp(adapter):
    assert run(adapter.get_outbound_transactions(MULTISIG, 3434323432, 100)) == []


def test_transactions_from_block(adapter):
    inbound = run(
        adapter.invoke(
            "getInboundTransactionsFromBlock",
            {"walletAddress": RECIPIENT, "blockId": BLOCK_ID},
        ),
    )
    outbound = run(adapter.get_outbound_transactions_from_block(MULTISIG, BLOCK_ID))
    other_block = run(adapter.get_outbound_transactions_from_block(MULTISIG, "00" * 32))

    assert [tx["recipientAddress"] for tx in inbound] == [RECIPIENT]
    assert [tx["senderAddress"] for tx in outbound] == [MULTISIG]
    assert outbound[0]["signatures"] == ["cc" * 64]
    assert other_block == []


def test_not_found_response_for_list_action_is_empty(adapter, transport):
    transport.route(PRIMARY, http_error(404))
    transport.route(FALLBACK_A, http_error(404, FALLBACK_A))

    assert run(adapter.get_inbound_transactions_from_block(RECIPIENT, BLOCK_ID)) == []


def test_max_block_height(adapter):
    assert run(adapter.invoke("getMaxBlockHeight")) == 20


def test_blocks_between_heights(adapter):
    blocks = run(
        adapter.invoke(
            "getBlocksBetweenHeights",
            {"fromHeight": 10, "toHeight": 11, "limit": 100},
        ),
    )

    assert [block["height"] for block in blocks] == [11]
    assert set(blocks[0]) == {"id", "height", "timestamp", "numberOfTransactions"}


def test_blocks_between_heights_outside_chain(adapter):
    assert run(adapter.get_blocks_between_heights(100, 200, 1)) == []


def test_block_at_height(adapter):
    block = run(adapter.invoke("getBlockAtHeight", {"height": 12}))

    assert block["height"] == 12
    assert block["id"] == make_block(12)["id"]


def test_missing_block_is_not_found(adapter):
    with pytest.raises(AdapterError) as info:
        run(adapter.invoke("getBlockAtHeight", {"height": 9000}))

    assert info.value.kind is ErrorKind.NOT_FOUND
    assert info.value.entity is Entity.BLOCK


def test_last_block_at_timestamp(adapter):
    block = run(adapter.get_last_block_at_timestamp(make_block(5)["timestamp"]))

    assert block["height"] == 5


def test_transport_failure_is_wrapped_as_action_failure(adapter, transport):
    primary_error = aiohttp.ClientConnectionError("down")
    transport.route(PRIMARY, primary_error)

    with pytest.raises(AdapterError) as info:
        run(adapter.get_max_block_height())

    assert info.value.kind is ErrorKind.ACTION_FAILED
    assert info.value.cause.kind is ErrorKind.TRANSPORT_FAILURE
    assert info.value.cause.cause is primary_error


def test_post_transaction(adapter, index):
    transaction = {
        "id": compute_transaction_id(MULTISIG, 3),
        "message": "testing",
        "amount": "20000000",
        "tokenID": "0000000000000000",
        "timestamp": 1702506060000,
        "senderAddress": MULTISIG,
        "recipientAddress": RECIPIENT,
        "signatures": [
            {
                "signerAddress": codec.address_from_public_key(key),
                "publicKey": key,
                "signature": key[:2] * 64,
            }
            for key in MEMBER_KEYS[1:]
        ],
        "module": "token",
        "command": "transfer",
        "fee": "700000",
        "nonce": "3",
        "senderPublicKey": MULTISIG_KEY,
    }

    result = run(adapter.invoke("postTransaction", {"transaction": transaction}))

    assert result == "ab" * 32
    assert len(index.posted) == 1


def test_malformed_transaction_is_action_failure(adapter):
    with pytest.raises(AdapterError) as info:
        run(adapter.post_transaction({"amount": "not a number"}))

    assert info.value.kind is ErrorKind.ACTION_FAILED


def test_unknown_action_and_bad_params(adapter):
    with pytest.raises(AdapterError) as unknown:
        run(adapter.invoke("getEverything"))
    with pytest.raises(AdapterError) as bad_params:
        run(adapter.invoke("getBlockAtHeight", {"depth": 3}))

    assert unknown.value.kind is ErrorKind.ACTION_FAILED
    assert bad_params.value.kind is ErrorKind.ACTION_FAILED


def test_status(adapter):
    status = run(adapter.invoke("getStatus"))

    assert status["alias"] == "lisk_dex_adapter"
    assert status["endpoints"]["primary"] == PRIMARY


@pytest.fixture
def timings():
    messages = []
    handler_id = logger.add(
        messages.append,
        level="DEBUG",
        format="{message}",
        filter=lambda record: record["message"].startswith("Action "),
    )
    yield messages
    logger.remove(handler_id)


def test_action_timings_follow_adapter_config(transport, index, make_settings, timings):
    transport.route(PRIMARY, index)
    quiet = LiskDEXAdapter(make_settings(dex_wallet_address=MULTISIG, log_action_timings=False))
    verbose = LiskDEXAdapter(make_settings(dex_wallet_address=MULTISIG, log_action_timings=True))

    run(quiet.get_max_block_height())
    assert timings == []

    run(verbose.get_max_block_height())
    assert len(timings) == 1
    assert "get_max_block_height" in timings[0]

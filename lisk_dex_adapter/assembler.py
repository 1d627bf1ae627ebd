import hashlib
import random
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from lisk_dex_adapter import codec
from lisk_dex_adapter.errors import AdapterError, ErrorKind
from lisk_dex_adapter.models import AccountAuth, PreparedTransaction, SignaturePacket
from lisk_dex_adapter.service.repository import ServiceRepository

TRANSFER_MODULE = "token"
TRANSFER_COMMAND = "transfer"


def compute_transaction_id(sender_address: str, nonce: Any) -> str:
    """
    Compute the DEX transaction ID of a transfer.

    The ID only depends on the sender and the nonce, so every member of a
    multisig wallet derives the same ID before the transaction is broadcast.
    """
    return hashlib.sha256(f"{sender_address}-{nonce}".encode("utf-8")).hexdigest()


def select_signatures(
    packets: Sequence[SignaturePacket],
    required: int,
    rng: random.Random,
) -> List[SignaturePacket]:
    """
    Pick the signatures sent with a multisig transaction.

    The first packet belongs to the initiating member and is always kept. The
    remaining ``required - 1`` signatures are a uniformly random subset of the
    other packets, or all of them when fewer are available.
    """
    if not packets:
        return []
    first, rest = packets[0], list(packets[1:])
    count = min(max(required - 1, 0), len(rest))
    return [first] + rng.sample(rest, count)


def usable_signatures(
    packets: Sequence[SignaturePacket],
    members: Sequence[str],
) -> List[SignaturePacket]:
    """
    Drop packets that cannot count towards a quorum, keeping the original order.

    A signer only counts once, so repeated packets for a key are skipped. For
    multisig wallets packets from keys outside the member list are skipped too.
    """
    member_keys = {key.lower() for key in members}
    seen = set()
    usable = []
    for packet in packets:
        key = packet.public_key.lower()
        if key in seen:
            continue
        seen.add(key)
        if member_keys and key not in member_keys:
            logger.warning(f"Ignoring signature from non member {packet.signer_address}")
            continue
        usable.append(packet)
    return usable


def signature_vector(
    members: Sequence[str],
    selected: Sequence[SignaturePacket],
) -> List[bytes]:
    """
    Order the selected signatures by the wallet's member keys.

    Members without a selected signature get an empty placeholder, so the
    vector always has one entry per member. Regular accounts have no members;
    their signatures are kept in selection order.
    """
    if not members:
        return [bytes.fromhex(packet.signature) for packet in selected]
    by_key = {packet.public_key.lower(): packet.signature for packet in selected}
    unknown = set(by_key) - {key.lower() for key in members}
    if unknown:
        raise ValueError(f"Signatures from non member keys: {sorted(unknown)}")
    return [bytes.fromhex(by_key.get(key.lower(), "")) for key in members]


class TransactionAssembler:
    """
    TransactionAssembler turns a prepared transfer into a Lisk transaction and broadcasts it.

    Attributes:
        repository (ServiceRepository): Used to read the wallet's auth record and to
                                        submit the encoded transaction.
        wallet_address (str): The multisig wallet transfers are sent from.
        rng (random.Random): Source for the random quorum selection.
    """

    def __init__(
        self,
        repository: ServiceRepository,
        wallet_address: str,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.repository = repository
        self.wallet_address = wallet_address
        self.rng = rng or random.SystemRandom()

    def build_payload(self, transaction: PreparedTransaction, auth: AccountAuth) -> str:
        """
        Encode a prepared transfer with a quorum of its signatures.

        Args:
            transaction (PreparedTransaction): The transfer and its collected signatures.
            auth (AccountAuth): Auth record of the sending wallet.

        Returns:
            str: The hex encoded transaction.

        Raises:
            ValueError: If fewer distinct member signatures than the wallet
                        requires were collected.
        """
        required = auth.number_of_signatures
        usable = usable_signatures(transaction.signatures, auth.members)
        if auth.members and len(usable) < required:
            raise ValueError(
                f"Only {len(usable)} of {required} required member signatures were collected",
            )
        selected = select_signatures(usable, required, self.rng)
        params = codec.encode_transfer_params(
            token_id=transaction.token_id,
            amount=transaction.amount,
            recipient_address=codec.address_from_lisk32(transaction.recipient_address),
            data=transaction.message,
        )
        encoded = codec.encode_transaction(
            {
                "module": TRANSFER_MODULE,
                "command": TRANSFER_COMMAND,
                "nonce": transaction.nonce,
                "fee": transaction.fee,
                "senderPublicKey": transaction.sender_public_key,
                "params": params,
                "signatures": signature_vector(auth.members, selected),
            },
        )
        return encoded.hex()

    async def submit(self, transaction: PreparedTransaction) -> str:
        """
        Assemble and broadcast a prepared transfer.

        Returns:
            str: The ledger transaction ID reported by Lisk Service.

        Raises:
            AdapterError: BROADCAST_REJECTED when the service does not return a
                          transaction ID.
            ValueError: If the transaction is not sent from the DEX wallet or
                        cannot be encoded.
        """
        sender_address = transaction.sender_address or codec.address_from_public_key(
            transaction.sender_public_key,
        )
        if sender_address != self.wallet_address:
            raise ValueError(
                f"Transaction sender {sender_address} is not the DEX wallet "
                f"{self.wallet_address}",
            )

        auth = AccountAuth.model_validate(await self.repository.get_auth(sender_address))
        payload = self.build_payload(transaction, auth)

        dex_id = transaction.id or compute_transaction_id(sender_address, transaction.nonce)
        logger.info(f"Broadcasting transaction {dex_id} from {sender_address}")
        response: Dict[str, Any] = await self.repository.post_transaction(payload) or {}
        transaction_id = response.get("transactionID") if isinstance(response, dict) else None
        if not transaction_id:
            raise AdapterError(
                ErrorKind.BROADCAST_REJECTED,
                f"Transaction {dex_id} was not accepted: {response}",
            )
        logger.info(f"Transaction {dex_id} accepted as {transaction_id}")
        return transaction_id

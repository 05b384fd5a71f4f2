"""Off-chain message signing.

An ``OffchainMessage`` is encoded as SNIP-12 (revision 1) typed data,
following Dojo's convention of naming the primary type after the world
model it targets (``namespace-Model``).  The typed-data hash for the signer
address is signed with STARK-curve ECDSA, giving an ``(r, s)`` pair.

Signing is a pure function of the message and the private key.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from starknet_py.hash.utils import message_signature
from starknet_py.hash.utils import private_to_stark_key
from starknet_py.hash.utils import verify_message_signature
from starknet_py.utils.typed_data import TypedData

from haikuagent.errors import ConfigError
from haikuagent.errors import SigningError
from haikuagent.models import OffchainMessage
from haikuagent.models import SignedMessage

# Order of the STARK curve generator; private keys live in [1, EC_ORDER).
EC_ORDER = 0x800000000000010FFFFFFFFFFFFFFFFB781126DCAE7B2321E66A241ADC64D2F
# Field prime; addresses are field elements.
FIELD_PRIME = 0x800000000000011000000000000000000000000000000000000000000000001

_DOMAIN_TYPE = [
    {"name": "name", "type": "shortstring"},
    {"name": "version", "type": "shortstring"},
    {"name": "chainId", "type": "shortstring"},
    {"name": "revision", "type": "shortstring"},
]

_MESSAGE_MEMBERS = [
    {"name": "identity", "type": "ContractAddress"},
    {"name": "agent_name", "type": "string"},
    {"name": "request_id", "type": "felt"},
    {"name": "event_tag", "type": "string"},
    {"name": "response", "type": "string"},
    {"name": "timestamp", "type": "u128"},
]


def _parse_hex_scalar(value: str, what: str) -> int:
    raw = value.strip()
    try:
        parsed = int(raw, 16)
    except ValueError as exc:
        raise ConfigError(f"{what} is not a valid hex value") from exc
    return parsed


@dataclass(frozen=True)
class Credentials:
    """Signer address and private key, parsed once at startup."""

    address: int
    private_key: int = field(repr=False)

    @classmethod
    def from_hex(cls, address: str, private_key: str) -> Credentials:
        """Parse hex-encoded scalars; any problem is a configuration error."""
        parsed_address = _parse_hex_scalar(address, "signer address")
        parsed_key = _parse_hex_scalar(private_key, "signer private key")
        if not 0 < parsed_address < FIELD_PRIME:
            raise ConfigError("signer address is out of range")
        if not 0 < parsed_key < EC_ORDER:
            raise ConfigError("signer private key is out of range")
        return cls(address=parsed_address, private_key=parsed_key)

    @property
    def public_key(self) -> int:
        return private_to_stark_key(self.private_key)


@dataclass(frozen=True)
class MessageDomain:
    """SNIP-12 domain and the world model the message targets."""

    name: str = "haiku"
    version: str = "1"
    chain_id: str = "SN_SEPOLIA"
    message_type: str = "haiku-PromptMessage"


def build_typed_data(
    message: OffchainMessage,
    identity: int,
    domain: MessageDomain,
) -> dict[str, Any]:
    """Encode *message* as a SNIP-12 typed-data mapping."""
    return {
        "types": {
            "StarknetDomain": _DOMAIN_TYPE,
            domain.message_type: _MESSAGE_MEMBERS,
        },
        "primaryType": domain.message_type,
        "domain": {
            "name": domain.name,
            "version": domain.version,
            "chainId": domain.chain_id,
            "revision": "1",
        },
        "message": {
            "identity": hex(identity),
            "agent_name": message.agent_name,
            "request_id": message.request_id,
            "event_tag": message.event_tag,
            "response": message.response_text,
            "timestamp": message.timestamp,
        },
    }


def typed_data_hash(data: dict[str, Any], account_address: int) -> int:
    """Return the SNIP-12 message hash of *data* for *account_address*."""
    try:
        return TypedData.from_dict(data).message_hash(account_address)
    except (KeyError, TypeError, ValueError) as exc:
        raise SigningError(f"cannot encode typed data: {exc}") from exc


def sign_message(
    message: OffchainMessage,
    credentials: Credentials,
    domain: MessageDomain,
) -> SignedMessage:
    """Sign *message* with *credentials*; deterministic for equal inputs."""
    data = build_typed_data(message, credentials.address, domain)
    msg_hash = typed_data_hash(data, credentials.address)
    try:
        r, s = message_signature(msg_hash, credentials.private_key)
    except (TypeError, ValueError) as exc:
        raise SigningError(f"cannot sign message: {exc}") from exc
    return SignedMessage(
        message=json.dumps(data, separators=(",", ":")),
        signature=(hex(r), hex(s)),
    )


def verify_signed_message(signed: SignedMessage, credentials: Credentials) -> bool:
    """Check *signed* against the public key derived from *credentials*."""
    data = json.loads(signed.message)
    msg_hash = typed_data_hash(data, credentials.address)
    return verify_message_signature(
        msg_hash, [signed.r, signed.s], credentials.public_key
    )

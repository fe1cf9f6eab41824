"""Decentralized identifiers for on-chain entities.

Four grammars are understood:

*  ``did:erc721:<chainID>:<address>:<tokenID>``: an ERC721 token.
*  ``did:nft:<chainID>:<address>_<tokenID>``: legacy ERC721 form, decode only.
*  ``did:ethr:<chainID>:<address>``: an Ethereum account or contract.
*  ``did:erc20:<chainID>:<address>``: an ERC20 token contract.

Addresses are always rendered in EIP-55 checksum case.  A chain ID is an
unsigned 64-bit decimal; a token ID is a non-negative decimal of any size.
"""

from __future__ import annotations

import re

from eth_utils import is_hex_address, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, field_validator

from cloudevent.core.errors import (
    INVALID_CHAIN_ID,
    INVALID_CONTRACT_ADDRESS,
    INVALID_NFT_FORMAT,
    INVALID_TOKEN_ID,
    NEGATIVE_TOKEN_ID,
    WRONG_METHOD,
    WRONG_PART_COUNT,
    WRONG_PREFIX,
    InvalidDIDError,
)

DID_PREFIX = "did"
ERC721_DID_METHOD = "erc721"
ETHR_DID_METHOD = "ethr"
ERC20_DID_METHOD = "erc20"
LEGACY_NFT_DID_METHOD = "nft"

ZERO_ADDRESS = "0x" + "0" * 40
MAX_CHAIN_ID = 2**64 - 1

_UNSIGNED = re.compile(r"[0-9]+")
_SIGNED = re.compile(r"[+-]?[0-9]+")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class _AddressDID(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    chain_id: int = Field(default=0, alias="chainId", ge=0, le=MAX_CHAIN_ID)
    contract_address: str = Field(default=ZERO_ADDRESS, alias="contract")

    @field_validator("contract_address")
    @classmethod
    def _checksum_address(cls, value: str) -> str:
        if not is_hex_address(value):
            raise ValueError(f"invalid contract address {value}")
        return to_checksum_address(value)


class ERC721DID(_AddressDID):
    """Identifier of a single ERC721 token."""

    token_id: int | None = Field(default=None, alias="tokenId", ge=0)

    def __str__(self) -> str:
        # An unset token renders as "<nil>"; existing index rows depend on it.
        token = "<nil>" if self.token_id is None else str(self.token_id)
        prefix = _encode_address_did(ERC721_DID_METHOD, self.chain_id, self.contract_address)
        return f"{prefix}:{token}"


class EthrDID(_AddressDID):
    """Identifier of an Ethereum account or contract."""

    def __str__(self) -> str:
        return _encode_address_did(ETHR_DID_METHOD, self.chain_id, self.contract_address)


class ERC20DID(_AddressDID):
    """Identifier of an ERC20 token contract."""

    def __str__(self) -> str:
        return _encode_address_did(ERC20_DID_METHOD, self.chain_id, self.contract_address)


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------

def decode_erc721_did(did: str) -> ERC721DID:
    """Decode ``did:erc721:...``.  Legacy ``did:nft:...`` strings are accepted too."""
    parts = did.split(":")
    if len(parts) != 5:
        if len(parts) == 4 and parts[1] == LEGACY_NFT_DID_METHOD:
            return decode_legacy_nft_did(did)
        raise InvalidDIDError(WRONG_PART_COUNT, did)
    _check_prefix_and_method(parts, ERC721_DID_METHOD)
    chain_id = _parse_chain_id(parts[2])
    address = _parse_address(parts[3])
    token_id = _parse_token_id(parts[4])
    return ERC721DID(chain_id=chain_id, contract_address=address, token_id=token_id)


def decode_legacy_nft_did(did: str) -> ERC721DID:
    """Decode the legacy ``did:nft:<chainID>:<address>_<tokenID>`` form.

    Most callers want :func:`decode_erc721_did`, which falls back to this.
    """
    parts = did.split(":")
    if len(parts) != 4:
        raise InvalidDIDError(WRONG_PART_COUNT, did)
    _check_prefix_and_method(parts, LEGACY_NFT_DID_METHOD)
    nft_parts = parts[3].split("_")
    if len(nft_parts) != 2:
        raise InvalidDIDError(INVALID_NFT_FORMAT, parts[3])
    chain_id = _parse_chain_id(parts[2])
    address = _parse_address(nft_parts[0])
    token_id = _parse_token_id(nft_parts[1])
    return ERC721DID(chain_id=chain_id, contract_address=address, token_id=token_id)


def decode_ethr_did(did: str) -> EthrDID:
    chain_id, address = _decode_address_did(did, ETHR_DID_METHOD)
    return EthrDID(chain_id=chain_id, contract_address=address)


def decode_erc20_did(did: str) -> ERC20DID:
    chain_id, address = _decode_address_did(did, ERC20_DID_METHOD)
    return ERC20DID(chain_id=chain_id, contract_address=address)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _decode_address_did(did: str, method: str) -> tuple[int, str]:
    parts = did.split(":")
    if len(parts) != 4:
        raise InvalidDIDError(WRONG_PART_COUNT, did)
    _check_prefix_and_method(parts, method)
    return _parse_chain_id(parts[2]), _parse_address(parts[3])


def _encode_address_did(method: str, chain_id: int, address: str) -> str:
    return f"{DID_PREFIX}:{method}:{chain_id}:{address}"


def _check_prefix_and_method(parts: list[str], method: str) -> None:
    if parts[0] != DID_PREFIX:
        raise InvalidDIDError(WRONG_PREFIX, parts[0])
    if parts[1] != method:
        raise InvalidDIDError(WRONG_METHOD, parts[1])


def _parse_chain_id(raw: str) -> int:
    if not _UNSIGNED.fullmatch(raw):
        raise InvalidDIDError(INVALID_CHAIN_ID, raw)
    chain_id = int(raw)
    if chain_id > MAX_CHAIN_ID:
        raise InvalidDIDError(INVALID_CHAIN_ID, raw)
    return chain_id


def _parse_address(raw: str) -> str:
    if not is_hex_address(raw):
        raise InvalidDIDError(INVALID_CONTRACT_ADDRESS, raw)
    return to_checksum_address(raw)


def _parse_token_id(raw: str) -> int:
    if not _SIGNED.fullmatch(raw):
        raise InvalidDIDError(INVALID_TOKEN_ID, raw)
    token_id = int(raw)
    if token_id < 0:
        raise InvalidDIDError(NEGATIVE_TOKEN_ID, raw)
    return token_id

"""Custom exception hierarchy for cloud event indexing and retrieval."""

from __future__ import annotations


class CloudEventError(Exception):
    """Base exception for all cloudevent errors."""


# --- Identity ---
WRONG_PART_COUNT = "wrong part count"
WRONG_PREFIX = "wrong prefix"
WRONG_METHOD = "wrong method"
INVALID_CHAIN_ID = "invalid chain ID"
INVALID_CONTRACT_ADDRESS = "invalid contract address"
INVALID_TOKEN_ID = "invalid token ID"
NEGATIVE_TOKEN_ID = "negative token ID"
INVALID_NFT_FORMAT = "invalid NFT format"


class InvalidDIDError(CloudEventError, ValueError):
    """A DID string could not be decoded."""

    def __init__(self, reason: str, part: str = ""):
        self.reason = reason
        self.part = part
        msg = f"invalid DID, {reason}"
        if part:
            msg = f"{msg} {part}"
        super().__init__(msg)


# --- Lookup ---
class NotFoundError(CloudEventError, LookupError):
    """Requested data does not exist (yet)."""


class IndexNotFoundError(NotFoundError):
    """An index query matched no rows."""


class ObjectNotFoundError(NotFoundError):
    """No object is stored under the requested key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"object not found: {key}")


# --- Transcoding ---
class TranscodeError(CloudEventError, ValueError):
    """A row or envelope could not be encoded or decoded."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# --- Stores ---
class StoreError(CloudEventError):
    """The index store or object store failed."""

    def __init__(self, message: str, operation: str, key: str | None = None):
        self.operation = operation
        self.key = key
        super().__init__(message)


# --- Configuration ---
class ConfigError(CloudEventError):
    """Invalid or missing configuration."""

"""
Domain exceptions for the trade core.

Every failure of a trade attempt is raised as a TradeError subclass with a
closed TradeErrorKind. Errors are constructed at the boundary where the
upstream response is parsed, so callers branch on the kind (or class), never
on upstream message text. The upstream message is kept verbatim in
``upstream_message`` for diagnostics.
"""

from enum import Enum
from typing import Optional


class AppError(Exception):
    """Base application error with an HTTP-equivalent status code."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationError(AppError):
    """Input validation failure (400)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class TradeErrorKind(str, Enum):
    QUOTE_UNAVAILABLE = "quote_unavailable"
    ASSET_METADATA_UNAVAILABLE = "asset_metadata_unavailable"
    SIGNING_FAILED = "signing_failed"
    SUBMISSION_FAILED = "submission_failed"
    CONFIRMATION_TIMEOUT = "confirmation_timeout"
    POSITION_NOT_FOUND = "position_not_found"
    PRICE_FORMAT_INVALID = "price_format_invalid"


class TradeOutcome(str, Enum):
    """What the user can be told about their funds after a failure"""
    FUNDS_NOT_MOVED = "funds_not_moved"
    OUTCOME_UNCERTAIN = "outcome_uncertain"
    NOT_APPLICABLE = "not_applicable"


class TradeError(AppError):
    """Base class for every typed failure of the trade core."""

    kind: TradeErrorKind
    outcome: TradeOutcome = TradeOutcome.FUNDS_NOT_MOVED

    def __init__(
        self,
        message: str,
        upstream_message: Optional[str] = None,
        status_code: int = 502,
    ):
        self.upstream_message = upstream_message
        super().__init__(message, status_code=status_code)

    def __str__(self) -> str:
        if self.upstream_message:
            return f"{self.message}: {self.upstream_message}"
        return self.message


class QuoteUnavailable(TradeError):
    """Aggregator rejected the request or returned a malformed quote/swap body."""
    kind = TradeErrorKind.QUOTE_UNAVAILABLE


class AssetMetadataUnavailable(TradeError):
    """Token decimals could not be resolved from the mint account."""
    kind = TradeErrorKind.ASSET_METADATA_UNAVAILABLE


class SigningFailed(TradeError):
    """Signer key does not match the transaction, or signing raised."""
    kind = TradeErrorKind.SIGNING_FAILED


class SubmissionFailed(TradeError):
    """Node or relay rejected the transaction set, or it failed on chain."""
    kind = TradeErrorKind.SUBMISSION_FAILED

    def __init__(
        self,
        message: str,
        upstream_message: Optional[str] = None,
        signature: Optional[str] = None,
    ):
        self.signature = signature
        super().__init__(message, upstream_message)


class ConfirmationTimeout(TradeError):
    """No confirmation observed within the polling bound."""
    kind = TradeErrorKind.CONFIRMATION_TIMEOUT
    outcome = TradeOutcome.OUTCOME_UNCERTAIN

    def __init__(self, message: str, signature: str, non_atomic: bool = False):
        self.signature = signature
        self.non_atomic = non_atomic
        super().__init__(message, status_code=504)


class PositionNotFound(TradeError):
    kind = TradeErrorKind.POSITION_NOT_FOUND
    outcome = TradeOutcome.NOT_APPLICABLE

    def __init__(self, position_id: str):
        self.position_id = position_id
        super().__init__(f"Position with id {position_id} not found", status_code=404)


class PriceFormatInvalid(TradeError):
    """Price feed returned a non-numeric (or non-finite) price."""
    kind = TradeErrorKind.PRICE_FORMAT_INVALID
    outcome = TradeOutcome.NOT_APPLICABLE


class PriceUnavailable(AppError):
    """Price feed could not be reached or answered with an error status (503)."""

    def __init__(self, message: str = "Price feed unavailable"):
        super().__init__(message, status_code=503)

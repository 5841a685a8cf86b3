"""
Marketplace error kinds.

Every business-rule failure raised by the ledgers and the order workflow is a
MarketplaceError subclass. The API layer maps `http_status` straight onto the
response; nothing below the API converts or retries these.
"""
from typing import Dict, Optional


class MarketplaceError(Exception):
    """Base exception for marketplace business-rule failures."""
    http_status: int = 400

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(MarketplaceError):
    """Crop, order or escrow record does not exist."""
    http_status = 404


class ForbiddenError(MarketplaceError):
    """Acting user is not allowed to perform the operation."""
    http_status = 403


class InvalidTransitionError(MarketplaceError):
    """Requested status change is not legal from the current status."""
    http_status = 409


class InvalidStatusError(MarketplaceError):
    """Requested status is not one a caller may ask for."""
    http_status = 400


class InsufficientStockError(MarketplaceError):
    """Requested quantity exceeds the crop's available stock."""
    http_status = 409


class CropUnavailableError(MarketplaceError):
    """Crop is not in AVAILABLE status."""
    http_status = 409


class PaymentDeclinedError(MarketplaceError):
    """Gateway declined the authorization or did not answer in time."""
    http_status = 402


class DuplicateHoldError(MarketplaceError):
    """An escrow record already exists for the order."""
    http_status = 409


class AlreadyFinalizedError(MarketplaceError):
    """Escrow record has already been released or refunded."""
    http_status = 409


class PaymentGatewayError(MarketplaceError):
    """Gateway failed an operation other than authorization (e.g. void)."""
    http_status = 502

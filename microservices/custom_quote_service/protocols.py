"""
Custom Quote Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from decimal import Decimal
from typing import List, Optional, Protocol, runtime_checkable

from .models import CustomQuote, CustomQuoteStatus


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class CustomQuoteServiceError(Exception):
    """Base exception for custom quote service errors"""
    pass


class CustomQuoteNotFoundError(CustomQuoteServiceError):
    """Quote not found"""
    pass


class QuoteNotPricedError(CustomQuoteServiceError):
    """Acceptance attempted before an administrator set the amount"""
    pass


class InvalidQuoteStateError(CustomQuoteServiceError):
    """Operation not allowed in the quote's current status"""
    pass


class UploadError(CustomQuoteServiceError):
    """Image could not be stored"""
    pass


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class CustomQuoteRepositoryProtocol(Protocol):
    """Interface for custom quote persistence"""

    async def create_quote(self, quote: CustomQuote) -> CustomQuote: ...

    async def get_quote(self, quote_id: str) -> Optional[CustomQuote]: ...

    async def list_quotes(
        self,
        user_id: Optional[str] = None,
        status: Optional[CustomQuoteStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[CustomQuote]: ...

    async def set_quoted_amount(
        self,
        quote_id: str,
        amount: Decimal,
        admin_notes: Optional[str] = None,
    ) -> Optional[CustomQuote]:
        """Move a pending quote to quoted; None when it is not pending"""
        ...

    async def update_status(self, quote_id: str, status: CustomQuoteStatus) -> Optional[CustomQuote]: ...


@runtime_checkable
class StorageClientProtocol(Protocol):
    """File-upload collaborator: binary content in, public URL out"""

    async def upload_file(
        self,
        filename: str,
        content: bytes,
        content_type: str,
        user_id: Optional[str] = None,
    ) -> str: ...

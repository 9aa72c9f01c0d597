"""
Custom Quote Service Business Logic

Three phases for items without a standard rate:

    1. submit_quote      -> shipment (awaiting_quote) + quote (pending)
    2. set_quoted_amount -> quote (quoted), administrator only
    3. accept_quote      -> settlement through BookingService, quote (accepted)
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from microservices.booking_service.booking_service import BookingService
from microservices.booking_service.identifiers import new_id
from microservices.booking_service.models import SettlementChoiceRequest, ShipmentDetails
from microservices.booking_service.protocols import PersistenceError
from microservices.pricing_service.models import ItemClassification

from .events.publishers import (
    publish_custom_quote_accepted,
    publish_custom_quote_priced,
    publish_custom_quote_submitted,
)
from .models import (
    CustomQuote, CustomQuoteListResponse, CustomQuoteResponse,
    CustomQuoteStatus, CustomQuoteSubmitRequest, ImageUpload,
    QuoteAcceptRequest, QuoteAcceptResponse,
)
from .protocols import (
    CustomQuoteRepositoryProtocol, CustomQuoteServiceError,
    StorageClientProtocol, UploadError,
)

logger = logging.getLogger(__name__)


class CustomQuoteService:
    """Custom quote workflow service"""

    def __init__(
        self,
        repository: CustomQuoteRepositoryProtocol,
        booking_service: BookingService,
        storage_client: Optional[StorageClientProtocol] = None,
        event_bus=None,
    ):
        self.repository = repository
        self.booking_service = booking_service
        self.storage_client = storage_client
        self.event_bus = event_bus

    # ====================
    # Phase 1: submission
    # ====================

    async def submit_quote(
        self,
        request: CustomQuoteSubmitRequest,
        user_id: Optional[str] = None,
        images: Optional[List[ImageUpload]] = None,
    ) -> CustomQuoteResponse:
        """
        Store a quote request and the shipment it will price.

        Images are uploaded first; if any upload fails nothing is stored.
        """
        try:
            image_urls = list(request.image_urls)
            image_urls.extend(await self._upload_images(images or [], user_id))

            quote_id = new_id()
            shipment = await self.booking_service.open_custom_quote_shipment(
                sender_details=request.sender.model_dump(mode="json"),
                recipient_details=request.recipient.model_dump(mode="json") if request.recipient else {},
                details=ShipmentDetails(
                    services=request.addons,
                    item_category=request.category,
                    item_description=request.description,
                    classification=ItemClassification.CUSTOM,
                    collection_date=request.collection_date,
                    custom_quote_id=quote_id,
                ),
                user_id=user_id,
            )

            now = datetime.now(timezone.utc)
            quote = await self.repository.create_quote(CustomQuote(
                id=quote_id,
                user_id=user_id,
                shipment_id=shipment.id,
                name=request.name,
                email=request.email,
                phone_number=request.phone_number,
                description=request.description,
                category=request.category,
                image_urls=image_urls,
                sender_details=request.sender.model_dump(mode="json"),
                recipient_details=request.recipient.model_dump(mode="json") if request.recipient else None,
                status=CustomQuoteStatus.PENDING,
                quoted_amount=None,
                created_at=now,
                updated_at=now,
            ))

            summary = quote.description if len(quote.description) <= 30 else f"{quote.description[:30]}..."
            await self._notify(
                quote.user_id,
                "Custom Quote Requested",
                f'Your custom quote request for "{summary}" has been submitted. '
                f"We'll review it shortly.",
                quote.id,
            )

            if self.event_bus:
                try:
                    await publish_custom_quote_submitted(self.event_bus, quote)
                except Exception as e:
                    logger.error(f"Failed to publish custom_quote.submitted event: {e}")

            logger.info(f"Custom quote {quote.id} submitted for shipment {shipment.tracking_number}")
            return CustomQuoteResponse(
                success=True,
                quote=quote,
                shipment=shipment,
                message="Quote request submitted; we will review it shortly",
            )

        except UploadError as e:
            return CustomQuoteResponse(success=False, message=str(e), error_code="UPLOAD_ERROR")
        except PersistenceError as e:
            return CustomQuoteResponse(success=False, message=str(e), error_code="PERSISTENCE_ERROR")
        except Exception as e:
            logger.error(f"Failed to submit custom quote: {e}")
            return CustomQuoteResponse(
                success=False,
                message=f"Failed to submit quote: {str(e)}",
                error_code="PERSISTENCE_ERROR",
            )

    # ====================
    # Phase 2: administrator pricing
    # ====================

    async def set_quoted_amount(
        self,
        quote_id: str,
        amount: Decimal,
        admin_notes: Optional[str] = None,
    ) -> CustomQuoteResponse:
        """Price a pending quote (pending -> quoted)"""
        if amount is None or amount <= 0:
            return CustomQuoteResponse(
                success=False,
                message="Quoted amount must be greater than 0",
                error_code="VALIDATION_ERROR",
            )

        try:
            quote = await self.repository.get_quote(quote_id)
            if quote is None:
                return CustomQuoteResponse(
                    success=False,
                    message=f"Custom quote not found: {quote_id}",
                    error_code="NOT_FOUND",
                )
            if quote.status != CustomQuoteStatus.PENDING:
                return CustomQuoteResponse(
                    success=False,
                    quote=quote,
                    message=f"Quote is {quote.status.value}; only pending quotes can be priced",
                    error_code="INVALID_STATE",
                )

            priced = await self.repository.set_quoted_amount(quote_id, amount, admin_notes)
            if priced is None:
                # Priced or accepted by another request since it was read
                return CustomQuoteResponse(
                    success=False,
                    message="Quote is no longer pending",
                    error_code="INVALID_STATE",
                )
        except Exception as e:
            logger.error(f"Failed to price custom quote {quote_id}: {e}")
            return CustomQuoteResponse(
                success=False,
                message=f"Failed to price quote: {str(e)}",
                error_code="PERSISTENCE_ERROR",
            )

        item = priced.category or "your item"
        await self._notify(
            priced.user_id,
            "Quote Ready",
            f"Your custom quote for {item} is now available.",
            priced.id,
        )

        if self.event_bus:
            try:
                await publish_custom_quote_priced(self.event_bus, priced)
            except Exception as e:
                logger.error(f"Failed to publish custom_quote.priced event: {e}")

        logger.info(f"Custom quote {quote_id} priced at {priced.quoted_amount}")
        return CustomQuoteResponse(success=True, quote=priced, message="Quote priced")

    # ====================
    # Phase 3: acceptance
    # ====================

    async def accept_quote(
        self,
        quote_id: str,
        request: QuoteAcceptRequest,
        user_id: Optional[str] = None,
    ) -> QuoteAcceptResponse:
        """
        Accept a priced quote and record its settlement.

        Payment and receipt are written by BookingService exactly as on the
        immediate path; the quote is marked accepted afterwards. Retrying
        with the same idempotency key finishes an acceptance that stopped
        after the settlement was recorded.
        """
        try:
            quote = await self.repository.get_quote(quote_id)
        except Exception as e:
            logger.error(f"Failed to load custom quote {quote_id}: {e}")
            return QuoteAcceptResponse(
                success=False,
                message=f"Failed to load quote: {str(e)}",
                error_code="PERSISTENCE_ERROR",
            )

        if quote is None:
            return QuoteAcceptResponse(
                success=False,
                message=f"Custom quote not found: {quote_id}",
                error_code="NOT_FOUND",
            )
        if user_id and quote.user_id and quote.user_id != user_id:
            return QuoteAcceptResponse(
                success=False,
                message=f"Custom quote not found: {quote_id}",
                error_code="NOT_FOUND",
            )
        if quote.quoted_amount is None:
            return QuoteAcceptResponse(
                success=False,
                quote=quote,
                message="This quote has not been priced yet",
                error_code="QUOTE_NOT_PRICED",
            )
        if quote.shipment_id is None:
            return QuoteAcceptResponse(
                success=False,
                quote=quote,
                message="Quote has no shipment to settle",
                error_code="INVALID_STATE",
            )

        result = await self.booking_service.record_custom_quote_settlement(
            quote.shipment_id,
            quote.quoted_amount,
            SettlementChoiceRequest(
                method=request.method,
                sub_method=request.sub_method,
                displayed_total=request.displayed_total,
                idempotency_key=request.idempotency_key,
            ),
            user_id=user_id or quote.user_id,
        )

        if not result.success:
            return QuoteAcceptResponse(
                success=False,
                quote=quote,
                correlation_id=result.correlation_id,
                message=result.message,
                error_code=result.error_code,
            )

        accepted = quote
        if quote.status != CustomQuoteStatus.ACCEPTED:
            try:
                accepted = await self.repository.update_status(quote.id, CustomQuoteStatus.ACCEPTED) or quote
            except Exception as e:
                logger.error(f"Settlement recorded but quote {quote.id} not marked accepted: {e}")
                return QuoteAcceptResponse(
                    success=False,
                    quote=quote,
                    shipment=result.shipment,
                    selection=result.selection,
                    payment=result.payment,
                    receipt=result.receipt,
                    correlation_id=result.correlation_id,
                    message=(
                        "Payment recorded but the quote could not be marked accepted; "
                        "retry with the same idempotency key"
                    ),
                    error_code="PERSISTENCE_ERROR",
                )

            if self.event_bus:
                try:
                    await publish_custom_quote_accepted(self.event_bus, accepted, result.selection, result.receipt)
                except Exception as e:
                    logger.error(f"Failed to publish custom_quote.accepted event: {e}")

        logger.info(f"Custom quote {quote.id} accepted ({result.selection.method.value} {result.selection.final_total})")
        return QuoteAcceptResponse(
            success=True,
            quote=accepted,
            shipment=result.shipment,
            selection=result.selection,
            payment=result.payment,
            receipt=result.receipt,
            notification=result.notification,
            duplicate=result.duplicate,
            correlation_id=result.correlation_id,
            message="Quote accepted" if not result.duplicate else "Quote already accepted",
        )

    # ====================
    # Queries
    # ====================

    async def get_quote(self, quote_id: str) -> Optional[CustomQuote]:
        try:
            return await self.repository.get_quote(quote_id)
        except Exception as e:
            logger.error(f"Failed to get custom quote {quote_id}: {e}")
            raise CustomQuoteServiceError(f"Failed to get quote: {str(e)}")

    async def list_user_quotes(
        self,
        user_id: Optional[str],
        status: Optional[CustomQuoteStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> CustomQuoteListResponse:
        """Quotes of one user; all quotes when user_id is None (admin)"""
        try:
            quotes = await self.repository.list_quotes(user_id=user_id, status=status, limit=limit, offset=offset)
        except Exception as e:
            logger.error(f"Failed to list custom quotes for {user_id}: {e}")
            raise CustomQuoteServiceError(f"Failed to list quotes: {str(e)}")
        return CustomQuoteListResponse(quotes=quotes, count=len(quotes))

    # ====================
    # Helpers
    # ====================

    async def _upload_images(self, images: List[ImageUpload], user_id: Optional[str]) -> List[str]:
        if not images:
            return []
        if self.storage_client is None:
            raise UploadError("Image upload is not configured")

        urls = []
        for image in images:
            if not image.content_type.startswith("image/"):
                raise UploadError(f"{image.filename} is not an image")
            urls.append(await self.storage_client.upload_file(
                image.filename, image.content, image.content_type, user_id=user_id,
            ))
        return urls

    async def _notify(self, user_id: Optional[str], title: str, message: str, related_id: str) -> None:
        try:
            await self.booking_service.notify(user_id, title, message, "custom_quote", related_id)
        except Exception as e:
            logger.error(f"Failed to create '{title}' notification for quote {related_id}: {e}")

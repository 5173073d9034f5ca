from decimal import Decimal, InvalidOperation
from typing import List, Optional
import logging

from carbon_credit.clients.ledger_client import LedgerSession, checksum_address
from carbon_credit.errors import (
    InsufficientBalance,
    IntegrationFault,
    InvalidStateTransition,
    LedgerTransactionError,
    ValidationError,
)
from carbon_credit.models import BorrowRequest, RequestStatus
from carbon_credit.units import to_token_units

logger = logging.getLogger(__name__)

# Revert reasons the contract uses for specific request failures
INSUFFICIENT_BALANCE_MARKERS = ("insufficient", "not enough")
NOT_PENDING_MARKERS = ("not pending", "already processed", "already handled")


def parse_amount(amount) -> Decimal:
    """Accept a positive, finite token amount the ledger can represent exactly"""
    if isinstance(amount, bool):
        raise ValidationError("Enter a valid amount")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("Enter a valid amount")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Enter a valid amount")
    if value.normalize().as_tuple().exponent < -18:
        raise ValidationError("Amount has more than 18 decimal places")
    return value


class BorrowRequestLedger:
    """Borrow request state machine over the ledger's request primitives

    Pending -> Approved (ledger moves tokens from seller to buyer)
    Pending -> Declined (no balance effect)
    """

    def __init__(self, session: LedgerSession, unit_price: Decimal = Decimal("50")):
        self.session = session
        self.unit_price = Decimal(unit_price)

    async def create_request(self, seller_address: str, amount) -> int:
        value = parse_amount(amount)
        units = to_token_units(value)
        seller = checksum_address(seller_address)
        buyer = self.session.require_address()

        logger.info(f"Borrow request: {buyer} asks {seller} for {value}")
        ledger = self.session.ledger
        receipt = await ledger.create_request(buyer, seller, units)

        events = ledger.request_created_events(receipt)
        if len(events) != 1:
            raise IntegrationFault(
                f"Expected exactly one RequestCreated event in receipt, found {len(events)}"
            )
        request_id = int(events[0]["requestId"])
        logger.info(f"Request {request_id} created")
        return request_id

    async def list_requests(self, address: Optional[str] = None) -> List[BorrowRequest]:
        """Requests involving an address, in ledger order"""
        if address is None:
            address = self.session.require_address()
        rows = await self.session.ledger.get_users_requests(checksum_address(address))
        return [BorrowRequest.from_ledger(row) for row in rows]

    async def handle_request(self, request_id: int, approve: bool) -> RequestStatus:
        address = self.session.require_address()
        request = await self._find(address, int(request_id))
        if not request.is_pending:
            raise InvalidStateTransition(
                f"Request {request.id} is already {request.status.label}"
            )

        target = RequestStatus.APPROVED if approve else RequestStatus.DECLINED
        logger.info(f"Moving request {request.id} to {target.label}")
        try:
            await self.session.ledger.handle_request(address, request.id, bool(approve))
        except LedgerTransactionError as e:
            specific = await self._classify(request, approve, e)
            if specific is None:
                raise
            raise specific from e
        return target

    def quote(self, request: BorrowRequest) -> Decimal:
        return request.price(self.unit_price)

    async def _find(self, address: str, request_id: int) -> BorrowRequest:
        for request in await self.list_requests(address):
            if request.id == request_id:
                return request
        raise ValidationError(f"Request {request_id} not found for {address}")

    async def _seller_short(self, request: BorrowRequest) -> bool:
        """Whether the seller's live balance cannot cover the request"""
        try:
            record = await self.session.ledger.get_organization(request.potential_seller)
        except LedgerTransactionError as e:
            logger.warning(f"Could not read balance of {request.potential_seller}: {e}")
            return False
        return int(record.get("balance") or 0) < to_token_units(request.amount)

    async def _classify(self, request: BorrowRequest, approve: bool,
                        error: LedgerTransactionError) -> Optional[Exception]:
        reason = str(error)
        lowered = reason.lower()
        if approve and await self._seller_short(request):
            logger.warning(f"Seller {request.potential_seller} cannot cover request {request.id}")
            return InsufficientBalance(reason)
        # Fall back to the revert wording
        if any(marker in lowered for marker in INSUFFICIENT_BALANCE_MARKERS):
            logger.warning(f"Seller {request.potential_seller} cannot cover request {request.id}")
            return InsufficientBalance(reason)
        if any(marker in lowered for marker in NOT_PENDING_MARKERS):
            return InvalidStateTransition(reason)
        logger.error(f"handleRequest failed for request {request.id}: {reason}")
        return None

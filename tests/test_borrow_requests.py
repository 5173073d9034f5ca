"""Borrow request state machine: Pending -> Approved | Declined."""
from decimal import Decimal

import pytest

from carbon_credit.clients.ledger_client import LedgerSession
from carbon_credit.errors import (
    InsufficientBalance,
    IntegrationFault,
    InvalidStateTransition,
    LedgerTransactionError,
    NotAuthorized,
    ValidationError,
)
from carbon_credit.models import RequestStatus
from carbon_credit.services.borrow_requests import BorrowRequestLedger
from carbon_credit.units import to_token_units

from conftest import BUYER, ORG_A, ORG_B

pytestmark = pytest.mark.asyncio


@pytest.fixture
def buyer_desk(ledger):
    return BorrowRequestLedger(LedgerSession(ledger, BUYER))


@pytest.fixture
def seller_desk(ledger):
    return BorrowRequestLedger(LedgerSession(ledger, ORG_A))


async def status_of(desk, request_id):
    requests = await desk.list_requests()
    return next(r.status for r in requests if r.id == request_id)


async def test_create_request_starts_pending(buyer_desk, ledger):
    request_id = await buyer_desk.create_request(ORG_A, 30)

    requests = await buyer_desk.list_requests()
    assert [r.id for r in requests] == [request_id]
    assert requests[0].status == RequestStatus.PENDING
    assert requests[0].amount == 30
    assert ledger.requests[0]["amount"] == to_token_units(30)


@pytest.mark.parametrize("amount", [0, -1, "-3", "abc", "", None, float("nan"), float("inf"), True, "1e80"])
async def test_invalid_amount_rejected_before_ledger(buyer_desk, ledger, amount):
    with pytest.raises(ValidationError):
        await buyer_desk.create_request(ORG_A, amount)

    assert ledger.calls == []


async def test_invalid_seller_address_rejected(buyer_desk, ledger):
    with pytest.raises(ValidationError):
        await buyer_desk.create_request("not-an-address", 5)

    assert ledger.calls == []


async def test_create_request_requires_connection(ledger):
    desk = BorrowRequestLedger(LedgerSession(ledger, None))
    with pytest.raises(NotAuthorized):
        await desk.create_request(ORG_A, 5)


async def test_missing_request_event_is_integration_fault(buyer_desk, ledger):
    ledger.request_created_events = lambda receipt: []
    with pytest.raises(IntegrationFault):
        await buyer_desk.create_request(ORG_A, 5)


async def test_approval_with_insufficient_balance(buyer_desk, seller_desk, ledger):
    request_id = await buyer_desk.create_request(ORG_A, 30)

    with pytest.raises(InsufficientBalance, match="Insufficient balance"):
        await seller_desk.handle_request(request_id, True)

    assert await status_of(seller_desk, request_id) == RequestStatus.PENDING
    assert ledger.balance_of(ORG_A) == to_token_units(20)


async def test_insufficient_balance_is_a_ledger_error_kind(buyer_desk, seller_desk):
    request_id = await buyer_desk.create_request(ORG_A, 30)

    with pytest.raises(LedgerTransactionError):
        await seller_desk.handle_request(request_id, True)


async def test_decline_leaves_balance_unchanged(buyer_desk, seller_desk, ledger):
    request_id = await buyer_desk.create_request(ORG_A, 30)

    status = await seller_desk.handle_request(request_id, False)

    assert status == RequestStatus.DECLINED
    assert await status_of(seller_desk, request_id) == RequestStatus.DECLINED
    assert ledger.balance_of(ORG_A) == to_token_units(20)


async def test_approval_transfers_balance(ledger):
    buyer = BorrowRequestLedger(LedgerSession(ledger, BUYER))
    seller = BorrowRequestLedger(LedgerSession(ledger, ORG_B))
    request_id = await buyer.create_request(ORG_B, 30)

    assert await seller.handle_request(request_id, True) == RequestStatus.APPROVED
    assert ledger.balance_of(ORG_B) == to_token_units(70)
    assert ledger.balance_of(BUYER) == to_token_units(30)


@pytest.mark.parametrize("first", [True, False])
@pytest.mark.parametrize("second", [True, False])
async def test_terminal_requests_reject_any_transition(ledger, first, second):
    buyer = BorrowRequestLedger(LedgerSession(ledger, BUYER))
    seller = BorrowRequestLedger(LedgerSession(ledger, ORG_B))
    request_id = await buyer.create_request(ORG_B, 10)
    await seller.handle_request(request_id, first)
    calls_before = len(ledger.mutating_calls())

    with pytest.raises(InvalidStateTransition):
        await seller.handle_request(request_id, second)

    # Rejected locally, the ledger never saw a second handleRequest
    assert len(ledger.mutating_calls()) == calls_before + 1
    assert ledger.mutating_calls()[-1] == "get_users_requests"


async def test_ledger_not_pending_revert_maps_to_state_error(buyer_desk, seller_desk, ledger):
    request_id = await buyer_desk.create_request(ORG_A, 5)
    # Another session handled it between our read and our write
    original = ledger.get_users_requests

    async def stale_read(address):
        rows = await original(address)
        ledger.requests[0]["status"] = 2
        return [{**row, "status": 0} for row in rows]

    ledger.get_users_requests = stale_read
    with pytest.raises(InvalidStateTransition, match="not pending"):
        await seller_desk.handle_request(request_id, True)


async def test_generic_ledger_failure_passes_through(buyer_desk, seller_desk, ledger):
    request_id = await buyer_desk.create_request(ORG_A, 5)

    async def broken(sender, request_id, approve):
        raise LedgerTransactionError("nonce too low")

    ledger.handle_request = broken
    with pytest.raises(LedgerTransactionError, match="nonce too low") as excinfo:
        await seller_desk.handle_request(request_id, True)
    assert type(excinfo.value) is LedgerTransactionError


async def test_unknown_request_id(seller_desk):
    with pytest.raises(ValidationError):
        await seller_desk.handle_request(99, True)


async def test_list_requests_for_other_address(buyer_desk, seller_desk):
    await buyer_desk.create_request(ORG_A, 1)
    await buyer_desk.create_request(ORG_B, 2)

    requests = await seller_desk.list_requests(ORG_B)
    assert [r.amount for r in requests] == [2]


async def test_list_requests_preserves_ledger_order(buyer_desk):
    for amount in (3, 1, 2):
        await buyer_desk.create_request(ORG_A, amount)

    assert [r.amount for r in await buyer_desk.list_requests()] == [3, 1, 2]


async def test_quote_uses_unit_price(ledger):
    desk = BorrowRequestLedger(LedgerSession(ledger, BUYER), unit_price=Decimal("50"))
    await desk.create_request(ORG_A, 30)

    [request] = await desk.list_requests()
    assert desk.quote(request) == Decimal("1500")


async def test_short_seller_balance_wins_over_revert_wording(buyer_desk, seller_desk, ledger):
    request_id = await buyer_desk.create_request(ORG_A, 30)

    async def reverted(sender, request_id, approve):
        raise LedgerTransactionError("execution reverted: transfer amount exceeds balance")

    ledger.handle_request = reverted
    with pytest.raises(InsufficientBalance, match="exceeds balance"):
        await seller_desk.handle_request(request_id, True)
    assert ledger.balance_of(ORG_A) == to_token_units(20)


async def test_decline_revert_is_not_read_as_insufficient_balance(buyer_desk, seller_desk, ledger):
    request_id = await buyer_desk.create_request(ORG_A, 30)

    async def reverted(sender, request_id, approve):
        raise LedgerTransactionError("execution reverted: paused")

    ledger.handle_request = reverted
    with pytest.raises(LedgerTransactionError) as excinfo:
        await seller_desk.handle_request(request_id, False)
    assert type(excinfo.value) is LedgerTransactionError

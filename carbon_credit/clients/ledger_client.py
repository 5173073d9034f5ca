import asyncio
from typing import Any, Dict, List, Optional
import logging

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.logs import DISCARD

from carbon_credit.config.contract_abi import (
    CARBON_CREDIT_ABI,
    ORGANIZATION_FIELDS,
    REQUEST_FIELDS,
)
from carbon_credit.errors import LedgerTransactionError, NotAuthorized, ValidationError

logger = logging.getLogger(__name__)

# Failures of the RPC transport itself (aiohttp connection errors are OSErrors)
TRANSPORT_ERRORS = (Web3Exception, OSError, asyncio.TimeoutError)


def checksum_address(address: str) -> str:
    try:
        return AsyncWeb3.to_checksum_address(address)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid ledger address: {address!r}")


class ContractLedger:
    """Async adapter over the carbon credit contract

    Mutating calls send one transaction and wait for its receipt. Nothing here
    retries: a resent transaction would be a second, independent mutation.
    """

    def __init__(self, rpc_url: str, contract_address: str,
                 private_key: Optional[str] = None, tx_timeout: float = 120.0,
                 from_block: int = 0, w3: Optional[AsyncWeb3] = None):
        self.w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.contract = self.w3.eth.contract(
            address=checksum_address(contract_address),
            abi=CARBON_CREDIT_ABI
        )
        self.private_key = private_key
        self.tx_timeout = tx_timeout
        self.from_block = from_block

    @classmethod
    def from_settings(cls, settings) -> "ContractLedger":
        return cls(
            rpc_url=settings.LEDGER_RPC_URL,
            contract_address=settings.LEDGER_CONTRACT_ADDRESS,
            private_key=settings.LEDGER_PRIVATE_KEY,
            tx_timeout=settings.TX_TIMEOUT,
            from_block=settings.LEDGER_FROM_BLOCK
        )

    async def default_account(self) -> Optional[str]:
        """Address to act as: the signing key's, else the node's first account"""
        if self.private_key:
            return self.w3.eth.account.from_key(self.private_key).address
        try:
            accounts = await self.w3.eth.accounts
        except TRANSPORT_ERRORS as e:
            logger.error(f"Could not read node accounts: {e}")
            return None
        return accounts[0] if accounts else None

    async def _transact(self, fn, sender: str, label: str):
        try:
            if self.private_key:
                tx = await fn.build_transaction({
                    "from": sender,
                    "nonce": await self.w3.eth.get_transaction_count(sender)
                })
                signed = self.w3.eth.account.sign_transaction(tx, self.private_key)
                tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            else:
                tx_hash = await fn.transact({"from": sender})
            logger.info(f"{label} sent: {tx_hash.hex()}")
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.tx_timeout
            )
        except ContractLogicError as e:
            logger.error(f"{label} reverted: {e}")
            raise LedgerTransactionError(str(e)) from e
        except TimeExhausted as e:
            logger.error(f"{label} not final after {self.tx_timeout}s: {e}")
            raise LedgerTransactionError(str(e)) from e
        except TRANSPORT_ERRORS as e:
            logger.error(f"{label} failed: {e}")
            raise LedgerTransactionError(str(e)) from e

        if receipt["status"] != 1:
            raise LedgerTransactionError(f"{label} reverted in transaction {tx_hash.hex()}")
        return receipt

    async def _call(self, fn, label: str):
        try:
            return await fn.call()
        except TRANSPORT_ERRORS as e:
            logger.error(f"{label} failed: {e}")
            raise LedgerTransactionError(str(e)) from e

    def _events(self, event_name: str, receipt) -> List[Dict[str, Any]]:
        event = getattr(self.contract.events, event_name)()
        return [dict(log["args"]) for log in event.process_receipt(receipt, errors=DISCARD)]

    async def get_organization(self, address: str) -> Dict[str, Any]:
        fn = self.contract.functions.organizations(checksum_address(address))
        result = await self._call(fn, "organizations")
        return dict(zip(ORGANIZATION_FIELDS, result))

    async def submit_claim(self, sender: str, coordinates_x: int, coordinates_y: int,
                           acres: int, demanded_tokens: int, project_details: str,
                           project_name: str, photo_hashes: List[str], year: int):
        fn = self.contract.functions.submitClaim(
            coordinates_x, coordinates_y, acres, demanded_tokens,
            project_details, project_name, photo_hashes, year
        )
        return await self._transact(fn, sender, "submitClaim")

    def claim_submitted_events(self, receipt) -> List[Dict[str, Any]]:
        return self._events("ClaimSubmitted", receipt)

    async def approve_claim(self, sender: str, claim_id: int, approved_tokens: int):
        fn = self.contract.functions.approveClaim(claim_id, approved_tokens)
        return await self._transact(fn, sender, "approveClaim")

    async def create_request(self, sender: str, potential_seller: str, amount: int):
        fn = self.contract.functions.createRequest(checksum_address(potential_seller), amount)
        return await self._transact(fn, sender, "createRequest")

    def request_created_events(self, receipt) -> List[Dict[str, Any]]:
        return self._events("RequestCreated", receipt)

    async def handle_request(self, sender: str, request_id: int, approve: bool):
        fn = self.contract.functions.handleRequest(request_id, approve)
        return await self._transact(fn, sender, "handleRequest")

    async def get_users_requests(self, address: str) -> List[Dict[str, Any]]:
        fn = self.contract.functions.getUsersRequest(checksum_address(address))
        rows = await self._call(fn, "getUsersRequest")
        return [
            dict(row) if isinstance(row, dict) else dict(zip(REQUEST_FIELDS, row))
            for row in rows
        ]

    async def organization_registered_events(self) -> List[Dict[str, Any]]:
        event = self.contract.events.OrganizationRegistered()
        try:
            logs = await event.get_logs(from_block=self.from_block)
        except TRANSPORT_ERRORS as e:
            logger.error(f"OrganizationRegistered query failed: {e}")
            raise LedgerTransactionError(str(e)) from e
        return [dict(log["args"]) for log in logs]


class LedgerSession:
    """A connected ledger handle plus the address acting through it"""

    def __init__(self, ledger, address: Optional[str] = None):
        self.ledger = ledger
        self.address = address

    @property
    def connected(self) -> bool:
        return self.ledger is not None and bool(self.address)

    def require_address(self) -> str:
        if not self.connected:
            raise NotAuthorized("Wallet not connected. Connect a ledger account first.")
        return self.address

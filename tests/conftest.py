"""Shared fixtures: an in-memory ledger and mocked HTTP collaborators."""
import json

import httpx
import pytest

from carbon_credit.clients.ledger_client import LedgerSession
from carbon_credit.clients.media_client import MediaUploadClient
from carbon_credit.clients.prediction_client import YieldPredictionClient
from carbon_credit.errors import LedgerTransactionError
from carbon_credit.units import to_token_units

# Well-known development chain accounts (already checksummed)
ORG_A = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
ORG_B = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
BUYER = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"


class FakeLedger:
    """In-memory stand-in for the contract, enforcing the same rules it does"""

    def __init__(self):
        self.organizations = {}
        self.registrations = []
        self.claims = {}
        self.requests = []
        self.calls = []
        self.fail_submit = None
        self.fail_approve = None
        self.claim_events_per_receipt = 1

    def register(self, address, name, balance=0, photo_hash=""):
        self.organizations[address] = {
            "name": name,
            "photoIpfsHash": photo_hash,
            "balance": to_token_units(balance),
            "isRegistered": True,
        }
        self.registrations.append({
            "orgAddress": address,
            "name": name,
            "photoIpfsHash": photo_hash,
            "balance": to_token_units(balance),
            "wallet": 0,
        })

    def balance_of(self, address):
        return self.organizations[address]["balance"]

    def mutating_calls(self):
        return [name for name, _ in self.calls if name != "get_organization"]

    async def get_organization(self, address):
        self.calls.append(("get_organization", (address,)))
        return self.organizations.get(
            address, {"name": "", "photoIpfsHash": "", "balance": 0, "isRegistered": False}
        )

    async def submit_claim(self, sender, x, y, acres, demanded, details, name, photos, year):
        self.calls.append(("submit_claim", (sender, x, y, acres, demanded, details, name, photos, year)))
        if self.fail_submit:
            raise LedgerTransactionError(self.fail_submit)
        claim_id = len(self.claims) + 1
        self.claims[claim_id] = {
            "organization": sender,
            "demanded": demanded,
            "photos": photos,
            "year": year,
            "approved": None,
        }
        events = [{"claimId": claim_id, "organization": sender, "demandedTokens": demanded}]
        return {"status": 1, "claim_events": events * self.claim_events_per_receipt}

    def claim_submitted_events(self, receipt):
        return receipt["claim_events"]

    async def approve_claim(self, sender, claim_id, approved_tokens):
        self.calls.append(("approve_claim", (sender, claim_id, approved_tokens)))
        if self.fail_approve:
            raise LedgerTransactionError(self.fail_approve)
        self.claims[claim_id]["approved"] = approved_tokens
        return {"status": 1}

    async def create_request(self, sender, seller, amount):
        self.calls.append(("create_request", (sender, seller, amount)))
        request_id = len(self.requests) + 1
        self.requests.append({
            "id": request_id,
            "buyer": sender,
            "potentialSeller": seller,
            "amount": amount,
            "status": 0,
        })
        return {"status": 1, "request_events": [{"requestId": request_id}]}

    def request_created_events(self, receipt):
        return receipt["request_events"]

    async def handle_request(self, sender, request_id, approve):
        self.calls.append(("handle_request", (sender, request_id, approve)))
        request = self.requests[request_id - 1]
        if request["status"] != 0:
            raise LedgerTransactionError("execution reverted: Request not pending")
        if approve:
            seller = self.organizations[request["potentialSeller"]]
            if seller["balance"] < request["amount"]:
                raise LedgerTransactionError("execution reverted: Insufficient balance")
            seller["balance"] -= request["amount"]
            buyer = self.organizations.setdefault(
                request["buyer"],
                {"name": "", "photoIpfsHash": "", "balance": 0, "isRegistered": False}
            )
            buyer["balance"] += request["amount"]
            request["status"] = 1
        else:
            request["status"] = 2
        return {"status": 1}

    async def get_users_requests(self, address):
        self.calls.append(("get_users_requests", (address,)))
        return [
            dict(r) for r in self.requests
            if address in (r["buyer"], r["potentialSeller"])
        ]

    async def organization_registered_events(self):
        self.calls.append(("organization_registered_events", ()))
        return list(self.registrations)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served"""

    def __init__(self, handler):
        self.requests = []

        def record(request):
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


def oracle_transport(prediction=None, status_code=200, error=None):
    def handler(request):
        if error is not None:
            raise error
        return httpx.Response(status_code, json={"prediction": prediction})

    return RecordingTransport(handler)


def media_transport(store=None, fail_message=None):
    """IPFS RPC double: /add stores bytes under a fake hash, /cat reads them back"""
    store = {} if store is None else store

    def handler(request):
        if request.url.path == "/api/v0/add":
            if fail_message:
                return httpx.Response(500, json={"Message": fail_message, "Code": 0, "Type": "error"})
            content_hash = f"Qm{len(store) + 1:044d}"
            store[content_hash] = request.read()
            return httpx.Response(200, json={"Name": "file", "Hash": content_hash, "Size": "1"})
        if request.url.path == "/api/v0/cat":
            content_hash = request.url.params["arg"]
            if content_hash in store:
                return httpx.Response(200, content=store[content_hash])
            return httpx.Response(500, json={"Message": "merkledag: not found", "Code": 0})
        return httpx.Response(404)

    return RecordingTransport(handler)


@pytest.fixture
def ledger():
    fake = FakeLedger()
    fake.register(ORG_A, "Green Acres", balance=20, photo_hash="QmOrgA")
    fake.register(ORG_B, "Reclaim Co", balance=100)
    return fake


@pytest.fixture
def session(ledger):
    return LedgerSession(ledger, ORG_A)


@pytest.fixture
def media():
    transport = media_transport()
    client = MediaUploadClient("http://ipfs.test", transport=transport)
    client.transport_log = transport.requests
    return client


def make_oracle(**kwargs):
    transport = oracle_transport(**kwargs)
    client = YieldPredictionClient("http://oracle.test/predict", transport=transport)
    client.transport_log = transport.requests
    return client


def posted_json(request):
    return json.loads(request.content)

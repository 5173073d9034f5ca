from typing import Any, Dict, Optional, Union
import logging

from carbon_credit.clients.ledger_client import LedgerSession
from carbon_credit.clients.media_client import MediaUploadClient
from carbon_credit.clients.prediction_client import YieldPredictionClient
from carbon_credit.errors import (
    IntegrationFault,
    LedgerTransactionError,
    NotAuthorized,
    OracleUnavailable,
)
from carbon_credit.models import ClaimInput, ClaimState, ClaimSubmission, MediaFile
from carbon_credit.units import to_token_units

logger = logging.getLogger(__name__)


def compute_award(demanded_tokens: int, predicted_tokens: int) -> int:
    """Never award more than requested, nor more than the model estimates"""
    return max(0, min(demanded_tokens, predicted_tokens))


class ClaimSubmissionCoordinator:
    """Runs the claim saga: evidence upload, claim tx, yield estimate, approval tx

    The two ledger transactions are independent, so a failed approval leaves the
    claim recorded but unapproved. That outcome is returned as
    ClaimState.SUBMITTED_UNAPPROVED rather than raised.
    """

    def __init__(self, session: LedgerSession, media: MediaUploadClient,
                 oracle: YieldPredictionClient, claim_year: int,
                 oracle_year: Optional[int] = None):
        self.session = session
        self.media = media
        self.oracle = oracle
        self.claim_year = claim_year
        self.oracle_year = oracle_year if oracle_year is not None else claim_year

    async def submit(self, claim: Union[ClaimInput, Dict[str, Any]],
                     evidence: Optional[MediaFile] = None) -> ClaimSubmission:
        if not isinstance(claim, ClaimInput):
            claim = ClaimInput.parse(claim)
        demanded_units = to_token_units(claim.demanded_tokens)
        if evidence is not None:
            self.media.validate(evidence)

        address = await self._require_registered()
        ledger = self.session.ledger

        # Evidence first: a claim must never reference a missing upload
        evidence_hash = ""
        if evidence is not None:
            evidence_hash = await self.media.upload(evidence)

        # Record the claim and read its id back from the receipt
        logger.info(f"Submitting claim '{claim.project_name}' for {address}")
        receipt = await ledger.submit_claim(
            address,
            claim.coordinates_x,
            claim.coordinates_y,
            claim.acres,
            demanded_units,
            claim.project_details,
            claim.project_name,
            [evidence_hash],
            self.claim_year
        )
        claim_id = self._claim_id(ledger.claim_submitted_events(receipt))
        logger.info(f"Claim {claim_id} recorded on ledger")

        # Estimate; an unreachable oracle degrades to a zero award
        oracle_available = True
        try:
            predicted = await self.oracle.predict(
                claim.coordinates_x, claim.coordinates_y, claim.acres, self.oracle_year
            )
        except OracleUnavailable as e:
            logger.warning(f"Oracle unavailable for claim {claim_id}, awarding 0: {e}")
            oracle_available = False
            predicted = 0

        # Cap and approve
        awarded = compute_award(claim.demanded_tokens, predicted)
        result = ClaimSubmission(
            claim_id=claim_id,
            evidence_hash=evidence_hash,
            demanded_tokens=claim.demanded_tokens,
            predicted_tokens=predicted,
            awarded_tokens=awarded,
            oracle_available=oracle_available,
            state=ClaimState.SUBMITTED_UNAPPROVED
        )
        try:
            await ledger.approve_claim(address, claim_id, to_token_units(awarded))
        except LedgerTransactionError as e:
            logger.error(f"Claim {claim_id} submitted but approval failed: {e}")
            result.approval_error = str(e)
            return result

        result.state = ClaimState.APPROVED
        logger.info(f"Claim {claim_id} approved, coins granted: {awarded}")
        return result

    async def _require_registered(self) -> str:
        address = self.session.require_address()
        organization = await self.session.ledger.get_organization(address)
        if not organization or not organization.get("isRegistered"):
            raise NotAuthorized(f"Organization {address} is not registered.")
        return address

    @staticmethod
    def _claim_id(events) -> int:
        if len(events) != 1:
            raise IntegrationFault(
                f"Expected exactly one ClaimSubmitted event in receipt, found {len(events)}"
            )
        return int(events[0]["claimId"])

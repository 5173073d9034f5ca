import asyncio
from typing import Dict, List, Optional
import logging

from carbon_credit.clients.ledger_client import LedgerSession
from carbon_credit.clients.media_client import MediaUploadClient
from carbon_credit.errors import CarbonCreditError
from carbon_credit.models import Organization
from carbon_credit.units import from_token_units

logger = logging.getLogger(__name__)


class OrganizationDirectory:
    """Read-only listing of organizations built from ledger registration events"""

    def __init__(self, session: LedgerSession, media: MediaUploadClient):
        self.session = session
        self.media = media

    async def list_organizations(self) -> List[Organization]:
        events = await self.session.ledger.organization_registered_events()
        logger.info(f"Replaying {len(events)} OrganizationRegistered events")

        organizations = [self._from_event(event) for event in events]
        photos = await asyncio.gather(
            *(self._resolve_photo(org.photo_hash) for org in organizations)
        )
        for org, photo in zip(organizations, photos):
            org.photo = photo
        return organizations

    async def get_organization(self, address: str) -> Optional[Organization]:
        """Live ledger record for one address, None when it never registered"""
        record = await self.session.ledger.get_organization(address)
        if not record or not record.get("isRegistered"):
            return None
        return Organization(
            address=address,
            name=record["name"],
            photo_hash=record.get("photoIpfsHash", ""),
            balance=from_token_units(record.get("balance", 0)),
            is_registered=True
        )

    @staticmethod
    def _from_event(event: Dict) -> Organization:
        return Organization(
            address=event["orgAddress"],
            name=event["name"],
            photo_hash=event.get("photoIpfsHash") or "",
            balance=from_token_units(event.get("balance") or 0),
            is_registered=True
        )

    async def _resolve_photo(self, photo_hash: str) -> Optional[bytes]:
        try:
            return await self.media.get(photo_hash)
        except CarbonCreditError as e:
            # Keep the organization, just without its photo
            logger.warning(f"Could not resolve photo {photo_hash}: {e}")
            return None

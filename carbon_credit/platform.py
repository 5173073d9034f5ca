from carbon_credit.clients.ledger_client import ContractLedger, LedgerSession
from carbon_credit.clients.media_client import MediaUploadClient
from carbon_credit.clients.prediction_client import YieldPredictionClient
from carbon_credit.services.borrow_requests import BorrowRequestLedger
from carbon_credit.services.claim_coordinator import ClaimSubmissionCoordinator
from carbon_credit.services.organization_directory import OrganizationDirectory
import logging

logger = logging.getLogger(__name__)

class CarbonCreditPlatform:
    def __init__(self, config, ledger=None, media=None, oracle=None):
        self.config = config
        self._initialize_clients(config, ledger, media, oracle)

        # Initialize services
        self.claims = ClaimSubmissionCoordinator(
            session=self.session,
            media=self.media,
            oracle=self.oracle,
            claim_year=config.CLAIM_YEAR,
            oracle_year=config.oracle_year
        )
        self.requests = BorrowRequestLedger(self.session, unit_price=config.CARBON_UNIT_PRICE)
        self.directory = OrganizationDirectory(self.session, self.media)
        self.initialized = False

    def _initialize_clients(self, config, ledger, media, oracle):
        """Initialize ledger, media store and oracle clients"""
        self.ledger = ledger or ContractLedger.from_settings(config)
        self.session = LedgerSession(self.ledger, config.LEDGER_ACCOUNT_ADDRESS)
        self.media = media or MediaUploadClient(
            config.IPFS_API_URL,
            max_size=config.MAX_UPLOAD_BYTES,
            timeout=config.MEDIA_TIMEOUT
        )
        self.oracle = oracle or YieldPredictionClient(
            config.ORACLE_URL,
            timeout=config.ORACLE_TIMEOUT
        )

    async def initialize(self):
        """Resolve the acting ledger account when none is configured"""
        if not self.session.address:
            self.session.address = await self.ledger.default_account()
        if self.session.address:
            logger.info(f"Connected as: {self.session.address}")
        else:
            logger.warning("No ledger account available, mutating calls will be refused")
        self.initialized = True

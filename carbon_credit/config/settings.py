from decimal import Decimal
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Ledger
    LEDGER_RPC_URL: str = "http://127.0.0.1:8545"
    LEDGER_CONTRACT_ADDRESS: str = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
    LEDGER_ACCOUNT_ADDRESS: Optional[str] = None
    LEDGER_PRIVATE_KEY: Optional[str] = None
    LEDGER_FROM_BLOCK: int = 0
    TX_TIMEOUT: float = 120.0

    # Media store (IPFS RPC API)
    IPFS_API_URL: str = "http://127.0.0.1:5001"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    MEDIA_TIMEOUT: float = 30.0

    # Yield prediction oracle
    ORACLE_URL: str = "http://127.0.0.1:5000/predict"
    ORACLE_TIMEOUT: float = 10.0

    # Claims
    CLAIM_YEAR: int = 2023
    ORACLE_YEAR: Optional[int] = None

    # Marketplace display price per credit
    CARBON_UNIT_PRICE: Decimal = Decimal("50")

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def oracle_year(self) -> int:
        """Year sent to the oracle; follows CLAIM_YEAR unless overridden"""
        return self.ORACLE_YEAR if self.ORACLE_YEAR is not None else self.CLAIM_YEAR

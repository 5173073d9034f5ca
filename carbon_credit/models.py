import mimetypes
import os
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Union
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from carbon_credit.errors import IntegrationFault, ValidationError
from carbon_credit.units import from_token_units

TokenAmount = Union[int, Decimal]


class RequestStatus(IntEnum):
    PENDING = 0
    APPROVED = 1
    DECLINED = 2

    @classmethod
    def parse(cls, code) -> "RequestStatus":
        """Map a ledger status code, refusing codes the contract should never emit"""
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            raise IntegrationFault(f"Unknown request status code from ledger: {code!r}")

    @property
    def label(self) -> str:
        return self.name.capitalize()


class ClaimState(str, Enum):
    # Claim recorded on the ledger but the approval transaction failed
    SUBMITTED_UNAPPROVED = "submitted_unapproved"
    APPROVED = "approved"


class ClaimInput(BaseModel):
    coordinates_x: int
    coordinates_y: int
    acres: int = Field(gt=0)
    demanded_tokens: int = Field(gt=0)
    project_name: str = Field(min_length=1)
    project_details: str = ""

    @classmethod
    def parse(cls, data: Dict[str, Any]) -> "ClaimInput":
        """Validate raw submitter input, raising our ValidationError on bad fields"""
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            fields = ", ".join(
                ".".join(str(part) for part in err["loc"]) for err in e.errors()
            )
            raise ValidationError(f"Invalid claim fields: {fields}") from e


class MediaFile(BaseModel):
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str, content_type: Optional[str] = None) -> "MediaFile":
        """Read a file from disk, guessing its declared type from the name"""
        if content_type is None:
            content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as f:
            data = f.read()
        return cls(filename=os.path.basename(path), content_type=content_type, data=data)


class ClaimSubmission(BaseModel):
    """Outcome of the submit/approve saga for one claim"""
    claim_id: int
    evidence_hash: str
    demanded_tokens: int
    predicted_tokens: int
    awarded_tokens: int
    oracle_available: bool
    state: ClaimState
    approval_error: Optional[str] = None


class Organization(BaseModel):
    address: str
    name: str
    photo_hash: str = ""
    balance: TokenAmount = 0
    is_registered: bool = True
    photo: Optional[bytes] = Field(default=None, exclude=True)


class BorrowRequest(BaseModel):
    id: int
    buyer: str
    potential_seller: str
    amount: TokenAmount
    status: RequestStatus

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def price(self, unit_price: Decimal) -> Decimal:
        # Display only, never sent to the ledger
        return Decimal(self.amount) * Decimal(unit_price)

    @classmethod
    def from_ledger(cls, record: Dict[str, Any]) -> "BorrowRequest":
        return cls(
            id=int(record["id"]),
            buyer=record["buyer"],
            potential_seller=record["potentialSeller"],
            amount=from_token_units(record["amount"]),
            status=RequestStatus.parse(record["status"]),
        )

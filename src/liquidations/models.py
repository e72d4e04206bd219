"""Liquidation data models."""

from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class RequestStatus(str, Enum):
    """Lifecycle state of a liquidation request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSING = "processing"


class UserRole(str, Enum):
    """Role of a requester profile."""

    USER = "user"
    APPROVER = "approver"
    ADMIN = "admin"


class RequesterProfile(BaseModel):
    """Stored identity and role record of a signed-in user."""

    user_id: str
    full_name: str
    email: str = ""
    role: UserRole = UserRole.USER
    department: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def is_privileged(self) -> bool:
        """Approvers and admins see and review everyone's requests."""
        return self.role in (UserRole.APPROVER, UserRole.ADMIN)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'RequesterProfile':
        return cls.model_validate(row)

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', exclude_none=True)


class LiquidationItem(BaseModel):
    """Single expense line of a request."""

    item_id: str
    request_id: str
    description: str
    category: str = ""
    quantity: int = Field(1, ge=1)
    unit_price: float = Field(0.0, ge=0)
    amount: float = Field(0.0, ge=0)
    receipt_url: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'LiquidationItem':
        row = dict(row)
        # Older rows may lack quantity/unit price; treat them as a single unit
        row.setdefault('quantity', 1)
        row.setdefault('unit_price', row.get('amount', 0))
        return cls.model_validate(row)

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', exclude_none=True)


class LiquidationRequest(BaseModel):
    """Liquidation request header, with items and requester when fetched."""

    request_id: str
    user_id: str
    title: str
    description: str = ""
    category: str = ""
    currency: str = "USD"
    total_amount: float = Field(0.0, ge=0)
    status: RequestStatus = RequestStatus.PENDING
    submitted_date: Optional[str] = None
    approved_date: Optional[str] = None
    notes: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    items: List[LiquidationItem] = []
    requester: Optional[RequesterProfile] = None

    @property
    def requester_name(self) -> str:
        return self.requester.full_name if self.requester else ""

    @property
    def requester_email(self) -> str:
        return self.requester.email if self.requester else ""

    @classmethod
    def from_row(
        cls,
        row: Dict[str, Any],
        items: Optional[List[Dict[str, Any]]] = None,
        requester: Optional[RequesterProfile] = None
    ) -> 'LiquidationRequest':
        """
        Map a stored row to a request record.

        Args:
            row: Header row from the requests table
            items: Optional item rows belonging to the request
            requester: Optional profile of the owning user

        Returns:
            Request record
        """
        data = {k: v for k, v in row.items() if v is not None}
        data['items'] = [LiquidationItem.from_row(item) for item in (items or [])]
        data['requester'] = requester
        return cls.model_validate(data)

    def to_row(self) -> Dict[str, Any]:
        """Header row as stored; items and requester live in their own tables."""
        return self.model_dump(mode='json', exclude={'items', 'requester'}, exclude_none=True)

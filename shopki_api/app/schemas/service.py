"""
Pydantic models for vendor service listings.

A service is owned by the vendor whose id is ``seller_id``; edits and
portfolio uploads carry the caller's ``seller_id`` and are refused for
anyone else.  Administrators moderate listings through ``status``.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


SERVICE_STATUSES = ("active", "under_review", "rejected", "deleted")


class ServiceImage(BaseModel):
    url: str = Field(..., min_length=1)
    name: Optional[str] = None


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, examples=["Wedding photography"])
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, examples=["photography"])
    price: float = Field(..., ge=0, examples=[15000.0])
    duration: str = Field("hourly", pattern="^(hourly|daily|weekly|monthly|project)$")
    seller_id: str = Field(..., min_length=1)
    seller_name: Optional[str] = None
    images: List[ServiceImage] = Field(default_factory=list)


class ServiceUpdate(BaseModel):
    """Partial update by the owning vendor."""

    seller_id: str = Field(..., min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    duration: Optional[str] = Field(None, pattern="^(hourly|daily|weekly|monthly|project)$")
    images: Optional[List[ServiceImage]] = None


class PortfolioUpload(BaseModel):
    seller_id: str = Field(..., min_length=1)
    images: List[ServiceImage] = Field(..., min_length=1)


class ServiceStatusUpdate(BaseModel):
    status: str = Field(..., pattern="^(active|under_review|rejected)$")
    notes: Optional[str] = None


class ServiceRead(BaseModel):
    id: str
    name: str
    description: str
    category: str
    price: float
    duration: str
    seller_id: str
    seller_name: Optional[str] = None
    images: List[ServiceImage] = Field(default_factory=list)
    status: str
    admin_notes: Optional[str] = None
    rating: float = 0
    created_at: str
    updated_at: str

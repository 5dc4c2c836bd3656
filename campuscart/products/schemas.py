"""
campuscart/products/schemas.py

Product Schemas

Defines Pydantic schemas for product listings:
- Listing creation request
- Product read model with embedded seller info
- Creation response
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from campuscart.core.schemas import CamelModel


class SellerInfo(CamelModel):
    """Partial seller information for embedding in ProductRead."""

    id: UUID = Field(..., description="Seller's user ID")
    email: str = Field(..., description="Seller's email address")


class ProductCreate(CamelModel):
    """
    Body for POST /api/products. Fields are checked in the service so a
    missing value yields the same 400 message as an invalid one.
    """

    name: str | None = Field(None, description="Name of the product")
    description: str | None = Field(None, description="Description of the product")
    price: float | None = Field(None, description="Asking price")
    image_url: str | None = Field(None, description="Location of an already uploaded image")


class ProductRead(CamelModel):
    """Product listing as returned by the API."""

    id: UUID = Field(..., description="Unique identifier for the product")
    seller_id: UUID = Field(..., description="Seller's user ID")
    seller: SellerInfo | None = Field(None, description="Seller details")
    name: str = Field(..., description="Name of the product")
    description: str = Field(..., description="Description of the product")
    price: float = Field(..., description="Asking price")
    image_url: str = Field(..., description="Location of the product image")
    created_at: datetime = Field(..., description="Timestamp when the product was listed")


class ProductCreateResponse(CamelModel):
    """Response for POST /api/products."""

    message: str = Field(..., description="Human-readable result")
    product: ProductRead = Field(..., description="The created product")

"""
campuscart/products/models.py

Product Database Model
Defines the SQLAlchemy model for items listed on the marketplace.
Each product is linked to the user selling it.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campuscart.database.base import Base, utcnow

if TYPE_CHECKING:
    from campuscart.database.models import User


# ---------------------------------------------------
# Product Model
# ---------------------------------------------------
class Product(Base):
    """Represents a product listing created by a seller."""

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the product",
    )

    seller_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="User selling this product",
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Name of the product",
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Detailed description of the product",
    )

    price: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Asking price",
    )

    image_url: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Location of the product image",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when the product was listed",
    )

    # ---------------------------------------------------
    # Relationships
    # ---------------------------------------------------

    seller: Mapped["User"] = relationship(
        "User",
        back_populates="products",
        lazy="joined",
    )

"""
campuscart/database/models.py

Core SQLAlchemy ORM Models

Defines:
- User: Registered campus account identified by institutional email

Includes relationships with:
- Product (listings created by the user)
- Message (sent messages)

Importing this module registers every table on Base.metadata.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campuscart.database.base import Base, utcnow
from campuscart.messaging.models import Conversation, Message
from campuscart.products.models import Product

__all__ = ["User", "Product", "Conversation", "Message"]


# ---------------------------------------------------
# User Model: Registered Platform User
# ---------------------------------------------------
class User(Base):
    __tablename__ = "users"

    # -------------------------------------
    # Fields
    # -------------------------------------
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier for the user",
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, comment="User's institutional email address"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Account creation timestamp",
    )
    longitude: Mapped[float | None] = mapped_column(
        Float, nullable=True, comment="Approximate longitude shared by the user"
    )
    latitude: Mapped[float | None] = mapped_column(
        Float, nullable=True, comment="Approximate latitude shared by the user"
    )

    # -------------------------------------
    # Relationships
    # -------------------------------------
    products: Mapped[list["Product"]] = relationship(
        "Product",
        back_populates="seller",
        cascade="all, delete-orphan",
    )
    sent_messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="sender",
    )

    @property
    def location(self) -> dict[str, object] | None:
        """GeoJSON point, coordinates ordered [longitude, latitude]."""
        if self.longitude is None or self.latitude is None:
            return None
        return {"type": "Point", "coordinates": [self.longitude, self.latitude]}

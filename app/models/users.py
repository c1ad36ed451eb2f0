import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.db.base import Base


class User(Base):
    """Local user record bound to an identity authority account
    Example:
    {
        "id": "550e8400-e29b-41d4-a716-446655440000",
        "renaissance_user_id": "8812",
        "fid": "-8812",
        "username": "ada_lovelace",
        "display_name": "Ada",
        "pfp_url": "https://cdn.example.com/profile-pictures/550e...png",
        "public_address": "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
        "people_user_id": 42,
        "created_at": "2024-01-01T12:00:00",
        "updated_at": "2024-01-01T12:00:00"
    }
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    renaissance_user_id = Column(String(64), unique=True, nullable=True)
    fid = Column(String(64), unique=True, nullable=False)
    username = Column(Text, nullable=True)
    display_name = Column(Text, nullable=True)
    pfp_url = Column(Text, nullable=True)
    public_address = Column(Text, nullable=True)
    people_user_id = Column(Integer, nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

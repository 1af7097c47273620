"""SQLModel data models.

This module defines the marketplace's database tables using SQLModel.
List-valued attributes (images, tags) are stored in JSON columns;
coordinates are nullable floats because many listings only carry a
free-text location.
"""

from typing import List, Optional
from sqlmodel import SQLModel, Field, Column, JSON
from sqlalchemy import UniqueConstraint
from datetime import datetime, timezone


def _now():
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A registered member.

    Fields:
    - `username`/`email`: unique login identifiers
    - `password_hash`: hashed password string (never store plaintext)
    - `toys_shared`, `successful_exchanges`: accumulated counters from
      which `sustainability_score` and `current_badge` are derived
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    name: str
    location: str
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city_name: Optional[str] = None
    toys_shared: int = 0
    successful_exchanges: int = 0
    sustainability_score: int = 0
    current_badge: str = "Newcomer"
    points: int = 0
    is_admin: bool = False
    created_at: datetime = Field(default_factory=_now)


class Toy(SQLModel, table=True):
    """A toy listing shared by a user."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    title: str
    description: str
    age_range: str = Field(index=True)
    condition: str = Field(index=True)
    category: str = "Other"
    images: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    location: str = Field(index=True)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    is_available: bool = True
    status: str = Field(default="active", index=True)
    safety_notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)


class Message(SQLModel, table=True):
    """A direct message between two users about a toy."""
    id: Optional[int] = Field(default=None, primary_key=True)
    sender_id: int = Field(foreign_key='user.id', index=True)
    receiver_id: int = Field(foreign_key='user.id', index=True)
    toy_id: int = Field(foreign_key='toy.id')
    content: str
    read: bool = False
    created_at: datetime = Field(default_factory=_now)


class ToyRequest(SQLModel, table=True):
    """An exchange request from `requester_id` for a toy owned by `owner_id`.

    `feedback` and `rating` are filled in by the requester once the
    request has been approved.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    toy_id: int = Field(foreign_key='toy.id', index=True)
    requester_id: int = Field(foreign_key='user.id', index=True)
    owner_id: int = Field(foreign_key='user.id', index=True)
    message: str
    status: str = "pending"
    preferred_location: Optional[str] = None
    feedback: Optional[str] = None
    rating: Optional[int] = None
    created_at: datetime = Field(default_factory=_now)


class Favorite(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("user_id", "toy_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    toy_id: int = Field(foreign_key='toy.id', index=True)
    created_at: datetime = Field(default_factory=_now)


class Follow(SQLModel, table=True):
    """`follower_id` follows `following_id`; each pair at most once."""
    __table_args__ = (UniqueConstraint("follower_id", "following_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    follower_id: int = Field(foreign_key='user.id', index=True)
    following_id: int = Field(foreign_key='user.id', index=True)
    created_at: datetime = Field(default_factory=_now)


class ToyHistory(SQLModel, table=True):
    """One hand-over in a toy's journey from one family to the next.

    Rows are written automatically when an exchange completes; either
    side may attach a `story` and photos afterwards.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    toy_id: int = Field(foreign_key='toy.id', index=True)
    previous_owner_id: int = Field(foreign_key='user.id')
    new_owner_id: int = Field(foreign_key='user.id')
    transfer_date: datetime = Field(default_factory=_now)
    story: Optional[str] = None
    photos: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))


class Wish(SQLModel, table=True):
    """A public request for a kind of toy a family is looking for."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    title: str
    description: str
    age_range: str
    location: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    status: str = Field(default="active", index=True)
    is_public: bool = True
    created_at: datetime = Field(default_factory=_now)
    updated_at: Optional[datetime] = None


class WishOffer(SQLModel, table=True):
    """An offer from `offerer_id` to fulfil a `Wish`, optionally with a listed toy."""
    id: Optional[int] = Field(default=None, primary_key=True)
    wish_id: int = Field(foreign_key='wish.id', index=True)
    offerer_id: int = Field(foreign_key='user.id')
    toy_id: Optional[int] = Field(default=None, foreign_key='toy.id')
    message: str
    status: str = "pending"
    created_at: datetime = Field(default_factory=_now)


class ContactMessage(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str
    subject: str
    message: str
    created_at: datetime = Field(default_factory=_now)


class Report(SQLModel, table=True):
    """A moderation report against a user, toy or message."""
    id: Optional[int] = Field(default=None, primary_key=True)
    reporter_id: int = Field(foreign_key='user.id')
    target_type: str
    target_id: int
    reason: str
    details: Optional[str] = None
    status: str = "pending"
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_now)


class CommunityMetrics(SQLModel, table=True):
    """Single-row table of community-wide sustainability totals.

    `waste_reduced` is measured in kilograms.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    toys_saved: int = 0
    families_connected: int = 0
    waste_reduced: float = 0.0
    updated_at: datetime = Field(default_factory=_now)

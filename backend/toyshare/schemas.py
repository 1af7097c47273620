"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and provide validation for
controller handlers and tests. Update schemas use all-optional fields;
controllers apply only the fields a client actually sent.
"""

from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class RegisterIn(BaseModel):
    """Payload for user registration."""
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    name: str = Field(min_length=1)
    location: str = Field(min_length=1)
    bio: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    city_name: Optional[str] = None


class LoginIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    location: Optional[str] = None
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    city_name: Optional[str] = None


class ToyIn(BaseModel):
    """Request format for listing a toy."""
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    age_range: str = Field(min_length=1)
    condition: str = Field(min_length=1)
    category: str = "Other"
    images: List[str] = Field(default_factory=list)
    location: str = Field(min_length=1)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    tags: List[str] = Field(default_factory=list)
    is_available: bool = True
    safety_notes: Optional[str] = None


class ToyUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    age_range: Optional[str] = None
    condition: Optional[str] = None
    category: Optional[str] = None
    images: Optional[List[str]] = None
    location: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    tags: Optional[List[str]] = None
    is_available: Optional[bool] = None
    status: Optional[Literal["active", "traded", "sold", "archived"]] = None
    safety_notes: Optional[str] = None


class MessageIn(BaseModel):
    receiver_id: int
    toy_id: int
    content: str = Field(min_length=1, max_length=5000)


class ToyRequestIn(BaseModel):
    message: str = Field(min_length=1)
    preferred_location: Optional[str] = None


class RequestStatusIn(BaseModel):
    status: Literal["approved", "rejected"]


class FeedbackIn(BaseModel):
    rating: int = Field(ge=1, le=5)
    feedback: Optional[str] = None


class WishIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    age_range: str = Field(min_length=1)
    location: str = Field(min_length=1)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    tags: List[str] = Field(default_factory=list)
    is_public: bool = True


class WishUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    age_range: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    tags: Optional[List[str]] = None
    status: Optional[Literal["active", "fulfilled", "archived"]] = None
    is_public: Optional[bool] = None


class WishOfferIn(BaseModel):
    message: str = Field(min_length=1)
    toy_id: Optional[int] = None


class OfferStatusIn(BaseModel):
    status: Literal["accepted", "rejected", "completed"]


class ContactIn(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1, max_length=5000)


class ReportIn(BaseModel):
    target_type: Literal["user", "toy", "message"]
    target_id: int
    reason: str = Field(min_length=1)
    details: Optional[str] = None


class SustainabilityIncrement(BaseModel):
    """Counter deltas; negative values are allowed for corrections."""
    toys_shared: int = 0
    successful_exchanges: int = 0


class CommunityMetricsIncrement(BaseModel):
    toys_saved: int = 0
    families_connected: int = 0
    waste_reduced: float = 0.0


class ToyHistoryIn(BaseModel):
    previous_owner_id: int
    new_owner_id: int
    story: Optional[str] = None
    photos: List[str] = Field(default_factory=list)


class StoryIn(BaseModel):
    """A story for an existing hand-over; photos replace any stored ones when sent."""
    story: str
    photos: Optional[List[str]] = None

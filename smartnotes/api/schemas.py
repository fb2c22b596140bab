from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class MessageResponse(ApiModel):
    message: str


# Auth / Users

class RegisterRequest(ApiModel):
    """Request model to register a new user"""
    name: str = Field(..., min_length=1, max_length=120, description="Display name")
    email: EmailStr = Field(..., description="User email")
    password: str = Field(..., min_length=6, description="Plaintext password (min 6 chars)")


class LoginRequest(ApiModel):
    """Credentials for login"""
    email: str = Field(..., description="User email")
    password: str = Field(..., description="Plaintext password")


class AuthResponse(ApiModel):
    """User identity plus a freshly signed bearer token"""
    id: int
    name: str
    email: EmailStr
    token: str = Field(..., description="JWT access token")


class UserStats(ApiModel):
    total_notes: int
    total_summarized: int
    pinned_notes: int


class ProfileResponse(ApiModel):
    """User response without sensitive fields"""
    id: int
    name: str
    email: EmailStr
    created_at: datetime
    stats: UserStats


# Notes

class NoteCreateRequest(ApiModel):
    """Create note request; emptiness of title/content is checked by the service"""
    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    tags: Optional[List[str]] = None


class NoteUpdateRequest(ApiModel):
    """
    Update note request (partial).

    Empty title/content keep the stored value; tags, when present, replace the
    stored list wholesale (an empty list clears it).
    """
    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    tags: Optional[List[str]] = None


class NoteResponse(ApiModel):
    """Note as seen by its owner"""
    id: int
    owner_id: int
    title: str
    content: str
    tags: List[str]
    summary: Optional[str]
    is_pinned: bool
    is_shared: bool
    share_id: Optional[str]
    created_at: datetime
    updated_at: datetime


class TagCount(ApiModel):
    name: str
    count: int


class NoteStatsResponse(UserStats):
    """Dashboard counters plus the most used tags"""
    most_used_tags: List[TagCount]


class PinResponse(ApiModel):
    message: str
    is_pinned: bool


class SummaryResponse(ApiModel):
    message: str
    summary: str


class ShareResponse(ApiModel):
    message: str
    is_shared: bool
    share_id: Optional[str]
    share_url: Optional[str]


class SharedNoteResponse(ApiModel):
    """Public, read-only projection of a shared note; carries no owner identifiers"""
    title: str
    content: str
    summary: Optional[str]
    tags: List[str]
    author: str
    created_at: datetime
    updated_at: datetime


class HealthResponse(ApiModel):
    message: str
    timestamp: datetime
    version: str

"""
Pydantic schemas for the ConectaBio HTTP API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationModel(BaseModel):
    level: Literal["success", "error"]
    message: str


class PlacementModel(BaseModel):
    i: str
    x: Optional[float] = None
    y: Optional[float] = None
    w: Optional[float] = None
    h: Optional[float] = None


class ObscurationSettings(BaseModel):
    percentage: int = Field(..., ge=0, le=100)


class CardFields(BaseModel):
    """Writable card columns. Values are checked here before any write."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    content: Optional[str] = None
    link: Optional[str] = None
    background_image: Optional[str] = None
    background_color: Optional[str] = None
    text_color: Optional[str] = None
    tag: Optional[str] = None
    tag_bg_color: Optional[str] = None
    tag_text_color: Optional[str] = None
    price: Optional[str] = None
    original_file_path: Optional[str] = None
    processed_file_path: Optional[str] = None
    obscuration_settings: Optional[ObscurationSettings] = None


class CardModel(BaseModel):
    id: str
    user_id: str
    type: Literal["title", "link", "note", "image", "map", "document"]
    title: Optional[str] = None
    content: Optional[str] = None
    link: Optional[str] = None
    background_image: Optional[str] = None
    background_color: Optional[str] = None
    text_color: Optional[str] = None
    tag: Optional[str] = None
    tag_bg_color: Optional[str] = None
    tag_text_color: Optional[str] = None
    price: Optional[str] = None
    original_file_path: Optional[str] = None
    processed_file_path: Optional[str] = None
    obscuration_settings: Optional[ObscurationSettings] = None
    created_at: Optional[str] = None


class ProfileModel(BaseModel):
    id: str
    username: Optional[str] = None
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Literal["free", "pro"] = "free"
    show_analytics: bool = False
    fb_pixel_id: Optional[str] = None
    ga_tracking_id: Optional[str] = None


class PageResponse(BaseModel):
    """Either a renderable page or a redirect the client must follow first."""

    redirect: Optional[str] = None
    profile: Optional[ProfileModel] = None
    cards: list[CardModel] = []
    layout: list[PlacementModel] = []
    empty: bool = False
    is_owner: bool = False


class SignUpRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str
    username: str = Field(..., min_length=1, max_length=64)


class SignUpResponse(BaseModel):
    user_id: str
    username: str
    redirect: str = "/check-email"


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    user_id: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    username: str
    redirect: str


class UsernameAvailabilityResponse(BaseModel):
    username: str
    available: bool


class SaveProfileRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=120)
    bio: Optional[str] = Field(None, max_length=1024)
    layout: list[PlacementModel] = []


class ProfileResponse(BaseModel):
    profile: ProfileModel
    notifications: list[NotificationModel] = []


class AvatarResponse(BaseModel):
    avatar_url: str
    notifications: list[NotificationModel] = []


class InviteRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class CreateCardRequest(BaseModel):
    type: str
    fields: dict = {}


class UpdateCardRequest(BaseModel):
    fields: dict


class ResizeCardRequest(BaseModel):
    preset: Optional[Literal["square", "banner", "portrait", "large"]] = None
    w: Optional[float] = Field(None, gt=0)
    h: Optional[float] = Field(None, gt=0)


class CardResponse(BaseModel):
    card: CardModel
    layout: list[PlacementModel] = []
    notifications: list[NotificationModel] = []


class DeleteCardResponse(BaseModel):
    layout: list[PlacementModel] = []
    notifications: list[NotificationModel] = []


class LayoutResponse(BaseModel):
    layout: list[PlacementModel]
    notifications: list[NotificationModel] = []


class DocumentUploadRequest(BaseModel):
    file_data_uri: str
    file_name: str = Field(..., max_length=255)
    obscuration_percentage: int = Field(..., ge=0, le=100)


class DocumentUploadResponse(BaseModel):
    original_file_path: str
    processed_file_path: str
    total_pages: int
    preview_pages: int
    card: CardModel
    notifications: list[NotificationModel] = []


class ScrapeRequest(BaseModel):
    url: str = Field(..., pattern=r"^https?://")


class ScrapePost(BaseModel):
    title: str
    url: str


class ScrapeResponse(BaseModel):
    profile_name: Optional[str] = None
    profile_image: Optional[str] = None
    recent_posts: list[ScrapePost] = []


class StatusResponse(BaseModel):
    status: str = "ok"
    notifications: list[NotificationModel] = []

"""
HTTP routes for the ConectaBio API.
"""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, File, UploadFile

from conectabio import layout as grid
from conectabio.auth import AuthClient, SessionContext, validate_credentials
from conectabio.cards import CardStore, changed_fields
from conectabio.config import get_settings
from conectabio.db import DbClient
from conectabio.dependencies import (
    db_client_for_token,
    get_auth_client,
    get_db_client,
    get_optional_session,
    get_session,
    get_user_db_client,
    get_user_storage_client,
)
from conectabio.documents import process_document
from conectabio.errors import AuthError, NotFoundError, PersistenceError, ValidationError
from conectabio.layout import LayoutMode
from conectabio.notifications import Notifier
from conectabio.profiles import PageView, ProfileStore
from conectabio.schemas import (
    AvatarResponse,
    CardModel,
    CardResponse,
    CreateCardRequest,
    DeleteCardResponse,
    DocumentUploadRequest,
    DocumentUploadResponse,
    InviteRequest,
    LayoutResponse,
    LoginRequest,
    LoginResponse,
    PageResponse,
    PlacementModel,
    ProfileModel,
    ProfileResponse,
    ResizeCardRequest,
    SaveProfileRequest,
    ScrapeRequest,
    ScrapeResponse,
    SignUpRequest,
    SignUpResponse,
    StatusResponse,
    UpdateCardRequest,
    UsernameAvailabilityResponse,
)
from conectabio.scraper import scrape_profile
from conectabio.storage import StorageClient
from conectabio.types import Card, CardType, Placement, Profile, Role

logger = logging.getLogger(__name__)

router = APIRouter()


def _card_model(card: Card) -> CardModel:
    return CardModel(**card.as_row())


def _profile_model(profile: Profile, include_analytics: bool = True) -> ProfileModel:
    show = include_analytics or profile.show_analytics
    return ProfileModel(
        id=profile.id,
        username=profile.username,
        name=profile.name,
        bio=profile.bio,
        avatar_url=profile.avatar_url,
        role=profile.role.value,
        show_analytics=profile.show_analytics,
        fb_pixel_id=profile.fb_pixel_id if show else None,
        ga_tracking_id=profile.ga_tracking_id if show else None,
    )


def _layout_models(layout: list[Placement]) -> list[PlacementModel]:
    return [PlacementModel(**item.as_dict()) for item in grid.resolve_append_rows(layout)]


def _page_response(view: PageView, include_analytics: bool) -> PageResponse:
    if view.redirect:
        return PageResponse(redirect=view.redirect, is_owner=view.is_owner)
    return PageResponse(
        profile=_profile_model(view.profile, include_analytics),
        cards=[_card_model(card) for card in view.cards],
        layout=_layout_models(view.layout),
        empty=view.empty,
        is_owner=view.is_owner,
    )


def _profile_store(
    db: DbClient, storage: StorageClient | None = None, notifier: Notifier | None = None
) -> ProfileStore:
    settings = get_settings()
    return ProfileStore(
        db,
        storage,
        notifier,
        avatars_bucket=settings.avatars_bucket,
        min_username_length=settings.min_username_length,
        invite_codes=settings.invite_codes,
    )


def _load_card_store(
    ctx: SessionContext,
    db: DbClient,
    storage: StorageClient | None,
    notifier: Notifier,
) -> tuple[CardStore, Profile]:
    """Build a card store seeded with the caller's cards and resolved layout."""
    try:
        profile_row = db.get_profile(ctx.user_id)
        card_rows = db.list_cards(ctx.user_id)
    except Exception as exc:
        logger.error("Error loading cards for %s: %s", ctx.user_id, exc)
        raise PersistenceError("Could not load your page.") from exc
    if not profile_row:
        raise NotFoundError("Profile not found.")

    profile = Profile.from_row(profile_row)
    cards = [Card.from_row(row) for row in card_rows]
    layout = grid.resolve_append_rows(grid.reconcile(cards, profile.layout_config))
    store = CardStore(
        db,
        storage,
        notifier,
        cards=cards,
        layout=layout,
        images_bucket=get_settings().avatars_bucket,
    )
    return store, profile


@router.get("/health", response_model=StatusResponse)
def health():
    return StatusResponse()


# --- Auth ---


@router.post("/auth/signup", response_model=SignUpResponse, status_code=201)
def sign_up(
    payload: SignUpRequest,
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
):
    validate_credentials(payload.email, payload.password)
    username, available = _profile_store(db).check_username(payload.username)
    if not available:
        raise ValidationError("This username is already taken.")

    user_id = auth.sign_up(
        payload.email,
        payload.password,
        {"username": username, "role": Role.FREE.value},
    )
    logger.info("Created account %s with username %s", user_id, username)
    return SignUpResponse(user_id=user_id, username=username)


@router.post("/auth/login", response_model=LoginResponse)
def login(payload: LoginRequest, auth: AuthClient = Depends(get_auth_client)):
    validate_credentials(payload.email, payload.password, min_password_length=1)
    session = auth.sign_in_with_password(payload.email, payload.password)

    try:
        profile_row = db_client_for_token(session.access_token).get_profile(session.user_id)
    except Exception as exc:
        logger.error("Error fetching profile after login for %s: %s", session.user_id, exc)
        profile_row = None
    if not profile_row or not profile_row.get("username"):
        # A user without a profile cannot be routed anywhere.
        auth.sign_out(session.access_token)
        raise AuthError("Profile not found.")

    username = profile_row["username"]
    return LoginResponse(
        user_id=session.user_id,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=session.expires_at,
        username=username,
        redirect=f"/{username}/edit",
    )


@router.post("/auth/logout", response_model=StatusResponse)
def logout(
    ctx: SessionContext = Depends(get_session),
    auth: AuthClient = Depends(get_auth_client),
):
    auth.sign_out(ctx.access_token)
    return StatusResponse()


@router.get("/usernames/{username}", response_model=UsernameAvailabilityResponse)
def username_availability(username: str, db: DbClient = Depends(get_db_client)):
    normalized, available = _profile_store(db).check_username(username)
    return UsernameAvailabilityResponse(username=normalized, available=available)


# --- Pages ---


@router.get("/pages/{username}", response_model=PageResponse)
def public_page(
    username: str,
    mode: Literal["public", "mobile"] = "public",
    viewer: SessionContext | None = Depends(get_optional_session),
    db: DbClient = Depends(get_db_client),
):
    view = _profile_store(db).load_public_page(username, viewer, LayoutMode(mode))
    return _page_response(view, include_analytics=False)


@router.get("/pages/{username}/edit", response_model=PageResponse)
def edit_page(
    username: str,
    ctx: SessionContext = Depends(get_session),
    db: DbClient = Depends(get_user_db_client),
):
    view = _profile_store(db).load_profile(ctx, username)
    return _page_response(view, include_analytics=True)


# --- Profile ---


@router.put("/profile", response_model=ProfileResponse)
def save_profile(
    payload: SaveProfileRequest,
    ctx: SessionContext = Depends(get_session),
    db: DbClient = Depends(get_user_db_client),
):
    notifier = Notifier()
    profile = _profile_store(db, notifier=notifier).save_profile(
        ctx,
        payload.name,
        payload.bio,
        [item.model_dump() for item in payload.layout],
    )
    return ProfileResponse(profile=_profile_model(profile), notifications=notifier.as_list())


@router.post("/profile/avatar", response_model=AvatarResponse)
async def upload_avatar(
    file: UploadFile = File(...),
    ctx: SessionContext = Depends(get_session),
    db: DbClient = Depends(get_user_db_client),
    storage: StorageClient = Depends(get_user_storage_client),
):
    data = await file.read()
    if not data:
        raise ValidationError("Image file required")
    notifier = Notifier()
    url = _profile_store(db, storage, notifier).upload_avatar(
        ctx, file.filename or "", data, file.content_type or "application/octet-stream"
    )
    return AvatarResponse(avatar_url=url, notifications=notifier.as_list())


@router.post("/profile/invite", response_model=ProfileResponse)
def redeem_invite(
    payload: InviteRequest,
    ctx: SessionContext = Depends(get_session),
    db: DbClient = Depends(get_user_db_client),
):
    notifier = Notifier()
    profile = _profile_store(db, notifier=notifier).redeem_invite(ctx, payload.code.strip())
    return ProfileResponse(profile=_profile_model(profile), notifications=notifier.as_list())


# --- Cards ---


@router.post("/cards", response_model=CardResponse, status_code=201)
def create_card(
    payload: CreateCardRequest,
    ctx: SessionContext = Depends(get_session),
    db: DbClient = Depends(get_user_db_client),
):
    notifier = Notifier()
    store, _ = _load_card_store(ctx, db, None, notifier)
    card = store.create_card(ctx, payload.type, payload.fields)
    return CardResponse(
        card=_card_model(card),
        layout=_layout_models(store.layout),
        notifications=notifier.as_list(),
    )


@router.post("/cards/image", response_model=CardResponse, status_code=201)
async def create_image_card(
    file: UploadFile = File(...),
    ctx: SessionContext = Depends(get_session),
    db: DbClient = Depends(get_user_db_client),
    storage: StorageClient = Depends(get_user_storage_client),
):
    data = await file.read()
    if not data:
        raise ValidationError("Image file required")
    notifier = Notifier()
    store, _ = _load_card_store(ctx, db, storage, notifier)
    card = store.add_image_card(
        ctx, file.filename or "", data, file.content_type or "application/octet-stream"
    )
    return CardResponse(
        card=_card_model(card),
        layout=_layout_models(store.layout),
        notifications=notifier.as_list(),
    )


@router.patch("/cards/{card_id}", response_model=CardResponse)
def update_card(
    card_id: str,
    payload: UpdateCardRequest,
    ctx: SessionContext = Depends(get_session),
    db: DbClient = Depends(get_user_db_client),
):
    notifier = Notifier()
    store, _ = _load_card_store(ctx, db, None, notifier)
    card = store.get(card_id)
    if card is None:
        raise NotFoundError("Card not found.")

    updates = changed_fields(card, payload.fields)
    if updates:
        card = store.update_card(ctx, card_id, updates)
    return CardResponse(
        card=_card_model(card),
        layout=_layout_models(store.layout),
        notifications=notifier.as_list(),
    )


@router.delete("/cards/{card_id}", response_model=DeleteCardResponse)
def delete_card(
    card_id: str,
    ctx: SessionContext = Depends(get_session),
    db: DbClient = Depends(get_user_db_client),
):
    notifier = Notifier()
    store, _ = _load_card_store(ctx, db, None, notifier)
    if store.get(card_id) is None:
        raise NotFoundError("Card not found.")
    store.delete_card(ctx, card_id)
    return DeleteCardResponse(
        layout=_layout_models(store.layout), notifications=notifier.as_list()
    )


@router.post("/cards/{card_id}/resize", response_model=LayoutResponse)
def resize_card(
    card_id: str,
    payload: ResizeCardRequest,
    ctx: SessionContext = Depends(get_session),
    db: DbClient = Depends(get_user_db_client),
):
    if payload.preset:
        w, h = grid.RESIZE_PRESETS[payload.preset]
    elif payload.w is not None and payload.h is not None:
        w, h = payload.w, payload.h
    else:
        raise ValidationError("Provide a preset or both w and h")

    notifier = Notifier()
    store, profile = _load_card_store(ctx, db, None, notifier)
    if store.get(card_id) is None:
        raise NotFoundError("Card not found.")

    resized = grid.resize(store.layout, card_id, w, h)
    saved = _profile_store(db, notifier=notifier).save_profile(
        ctx, profile.name, profile.bio, resized
    )
    return LayoutResponse(
        layout=_layout_models(saved.layout_config or []),
        notifications=notifier.as_list(),
    )


@router.post("/cards/{card_id}/document", response_model=DocumentUploadResponse)
def upload_document(
    card_id: str,
    payload: DocumentUploadRequest,
    ctx: SessionContext = Depends(get_session),
    db: DbClient = Depends(get_user_db_client),
    storage: StorageClient = Depends(get_user_storage_client),
):
    notifier = Notifier()
    store, _ = _load_card_store(ctx, db, storage, notifier)
    card = store.get(card_id)
    if card is None:
        raise NotFoundError("Card not found.")
    if card.type is not CardType.DOCUMENT:
        raise ValidationError("Only document cards accept files.")

    result = process_document(
        storage,
        file_data_uri=payload.file_data_uri,
        file_name=payload.file_name,
        user_id=ctx.user_id,
        card_id=card_id,
        percentage=payload.obscuration_percentage,
        bucket=get_settings().documents_bucket,
    )
    card = store.update_card(
        ctx,
        card_id,
        {
            "original_file_path": result.original_file_path,
            "processed_file_path": result.processed_file_path,
            "obscuration_settings": {"percentage": payload.obscuration_percentage},
        },
    )
    return DocumentUploadResponse(
        original_file_path=result.original_file_path,
        processed_file_path=result.processed_file_path,
        total_pages=result.total_pages,
        preview_pages=result.preview_pages,
        card=_card_model(card),
        notifications=notifier.as_list(),
    )


@router.post("/scrape", response_model=ScrapeResponse)
def scrape(payload: ScrapeRequest, ctx: SessionContext = Depends(get_session)):
    settings = get_settings()
    result = scrape_profile(
        payload.url,
        timeout=settings.scraper_timeout_seconds,
        user_agent=settings.scraper_user_agent,
    )
    logger.info("Scraped %s for %s", payload.url, ctx.user_id)
    return ScrapeResponse(
        profile_name=result.profile_name,
        profile_image=result.profile_image,
        recent_posts=result.recent_posts,
    )

"""
Profile loading and saving, avatar upload, username checks and invites.
"""

from __future__ import annotations

import concurrent.futures
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from conectabio import layout as grid
from conectabio.auth import SessionContext
from conectabio.db import DbClient
from conectabio.errors import NotFoundError, PersistenceError, UploadError, ValidationError
from conectabio.layout import LayoutMode
from conectabio.notifications import Notifier
from conectabio.storage import StorageClient, file_extension, timestamp_ms
from conectabio.types import Card, Placement, Profile, Role

logger = logging.getLogger(__name__)

USERNAME_DISALLOWED = re.compile(r"[^a-z0-9-]")


def normalize_username(raw: str) -> str:
    return USERNAME_DISALLOWED.sub("", (raw or "").lower())


@dataclass
class PageView:
    """
    What a page needs to render, or where to send the caller instead.

    When ``redirect`` is set, every other field is empty and the caller
    must navigate there before rendering anything.
    """

    profile: Optional[Profile] = None
    cards: list[Card] = field(default_factory=list)
    layout: list[Placement] = field(default_factory=list)
    is_owner: bool = False
    redirect: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not self.cards


class ProfileStore:
    def __init__(
        self,
        db: DbClient,
        storage: Optional[StorageClient] = None,
        notifier: Optional[Notifier] = None,
        avatars_bucket: str = "avatars",
        min_username_length: int = 3,
        invite_codes: Iterable[str] = (),
        clock: Callable[[], int] = timestamp_ms,
    ):
        self.db = db
        self.storage = storage
        self.notifier = notifier or Notifier()
        self.avatars_bucket = avatars_bucket
        self.min_username_length = min_username_length
        self.invite_codes = set(invite_codes)
        self.clock = clock

    def _cards_from_rows(self, rows: list[dict]) -> list[Card]:
        return [Card.from_row(row) for row in rows]

    def load_profile(self, ctx: SessionContext, routed_username: str) -> PageView:
        """
        Load the signed-in user's profile and cards for the editor.

        Both rows are fetched at the same time. A failed card fetch yields
        no cards; a failed or missing profile, or one without a username,
        sends the caller to login.
        If the stored username differs from the routed one, the caller is
        redirected to the canonical edit URL and nothing else is returned.
        """
        with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
            profile_future = executor.submit(self.db.get_profile, ctx.user_id)
            cards_future = executor.submit(self.db.list_cards, ctx.user_id)
            try:
                profile_row = profile_future.result()
            except Exception as exc:
                logger.error("Error fetching profile %s: %s", ctx.user_id, exc)
                profile_row = None
            try:
                card_rows = cards_future.result()
            except Exception as exc:
                logger.error("Error fetching cards for %s: %s", ctx.user_id, exc)
                card_rows = []

        if not profile_row:
            return PageView(redirect="/login")

        profile = Profile.from_row(profile_row)
        if not profile.username:
            return PageView(redirect="/login")
        if profile.username != routed_username:
            return PageView(redirect=f"/{profile.username}/edit")

        cards = self._cards_from_rows(card_rows)
        return PageView(
            profile=profile,
            cards=cards,
            layout=grid.reconcile(cards, profile.layout_config, LayoutMode.EDIT),
            is_owner=True,
        )

    def load_public_page(
        self,
        username: str,
        viewer: Optional[SessionContext] = None,
        mode: LayoutMode = LayoutMode.PUBLIC,
    ) -> PageView:
        """
        Load the read-only page for ``username``.

        Raises:
            NotFoundError: No profile has that username, or the lookup failed.
        """
        try:
            profile_row = self.db.get_profile_by_username(username)
        except Exception as exc:
            logger.error("Error fetching profile %s: %s", username, exc)
            profile_row = None
        if not profile_row:
            raise NotFoundError("User not found.")

        profile = Profile.from_row(profile_row)
        if viewer is not None and viewer.user_id == profile.id:
            return PageView(is_owner=True, redirect=f"/{profile.username}/edit")

        try:
            card_rows = self.db.list_cards(profile.id)
        except Exception as exc:
            logger.error("Error fetching cards for %s: %s", profile.id, exc)
            card_rows = []

        cards = self._cards_from_rows(card_rows)
        return PageView(
            profile=profile,
            cards=cards,
            layout=grid.reconcile(cards, profile.layout_config, mode),
        )

    def save_profile(
        self,
        ctx: SessionContext,
        name: Optional[str],
        bio: Optional[str],
        layout: Iterable[Placement | dict],
    ) -> Profile:
        """Persist name, bio and layout in a single update."""
        placements = [
            item if isinstance(item, Placement) else Placement.from_dict(item)
            for item in layout
        ]
        cleaned = grid.sanitize_layout(grid.resolve_append_rows(placements))
        updates = {
            "name": name,
            "bio": bio,
            "layout_config": [placement.as_dict() for placement in cleaned],
        }
        try:
            row = self.db.update_profile(ctx.user_id, updates)
        except Exception as exc:
            logger.error("Error saving profile %s: %s", ctx.user_id, exc)
            self.notifier.error("Could not save your changes.")
            raise PersistenceError("Could not save your changes.") from exc

        self.notifier.success("Changes saved!")
        return Profile.from_row(row)

    def upload_avatar(
        self, ctx: SessionContext, filename: str, data: bytes, content_type: str
    ) -> str:
        """Store a new avatar image and point the profile at it."""
        if self.storage is None:
            raise UploadError("Avatar uploads are not configured")
        path = f"{ctx.user_id}/{self.clock()}.{file_extension(filename, 'png')}"
        try:
            self.storage.upload(self.avatars_bucket, path, data, content_type)
            public_url = self.storage.get_public_url(self.avatars_bucket, path)
        except Exception as exc:
            logger.error("Avatar upload failed for %s: %s", path, exc)
            self.notifier.error("Could not upload the avatar.")
            raise UploadError("Could not upload the avatar.") from exc

        try:
            self.db.update_profile(ctx.user_id, {"avatar_url": public_url})
        except Exception as exc:
            logger.error("Error saving avatar for %s: %s", ctx.user_id, exc)
            self.notifier.error("Could not upload the avatar.")
            raise PersistenceError("Could not upload the avatar.") from exc

        self.notifier.success("Avatar updated!")
        return public_url

    def check_username(self, raw_username: str) -> tuple[str, bool]:
        """
        Normalize a requested username and report whether it is free.

        Returns:
            tuple[str, bool]: The normalized username and its availability.
        """
        username = normalize_username(raw_username)
        if len(username) < self.min_username_length:
            raise ValidationError(
                f"Username must have at least {self.min_username_length} characters"
            )
        try:
            existing = self.db.get_profile_by_username(username)
        except Exception as exc:
            logger.error("Error checking username %s: %s", username, exc)
            raise PersistenceError("Could not check the username.") from exc
        return username, existing is None

    def redeem_invite(self, ctx: SessionContext, code: str) -> Profile:
        if code not in self.invite_codes:
            raise ValidationError("Invalid or expired invite code.")
        try:
            row = self.db.update_profile(ctx.user_id, {"role": Role.PRO.value})
        except Exception as exc:
            logger.error("Error redeeming invite for %s: %s", ctx.user_id, exc)
            self.notifier.error("Could not activate your page.")
            raise PersistenceError("Could not activate your page.") from exc
        self.notifier.success("Your page is active!")
        return Profile.from_row(row)

"""
Table access for Supabase and an in-memory test implementation.

Every card operation is scoped by owner id as well as card id, mirroring
the row-level policies the hosted tables enforce.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from supabase import Client, ClientOptions, create_client

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"
CARDS_TABLE = "cards"


class DbClient(Protocol):
    """Interface for the table API."""

    def get_profile(self, user_id: str) -> Optional[dict]:
        ...

    def get_profile_by_username(self, username: str) -> Optional[dict]:
        ...

    def update_profile(self, user_id: str, fields: dict) -> dict:
        ...

    def list_cards(self, user_id: str) -> list[dict]:
        ...

    def insert_card(self, row: dict) -> dict:
        ...

    def update_card(self, card_id: str, user_id: str, fields: dict) -> dict:
        ...

    def delete_card(self, card_id: str, user_id: str) -> None:
        ...


class RowNotFound(LookupError):
    """An update or delete matched no row visible to the caller."""


class InMemoryDbClient:
    """Simple in-memory tables for development and tests."""

    def __init__(self):
        self.profiles: Dict[str, dict] = {}
        self.cards: Dict[str, dict] = {}
        # Method names that should raise, to exercise failure paths.
        self.fail_on: set[str] = set()

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise RuntimeError(f"simulated failure in {operation}")

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.profiles.clear()
        self.cards.clear()
        self.fail_on.clear()

    def insert_profile(self, row: dict) -> dict:
        """Stand-in for the signup trigger that creates profile rows."""
        profile = {
            "username": None,
            "name": None,
            "bio": None,
            "avatar_url": None,
            "layout_config": None,
            "role": "free",
            "show_analytics": False,
            "fb_pixel_id": None,
            "ga_tracking_id": None,
        }
        profile.update(row)
        self.profiles[profile["id"]] = profile
        return dict(profile)

    def get_profile(self, user_id: str) -> Optional[dict]:
        self._check("get_profile")
        row = self.profiles.get(user_id)
        return dict(row) if row else None

    def get_profile_by_username(self, username: str) -> Optional[dict]:
        self._check("get_profile_by_username")
        for row in self.profiles.values():
            if row.get("username") == username:
                return dict(row)
        return None

    def update_profile(self, user_id: str, fields: dict) -> dict:
        self._check("update_profile")
        row = self.profiles.get(user_id)
        if row is None:
            raise RowNotFound(user_id)
        row.update(fields)
        return dict(row)

    def list_cards(self, user_id: str) -> list[dict]:
        self._check("list_cards")
        return [dict(row) for row in self.cards.values() if row["user_id"] == user_id]

    def insert_card(self, row: dict) -> dict:
        self._check("insert_card")
        if row.get("user_id") not in self.profiles:
            raise RowNotFound(f"no profile for owner {row.get('user_id')}")
        card = {
            "id": uuid.uuid4().hex,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        card.update(row)
        self.cards[card["id"]] = card
        return dict(card)

    def update_card(self, card_id: str, user_id: str, fields: dict) -> dict:
        self._check("update_card")
        row = self.cards.get(card_id)
        if row is None or row["user_id"] != user_id:
            raise RowNotFound(card_id)
        row.update(fields)
        return dict(row)

    def delete_card(self, card_id: str, user_id: str) -> None:
        self._check("delete_card")
        row = self.cards.get(card_id)
        if row is None or row["user_id"] != user_id:
            raise RowNotFound(card_id)
        del self.cards[card_id]


class SupabaseDbClient:
    """
    PostgREST-backed implementation on a Supabase project.

    When an access token is given, requests run as that user so the
    project's row-level policies apply.
    """

    def __init__(self, url: str, key: str, access_token: Optional[str] = None):
        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY are required")
        options = ClientOptions()
        if access_token:
            options.headers["Authorization"] = f"Bearer {access_token}"
        self.client: Client = create_client(url, key, options=options)

    @staticmethod
    def _first(response) -> Optional[dict]:
        rows = response.data or []
        return rows[0] if rows else None

    def get_profile(self, user_id: str) -> Optional[dict]:
        response = (
            self.client.table(PROFILES_TABLE).select("*").eq("id", user_id).limit(1).execute()
        )
        return self._first(response)

    def get_profile_by_username(self, username: str) -> Optional[dict]:
        response = (
            self.client.table(PROFILES_TABLE)
            .select("*")
            .eq("username", username)
            .limit(1)
            .execute()
        )
        return self._first(response)

    def update_profile(self, user_id: str, fields: dict) -> dict:
        response = self.client.table(PROFILES_TABLE).update(fields).eq("id", user_id).execute()
        row = self._first(response)
        if row is None:
            raise RowNotFound(user_id)
        return row

    def list_cards(self, user_id: str) -> list[dict]:
        response = (
            self.client.table(CARDS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at")
            .execute()
        )
        return response.data or []

    def insert_card(self, row: dict) -> dict:
        response = self.client.table(CARDS_TABLE).insert(row).execute()
        created = self._first(response)
        if created is None:
            raise RowNotFound("insert returned no row")
        logger.info("Inserted card %s for %s", created.get("id"), row.get("user_id"))
        return created

    def update_card(self, card_id: str, user_id: str, fields: dict) -> dict:
        response = (
            self.client.table(CARDS_TABLE)
            .update(fields)
            .eq("id", card_id)
            .eq("user_id", user_id)
            .execute()
        )
        row = self._first(response)
        if row is None:
            raise RowNotFound(card_id)
        return row

    def delete_card(self, card_id: str, user_id: str) -> None:
        response = (
            self.client.table(CARDS_TABLE)
            .delete()
            .eq("id", card_id)
            .eq("user_id", user_id)
            .execute()
        )
        if not response.data:
            raise RowNotFound(card_id)

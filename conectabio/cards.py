"""
Card lifecycle: create, update and delete cards for one owner.

The store keeps a local snapshot of the owner's cards and layout. The
snapshot changes only after the table API confirms a write, so a failed
call never leaves it ahead of the backend.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from conectabio import layout as grid
from conectabio.auth import SessionContext
from conectabio.db import DbClient
from conectabio.errors import PersistenceError, UploadError, ValidationError
from conectabio.layout import LayoutMode
from conectabio.notifications import Notifier
from conectabio.schemas import CardFields
from conectabio.storage import StorageClient, file_extension, timestamp_ms
from conectabio.types import EDITABLE_CARD_FIELDS, Card, CardType, Placement

logger = logging.getLogger(__name__)

DEFAULT_TAG_BG_COLOR = "#F97316"
DEFAULT_TAG_TEXT_COLOR = "#FFFFFF"

# Extra column defaults per card kind, applied on creation.
TYPE_DEFAULTS: dict[CardType, dict] = {
    CardType.TITLE: {},
    CardType.LINK: {},
    CardType.NOTE: {"background_color": "#FFFFFF"},
    CardType.IMAGE: {},
    CardType.MAP: {},
    CardType.DOCUMENT: {"obscuration_settings": {"percentage": 100}},
}


def _editable(fields: dict) -> dict:
    """Check names and value types of client-writable card fields."""
    unknown = set(fields) - EDITABLE_CARD_FIELDS
    if unknown:
        raise ValidationError(f"Unknown card fields: {', '.join(sorted(unknown))}")
    try:
        checked = CardFields.model_validate(fields)
    except PydanticValidationError as exc:
        bad = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
        raise ValidationError(f"Invalid card fields: {', '.join(bad)}") from exc
    return checked.model_dump(exclude_unset=True)


def new_card_row(user_id: str, card_type: CardType, extra_fields: Optional[dict] = None) -> dict:
    row = {
        "user_id": user_id,
        "type": card_type.value,
        "title": f"New {card_type.value}",
        "content": None,
        "link": None,
        "background_image": None,
    }
    row.update(TYPE_DEFAULTS[card_type])
    row.update(_editable(extra_fields or {}))
    return row


def changed_fields(card: Card, form: dict) -> dict:
    """The entries of a submitted edit form that differ from the stored card."""
    return {
        key: value
        for key, value in _editable(form).items()
        if getattr(card, key) != value
    }


class CardStore:
    """Card operations for one session, with a confirmed local snapshot."""

    def __init__(
        self,
        db: DbClient,
        storage: Optional[StorageClient] = None,
        notifier: Optional[Notifier] = None,
        cards: Optional[Iterable[Card]] = None,
        layout: Optional[Iterable[Placement]] = None,
        mode: LayoutMode = LayoutMode.EDIT,
        images_bucket: str = "avatars",
        clock: Callable[[], int] = timestamp_ms,
    ):
        self.db = db
        self.storage = storage
        self.notifier = notifier or Notifier()
        self.cards: list[Card] = list(cards or [])
        self.layout: list[Placement] = list(layout or [])
        self.mode = mode
        self.images_bucket = images_bucket
        self.clock = clock

    def get(self, card_id: str) -> Optional[Card]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def create_card(
        self,
        ctx: SessionContext,
        card_type: "str | CardType",
        extra_fields: Optional[dict] = None,
    ) -> Card:
        """
        Insert a new card and give it a default placement.

        Returns:
            Card: The created card, including its generated id.

        Raises:
            ValidationError: Unknown card type or fields.
            PersistenceError: The insert was rejected; nothing changes locally.
        """
        kind = CardType.parse(card_type)
        row = new_card_row(ctx.user_id, kind, extra_fields)
        try:
            created = self.db.insert_card(row)
        except Exception as exc:
            logger.error("Card creation error for %s: %s", ctx.user_id, exc)
            self.notifier.error("Could not create the card.")
            raise PersistenceError("Could not create the card.") from exc

        card = Card.from_row(created)
        self.cards.append(card)
        self.layout.append(grid.placement_for_new_card(card, self.layout, self.mode))
        self.notifier.success("Card added!")
        return card

    def update_card(self, ctx: SessionContext, card_id: str, fields: dict) -> Card:
        """
        Persist only the supplied fields, then merge them into the snapshot.

        Setting a tag without colors fills in the default tag colors unless
        the card already has its own.
        """
        updates = _editable(fields)
        if not updates:
            raise ValidationError("No card fields to update")

        current = self.get(card_id)
        if updates.get("tag"):
            if "tag_bg_color" not in updates and (current is None or not current.tag_bg_color):
                updates["tag_bg_color"] = DEFAULT_TAG_BG_COLOR
            if "tag_text_color" not in updates and (current is None or not current.tag_text_color):
                updates["tag_text_color"] = DEFAULT_TAG_TEXT_COLOR

        try:
            row = self.db.update_card(card_id, ctx.user_id, updates)
        except Exception as exc:
            logger.error("Error updating card %s: %s", card_id, exc)
            self.notifier.error("Could not save the card.")
            raise PersistenceError("Could not save the card.") from exc

        if current is None:
            current = Card.from_row(row)
            self.cards.append(current)
        else:
            current.merge(updates)
        self.notifier.success("Card updated!")
        return current

    def delete_card(self, ctx: SessionContext, card_id: str) -> None:
        """Remove the card row, then the card and its placement locally."""
        try:
            self.db.delete_card(card_id, ctx.user_id)
        except Exception as exc:
            logger.error("Error deleting card %s: %s", card_id, exc)
            self.notifier.error("Could not delete the card.")
            raise PersistenceError("Could not delete the card.") from exc

        self.cards = [card for card in self.cards if card.id != card_id]
        self.layout = grid.remove(self.layout, card_id)
        self.notifier.success("Card deleted.")

    def add_image_card(
        self, ctx: SessionContext, filename: str, data: bytes, content_type: str
    ) -> Card:
        """Upload an image and create an image card showing it."""
        if self.storage is None:
            raise UploadError("Image uploads are not configured")
        path = f"{ctx.user_id}/{self.clock()}.{file_extension(filename, 'png')}"
        try:
            self.storage.upload(self.images_bucket, path, data, content_type)
            public_url = self.storage.get_public_url(self.images_bucket, path)
        except Exception as exc:
            logger.error("Image upload failed for %s: %s", path, exc)
            self.notifier.error("Image upload failed.")
            raise UploadError("Image upload failed.") from exc

        return self.create_card(
            ctx, CardType.IMAGE, {"background_image": public_url, "title": ""}
        )

"""
Domain records: profiles, cards and grid placements.

Rows come back from the table API as plain dicts; these dataclasses are
the typed view the stores and the layout reconciler work with.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Optional

from conectabio.errors import ValidationError


class CardType(str, Enum):
    TITLE = "title"
    LINK = "link"
    NOTE = "note"
    IMAGE = "image"
    MAP = "map"
    DOCUMENT = "document"

    @classmethod
    def parse(cls, value: "str | CardType") -> "CardType":
        try:
            return cls(value)
        except ValueError as exc:
            raise ValidationError(f"Unknown card type: {value!r}") from exc


class Role(str, Enum):
    FREE = "free"
    PRO = "pro"


# Sentinel row meaning "below everything already placed". Resolved to a
# concrete row by layout.resolve_append_rows before anything is persisted
# or serialized.
APPEND_ROW = math.inf


@dataclass
class Placement:
    """
    Grid position and size of one card, in grid-cell units.

    Fields read from a saved layout may be None when the stored record
    omitted them; layout.reconcile backfills them.
    """

    i: str
    x: Optional[float] = None
    y: Optional[float] = None
    w: Optional[float] = None
    h: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Placement":
        return cls(
            i=str(data["i"]),
            x=data.get("x"),
            y=data.get("y"),
            w=data.get("w"),
            h=data.get("h"),
        )

    def as_dict(self) -> dict:
        return {"i": self.i, "x": self.x, "y": self.y, "w": self.w, "h": self.h}


@dataclass
class Card:
    id: str
    user_id: str
    type: CardType
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
    obscuration_settings: Optional[dict] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "Card":
        known = {f.name for f in fields(cls)}
        data = {key: value for key, value in row.items() if key in known}
        data["id"] = str(data["id"])
        data["type"] = CardType.parse(data["type"])
        return cls(**data)

    def as_row(self) -> dict:
        row = asdict(self)
        row["type"] = self.type.value
        return row

    def merge(self, updates: dict) -> None:
        for key, value in updates.items():
            if key == "type":
                value = CardType.parse(value)
            setattr(self, key, value)


# Card columns a client may write. id, user_id, type and created_at are
# owned by the backend or fixed at creation.
EDITABLE_CARD_FIELDS = frozenset(
    f.name
    for f in fields(Card)
    if f.name not in {"id", "user_id", "type", "created_at"}
)


@dataclass
class Profile:
    id: str
    username: Optional[str] = None
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    layout_config: Optional[list[Placement]] = None
    role: Role = Role.FREE
    show_analytics: bool = False
    fb_pixel_id: Optional[str] = None
    ga_tracking_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "Profile":
        layout = row.get("layout_config")
        return cls(
            id=str(row["id"]),
            username=row.get("username"),
            name=row.get("name"),
            bio=row.get("bio"),
            avatar_url=row.get("avatar_url"),
            layout_config=(
                [
                    Placement.from_dict(item)
                    for item in layout
                    if isinstance(item, dict) and item.get("i") is not None
                ]
                if layout is not None
                else None
            ),
            role=Role(row.get("role") or Role.FREE.value),
            show_analytics=bool(row.get("show_analytics")),
            fb_pixel_id=row.get("fb_pixel_id"),
            ga_tracking_id=row.get("ga_tracking_id"),
        )

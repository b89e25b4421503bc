"""
Grid layout bookkeeping.

The grid itself (drag, drop, vertical compaction) is done client-side by
the grid library. This module keeps the persisted placement list in step
with the live card set: it fills in placements for cards that have none,
drops placements whose card is gone, and resolves the "append below
everything" row before a layout leaves the service.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Iterable, Optional, Sequence

from conectabio.errors import ValidationError
from conectabio.types import APPEND_ROW, Card, CardType, Placement


class LayoutMode(str, Enum):
    EDIT = "edit"
    PUBLIC = "public"
    MOBILE = "mobile"


COLUMNS = {
    LayoutMode.EDIT: 4,
    LayoutMode.PUBLIC: 4,
    LayoutMode.MOBILE: 2,
}

RESIZE_PRESETS = {
    "square": (1, 1),
    "banner": (2, 1),
    "portrait": (1, 2),
    "large": (2, 2),
}


def default_size(card_type: CardType, mode: LayoutMode = LayoutMode.EDIT) -> tuple[float, float]:
    """Return the (w, h) a card of this type gets when it has no placement."""
    cols = COLUMNS[mode]
    # Title rows are half height outside the editor.
    title_height = 1 if mode is LayoutMode.EDIT else 0.5
    map_side = min(3, cols)
    sizes = {
        CardType.TITLE: (cols, title_height),
        CardType.LINK: (cols, 1),
        CardType.NOTE: (1, 2),
        CardType.IMAGE: (2, 2),
        CardType.MAP: (map_side, map_side),
        CardType.DOCUMENT: (1, 2),
    }
    return sizes[card_type]


def _is_append_row(y: Optional[float]) -> bool:
    return y is None or y == APPEND_ROW


def reconcile(
    cards: Sequence[Card],
    saved_layout: Optional[Iterable[Placement | dict]],
    mode: LayoutMode = LayoutMode.EDIT,
) -> list[Placement]:
    """
    Merge a persisted layout with the live card set.

    Returns exactly one placement per card, in card order. Saved
    placements keep their coordinates; missing fields are backfilled with
    the card type's defaults. Cards without a saved placement get a
    default size, a column derived from their index and the append row.
    Saved placements for cards that no longer exist, or with no card id,
    are dropped.

    Args:
        cards: The profile's cards, in render order.
        saved_layout: The profile's stored layout, or None.
        mode: Which grid the layout is for; decides column count and
            default sizes.

    Returns:
        list[Placement]: New placement objects; inputs are not mutated.
    """
    cols = COLUMNS[mode]
    saved: dict[str, Placement] = {}
    for item in saved_layout or []:
        if not isinstance(item, Placement):
            if not isinstance(item, dict) or item.get("i") is None:
                continue
            item = Placement.from_dict(item)
        saved.setdefault(item.i, item)

    result = []
    for index, card in enumerate(cards):
        w, h = default_size(card.type, mode)
        existing = saved.get(card.id)
        if existing is not None:
            result.append(
                Placement(
                    i=card.id,
                    x=existing.x if existing.x is not None else 0,
                    y=existing.y if existing.y is not None else APPEND_ROW,
                    w=existing.w if existing.w is not None else w,
                    h=existing.h if existing.h is not None else h,
                )
            )
        else:
            x = max(0, min(index % cols, cols - w))
            result.append(Placement(i=card.id, x=x, y=APPEND_ROW, w=w, h=h))
    return result


def next_row(layout: Iterable[Placement]) -> int:
    """First row below every placed entry; 0 for an empty layout."""
    bottom = 0.0
    for item in layout:
        if _is_append_row(item.y):
            continue
        bottom = max(bottom, item.y + (item.h or 0))
    return math.ceil(bottom)


def resolve_append_rows(layout: Sequence[Placement]) -> list[Placement]:
    """
    Replace every append-row sentinel with a concrete row.

    Sentinel entries are stacked in list order below all entries that
    already have a row, so the result has no overlaps introduced here.
    """
    bottom = next_row(layout)
    resolved = []
    for item in layout:
        if _is_append_row(item.y):
            resolved.append(Placement(i=item.i, x=item.x, y=bottom, w=item.w, h=item.h))
            bottom = math.ceil(bottom + (item.h or 0))
        else:
            resolved.append(Placement(i=item.i, x=item.x, y=item.y, w=item.w, h=item.h))
    return resolved


def placement_for_new_card(
    card: Card, layout: Sequence[Placement], mode: LayoutMode = LayoutMode.EDIT
) -> Placement:
    w, h = default_size(card.type, mode)
    return Placement(i=card.id, x=0, y=next_row(layout), w=w, h=h)


def sanitize_layout(layout: Iterable[Placement | dict]) -> list[Placement]:
    """
    Prepare a layout for persistence.

    Missing fields become x=0, y=0, w=1, h=1. Negative or fractional
    coordinates and non-positive sizes are rejected.
    """
    cleaned = []
    seen = set()
    for item in layout:
        placement = item if isinstance(item, Placement) else Placement.from_dict(item)
        if placement.i in seen:
            raise ValidationError(f"Duplicate layout entry for card {placement.i}")
        seen.add(placement.i)
        x = placement.x if placement.x is not None else 0
        y = placement.y if not _is_append_row(placement.y) else 0
        w = placement.w if placement.w is not None else 1
        h = placement.h if placement.h is not None else 1
        if x < 0 or y < 0:
            raise ValidationError("Layout coordinates must be non-negative")
        if not float(x).is_integer() or not float(y).is_integer():
            raise ValidationError("Layout coordinates must be whole numbers")
        if w <= 0 or h <= 0:
            raise ValidationError("Layout sizes must be positive")
        cleaned.append(Placement(i=placement.i, x=int(x), y=int(y), w=w, h=h))
    return cleaned


def resize(layout: Sequence[Placement], card_id: str, w: float, h: float) -> list[Placement]:
    if w <= 0 or h <= 0:
        raise ValidationError("Card size must be positive")
    return [
        Placement(i=item.i, x=item.x, y=item.y, w=w, h=h)
        if item.i == card_id
        else item
        for item in layout
    ]


def remove(layout: Sequence[Placement], card_id: str) -> list[Placement]:
    return [item for item in layout if item.i != card_id]

"""
Best-effort extraction of a site's name and picture from its HTML.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from conectabio.errors import ExtractionError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


@dataclass
class ScrapeResult:
    profile_name: Optional[str]
    profile_image: Optional[str]
    # Post extraction is not implemented; always empty.
    recent_posts: list[dict] = field(default_factory=list)


def _meta_content(soup: BeautifulSoup, prop: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"property": prop}) or soup.find(
        "meta", attrs={"name": prop}
    )
    if tag and tag.get("content", "").strip():
        return tag["content"].strip()
    return None


def _class_contains(*needles: str) -> Callable[[Optional[str]], bool]:
    def match(class_value) -> bool:
        if not class_value:
            return False
        classes = class_value if isinstance(class_value, str) else " ".join(class_value)
        return any(needle in classes for needle in needles)

    return match


def extract_name(soup: BeautifulSoup) -> Optional[str]:
    """og:site_name, then a name-like class, then og:title, then <title>."""
    name = _meta_content(soup, "og:site_name")
    if name:
        return name

    element = soup.find(class_=_class_contains("publication-name", "profile-name"))
    if element and element.get_text(strip=True):
        return element.get_text(strip=True)

    name = _meta_content(soup, "og:title")
    if name:
        return name

    if soup.title and soup.title.get_text(strip=True):
        return soup.title.get_text(strip=True)
    return None


def extract_image(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    """og:image, then an avatar-like <img>, then the page icon."""
    image = _meta_content(soup, "og:image")
    if not image:
        img = soup.find("img", class_=_class_contains("avatar", "profile"))
        if img and img.get("src"):
            image = img["src"]
    if not image:
        icon = soup.find("link", rel=lambda rel: rel and "icon" in rel)
        if icon and icon.get("href"):
            image = icon["href"]
    return urljoin(base_url, image) if image else None


def scrape_profile(
    url: str,
    *,
    timeout: int = REQUEST_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
) -> ScrapeResult:
    """
    Fetches a page and extracts its display name and picture.

    Args:
        url (str): The public page to read.

    Returns:
        ScrapeResult: Name and image, either of which may be None but not
            both.

    Raises:
        ExtractionError: The page could not be fetched, or neither a name
            nor an image was found.
    """
    try:
        response = requests.get(url, headers={"User-Agent": user_agent}, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.error("Could not fetch %s: %s", url, exc)
        raise ExtractionError("Could not read the page.") from exc

    soup = BeautifulSoup(response.content, "html.parser")
    name = extract_name(soup)
    image = extract_image(soup, response.url or url)
    if not name and not image:
        raise ExtractionError("Could not find a name or image on the page.")
    return ScrapeResult(profile_name=name, profile_image=image)

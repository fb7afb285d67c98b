from __future__ import annotations

import logging
import re
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup, Tag
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from pararius_notifier.models import Listing

LOGGER = logging.getLogger(__name__)

LISTING_SELECTOR = "section"
TITLE_SELECTOR = "h2"
LOCATION_SELECTOR = "div.listing-search-item__location"
PRICE_SELECTOR = "div.listing-search-item__price"
FEATURE_SELECTOR = "li.illustrated-features__item"

AREA_MARKER = "m²"
ROOMS_MARKER = "kamer"

PRICE_CHARS_REGEX = re.compile(r"[^0-9,.]")


class ParariusClient:
    def __init__(
        self,
        *,
        origin: str,
        timeout_seconds: int,
        max_retries: int,
        user_agent: str,
    ) -> None:
        self.origin = origin
        self.timeout_seconds = timeout_seconds
        self.session = requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "nl-NL,nl;q=0.9,en;q=0.6",
                "Cache-Control": "no-cache",
            }
        )
        retry = Retry(
            total=max_retries,
            backoff_factor=1.0,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=frozenset(["GET"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def fetch_listings(self, search_url: str) -> list[Listing]:
        response = self.session.get(search_url, timeout=self.timeout_seconds)
        response.raise_for_status()
        # requests falls back to ISO-8859-1 for text/html without a charset.
        if "charset" not in response.headers.get("Content-Type", "").lower():
            response.encoding = "utf-8"
        return parse_listings(response.text, origin=self.origin)

    def close(self) -> None:
        self.session.close()


def parse_listings(html: str, *, origin: str) -> list[Listing]:
    soup = BeautifulSoup(html, "html.parser")
    listings: list[Listing] = []

    for container in soup.select(LISTING_SELECTOR):
        heading = container.select_one(TITLE_SELECTOR)
        title = _element_text(heading)
        # Sections without a heading are adverts or page chrome.
        if not title:
            continue

        size, rooms = _extract_features(container)
        listings.append(
            Listing(
                title=title,
                url=_extract_url(heading, origin),
                address=_element_text(container.select_one(LOCATION_SELECTOR)),
                price_value=extract_price_value(
                    _element_text(container.select_one(PRICE_SELECTOR))
                ),
                size=size,
                rooms=rooms,
            )
        )

    LOGGER.debug("Parsed %s listing container(s)", len(listings))
    return listings


def extract_price_value(price_text: str) -> int:
    """Turn a displayed price such as ``€ 1.850 per maand`` into ``1850``.

    Both ``.`` and ``,`` are treated as thousands separators. Anything that
    does not leave a plain integer (empty text, "prijs op aanvraag") gives 0.
    """
    digits = PRICE_CHARS_REGEX.sub("", price_text)
    digits = digits.replace(".", "").replace(",", "")
    try:
        return int(digits)
    except ValueError:
        return 0


def _extract_url(heading: Tag | None, origin: str) -> str:
    if heading is None:
        return ""
    anchor = heading.find("a")
    if anchor is None:
        return ""
    href = anchor.get("href")
    if not isinstance(href, str) or not href.strip():
        return ""
    return urljoin(f"{origin}/", href.strip())


def _extract_features(container: Tag) -> tuple[str, str]:
    size = ""
    rooms = ""
    for feature in container.select(FEATURE_SELECTOR):
        text = feature.get_text(" ", strip=True)
        if AREA_MARKER in text:
            if not size:
                size = text
        elif ROOMS_MARKER in text:
            if not rooms:
                rooms = text
    return size, rooms


def _element_text(element: Tag | None) -> str:
    if element is None:
        return ""
    return element.get_text(" ", strip=True)

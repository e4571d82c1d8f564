"""
Scraping of IMDb curated lists and award ceremonies.

IMDb has no API for either, so pages are fetched through the shared rate
limiter and parsed with BeautifulSoup. List pages are read from their HTML
(both the legacy ``.lister-item`` markup and the current
``.ipc-metadata-list-summary-item`` markup); event pages embed their data as
JSON in the ``__NEXT_DATA__`` script, which is much steadier than the markup.

The parse functions take HTML and return ScrapedRecord objects, so they can
be tested without any network access.
"""

import json
import math
import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import Any, Optional

from bs4 import BeautifulSoup
from django.utils.text import slugify

from importer.exceptions import TransientProviderError

from .http import RateLimitedClient

logger = getLogger(__name__)

LIST_PAGE_SIZE = 250

IMDB_ID_RE = re.compile(r"/title/(tt\d+)")
YEAR_RE = re.compile(r"(\d{4})")
LIST_TOTAL_RE = re.compile(r"of\s+([\d,]+)|([\d,]+)\s+titles?", re.IGNORECASE)
RANK_PREFIX_RE = re.compile(r"^\d+\.\s*")


@dataclass(frozen=True)
class ScrapedRecord:
    """A film referenced by a scraped page"""

    imdb_id: str
    title: str = ""
    year: Optional[int] = None
    position: Optional[int] = None
    tmdb_id: Optional[int] = None
    source_key: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScrapedPage:
    records: list[ScrapedRecord]
    page: int = 1
    total_items: Optional[int] = None

    @property
    def total_pages(self):
        if self.total_items is None:
            return None
        return max(math.ceil(self.total_items / LIST_PAGE_SIZE), 1)

    @property
    def has_next_page(self):
        if self.total_pages is not None:
            return self.page < self.total_pages
        # Without a total, a full page means there may be another one
        return len(self.records) >= LIST_PAGE_SIZE


def _text(element):
    if element is None:
        return ""
    return " ".join(element.get_text(" ").split())


def _imdb_id(href):
    match = IMDB_ID_RE.search(href or "")
    return match.group(1) if match else None


def _year(text):
    match = YEAR_RE.search(text or "")
    return int(match.group(1)) if match else None


def parse_list_total(soup):
    """The number of titles a list says it holds, or None"""
    for selector in (
        ".lister-total-num-results",
        "[data-testid='list-page-mc-total-items']",
        ".desc",
    ):
        element = soup.select_one(selector)
        if element is None:
            continue
        match = LIST_TOTAL_RE.search(_text(element))
        if match:
            return int((match.group(1) or match.group(2)).replace(",", ""))
    return None


def parse_list_page(html, page=1):
    """
    Parse one page of an IMDb list. Positions count from 1 across the whole
    list.
    """
    soup = BeautifulSoup(html, "html.parser")
    offset = (page - 1) * LIST_PAGE_SIZE

    items = soup.select(".lister-item, .ipc-metadata-list-summary-item")
    entries = []
    for item in items:
        link = item.select_one("a[href*='/title/tt']")
        imdb_id = _imdb_id(link.get("href") if link else None)
        if not imdb_id:
            continue
        title_element = item.select_one(
            ".lister-item-header a, h3.ipc-title__text, .ipc-title__text"
        )
        title = RANK_PREFIX_RE.sub("", _text(title_element) or _text(link))
        year = _year(
            _text(item.select_one(".lister-item-year, .dli-title-metadata-item"))
        )
        entries.append((imdb_id, title, year))

    if not entries:
        # Markup we don't recognize; fall back to every title link on the page
        logger.info("No list items found on page %s; using title links", page)
        entries = [
            (_imdb_id(link.get("href")), _text(link), None)
            for link in soup.select("a[href*='/title/tt']")
        ]

    records = []
    seen = set()
    for imdb_id, title, year in entries:
        if not imdb_id or imdb_id in seen:
            continue
        seen.add(imdb_id)
        records.append(
            ScrapedRecord(
                imdb_id=imdb_id,
                title=title,
                year=year,
                position=offset + len(records) + 1,
            )
        )

    return ScrapedPage(records=records, page=page, total_items=parse_list_total(soup))


def _next_data(html):
    soup = BeautifulSoup(html, "html.parser")
    script = soup.select_one("script#__NEXT_DATA__")
    if script is None or not script.string:
        return None
    try:
        return json.loads(script.string)
    except ValueError:
        logger.warning("Unreadable __NEXT_DATA__ on event page")
        return None


def _edges(container, key):
    return ((container or {}).get(key) or {}).get("edges") or []


def parse_ceremony(html, festival_key, year):
    """
    Parse an award ceremony page into one record per nominated film and
    category, keyed ``<festival>_<year>_<category-slug>``
    """
    data = _next_data(html)
    if data is None:
        return []

    edition = ((data.get("props") or {}).get("pageProps") or {}).get("edition") or {}
    records = []

    for award in edition.get("awards") or []:
        for category_edge in _edges(award, "nominationCategories"):
            category_node = category_edge.get("node") or {}
            category = ((category_node.get("category") or {}).get("text") or "").strip()
            if not category:
                continue
            source_key = f"{festival_key}_{year}_{slugify(category)}"

            for nomination_edge in _edges(category_node, "nominations"):
                nomination = nomination_edge.get("node") or {}
                entities = nomination.get("awardedEntities") or {}
                titles = (entities.get("awardTitles") or []) + (
                    entities.get("secondaryAwardTitles") or []
                )
                for award_title in titles:
                    title = award_title.get("title") or {}
                    imdb_id = title.get("id")
                    if not imdb_id or not imdb_id.startswith("tt"):
                        continue
                    records.append(
                        ScrapedRecord(
                            imdb_id=imdb_id,
                            title=(title.get("titleText") or {}).get("text") or "",
                            year=(title.get("releaseDate") or {}).get("year"),
                            source_key=source_key,
                            metadata={
                                "year": int(year),
                                "category": category,
                                "winner": bool(nomination.get("isWinner")),
                                "festival": festival_key,
                            },
                        )
                    )

    logger.info(
        "Found %s nominations for %s %s", len(records), festival_key, year
    )
    return records


class IMDbClient(RateLimitedClient):
    provider = "imdb"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.session.headers["Accept-Language"] = "en-US,en;q=0.9"

    def list_page(self, list_id, page=1, expected_pages=None):
        """
        Fetch one page of a list. ``expected_pages`` is the page count an
        earlier page reported; a page within it which has no titles is a bot
        check or a broken response rather than the end of the list.
        """
        html = self.get_text(f"list/{list_id}/", {"page": page})
        scraped = parse_list_page(html, page)
        if not scraped.records and (page == 1 or page <= (expected_pages or 0)):
            raise TransientProviderError(
                f"imdb list page {list_id}/{page} had no titles",
                provider=self.provider,
            )
        return scraped

    def ceremony(self, event_id, year, festival_key):
        html = self.get_text(f"event/{event_id}/{year}/1/")
        if "__NEXT_DATA__" not in html:
            # IMDb serves a bot check page with a 200 status
            raise TransientProviderError(
                f"imdb event page {event_id}/{year} had no embedded data",
                provider=self.provider,
            )
        return parse_ceremony(html, festival_key, year)

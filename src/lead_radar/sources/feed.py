"""Freelance project RSS feed source.

Fetches the feed with requests, parses items with BeautifulSoup's XML
parser and keeps recent projects matching the configured skills.
"""

import time
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, List, Optional

import requests
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from ..config import config
from ..logging_utils import get_logger
from ..models import FeedItem, utcnow
from ..text import normalize


class FeedResult(BaseModel):
    """Outcome of one feed fetch."""

    fetched_at: datetime = Field(default_factory=utcnow)
    success: bool = True
    error_message: Optional[str] = None
    items: List[FeedItem] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total_found(self) -> int:
        return len(self.items)


def parse_pub_date(value: str) -> Optional[datetime]:
    """Parse an RFC 822 date, None when absent or malformed."""
    if not value:
        return None
    try:
        return parsedate_to_datetime(value.strip())
    except (TypeError, ValueError):
        return None


class FeedSource:
    """RSS feed reader for freelance projects.

    Attributes:
        url: Feed URL.
        skills: Keywords a project must mention (case-insensitive).
        max_age_hours: Maximum project age.
        request_timeout: Request timeout in seconds.
    """

    request_timeout: int = 30

    def __init__(
        self,
        url: Optional[str] = None,
        skills: Optional[List[str]] = None,
        max_age_hours: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.logger = get_logger(__name__)
        self.url = url or config.FEED_URL
        self.skills = skills or config.FEED_SKILLS
        self.max_age_hours = (
            max_age_hours if max_age_hours is not None else config.FEED_MAX_AGE_HOURS
        )

        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": "Lead-Radar/1.0",
            "Accept": "application/rss+xml, application/xml;q=0.9, */*;q=0.8",
        })

    def fetch_xml(self) -> str:
        """Download the raw feed.

        Raises:
            requests.RequestException: If the request fails.
        """
        response = self.session.get(self.url, timeout=self.request_timeout)
        response.raise_for_status()
        return response.text

    def parse_item(self, element: Any) -> Optional[FeedItem]:
        """Parse an ``<item>`` element; None when it has no link."""

        def text_of(name: str) -> str:
            child = element.find(name)
            return child.get_text() if child is not None else ""

        link = text_of("link").strip()
        if not link:
            return None

        return FeedItem(
            title=normalize(text_of("title")),
            description=normalize(text_of("description")),
            link=link,
            published_at=parse_pub_date(text_of("pubDate")),
        )

    def parse_items(self, xml: str) -> List[FeedItem]:
        """Parse every item of an RSS document."""
        soup = BeautifulSoup(xml, "xml")
        items: List[FeedItem] = []

        for element in soup.find_all("item"):
            try:
                item = self.parse_item(element)
            except Exception as e:
                self.logger.warning(
                    "Failed to parse feed item", extra={"error": str(e)}
                )
                continue
            if item is not None:
                items.append(item)

        return items

    def fetch(self) -> FeedResult:
        """Fetch and parse the feed.

        Never raises: a failed download yields an unsuccessful, empty result.
        """
        start_time = time.time()
        self.logger.info("Fetching feed", extra={"url": self.url})

        try:
            items = self.parse_items(self.fetch_xml())
        except Exception as e:
            duration = time.time() - start_time
            self.logger.error(
                "Feed fetch failed",
                extra={"url": self.url, "error": str(e)},
            )
            return FeedResult(
                success=False,
                error_message=str(e),
                duration_seconds=duration,
            )

        duration = time.time() - start_time
        self.logger.info(
            "Feed fetched",
            extra={"count": len(items), "duration_seconds": round(duration, 2)},
        )
        return FeedResult(items=items, duration_seconds=duration)

    def passes_filters(self, item: FeedItem, now: Optional[datetime] = None) -> bool:
        """Check skill match and recency."""
        if not item.matches_skills(self.skills):
            return False

        if not item.is_within_age_limit(self.max_age_hours, now=now):
            self.logger.debug(
                "Project filtered by age",
                extra={"link": item.link, "age_hours": round(item.age_hours(now), 1)},
            )
            return False

        return True

    def filter_items(
        self, items: List[FeedItem], now: Optional[datetime] = None
    ) -> List[FeedItem]:
        """Keep the items passing :meth:`passes_filters`."""
        return [item for item in items if self.passes_filters(item, now=now)]

    def close(self) -> None:
        """Close the requests session if owned."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

"""
Feed Extractor
==============

Default ``Extractor`` implementation: lists a source's RSS index with
feedparser and extracts detail fields from item pages with BeautifulSoup.

Detail extraction is driven by a table of ``DetailRule`` entries, so a source
with a different page layout only needs a different table.
"""

import html
import re
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import feedparser
import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config.settings import ExtractionSettings
from ..database.models import IndexEntry
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ExtractionError, ValidationError, ErrorCode
from ..utils.validators import URLValidator


WHITESPACE_PATTERN = re.compile(r"\s+")


@dataclass(frozen=True)
class DetailRule:
    """How to extract one named field from an item page.

    ``multiple`` rules join the text (or ``attribute``) of every match with
    ``separator``; single rules take the first match only.
    """

    name: str
    selector: str
    multiple: bool = False
    separator: str = " "
    attribute: Optional[str] = None
    strip_prefix: Optional[str] = None


SCIENCE_DAILY_RULES: Sequence[DetailRule] = (
    DetailRule("full_story", "div#story_text p", multiple=True, separator="\n\n"),
    DetailRule("related_topics", "ul.nav.subnav#related_topics li a", multiple=True, separator="; "),
    DetailRule("related_terms", "ul.nav.nav-condensed.fa-ul#related_terms li a", multiple=True, separator="; "),
    DetailRule("story_source", "div#story_source", strip_prefix="Story Source:"),
    DetailRule("journal_reference", "ol.journal"),
    DetailRule("citation_mla", "div.tab-content.tab-citations #citation_mla"),
    DetailRule("citation_chicago", "div.tab-content.tab-citations #citation_chicago"),
    DetailRule("citation_apa", "div.tab-content.tab-citations #citation_apa"),
    DetailRule("related_stories", "div.related-headline.clearfix a[href]", multiple=True, attribute="href"),
)


def _clean_text(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", html.unescape(text)).strip()


def extract_details(page: str, rules: Sequence[DetailRule] = SCIENCE_DAILY_RULES) -> Dict[str, str]:
    """Apply ``rules`` to an HTML page.

    Every rule yields a key; a rule without matches yields an empty string.
    """
    soup = BeautifulSoup(page, "html.parser")
    details: Dict[str, str] = {}

    for rule in rules:
        elements = soup.select(rule.selector) if rule.multiple else soup.select(rule.selector, limit=1)
        values = []
        for element in elements:
            if rule.attribute:
                value = (element.get(rule.attribute) or "").strip()
            else:
                value = _clean_text(element.get_text(" "))
            if rule.strip_prefix:
                value = value.replace(rule.strip_prefix, "", 1).strip()
            if value:
                values.append(value)

        details[rule.name] = rule.separator.join(values).strip()

    return details


class FeedExtractor:
    """
    Fetches source indexes and item pages over HTTP.

    Features:
    - Shared requests session with urllib3 retry strategy
    - Per-request timeout from ``ExtractionSettings``
    - Every network or parse failure surfaces as ``ExtractionError``
    """

    def __init__(
        self,
        settings: Optional[ExtractionSettings] = None,
        rules: Sequence[DetailRule] = SCIENCE_DAILY_RULES,
        session: Optional[requests.Session] = None,
    ):
        """Initialize extractor.

        Args:
            settings: Timeout, retry and user agent configuration
            rules: Detail extraction table applied to item pages
            session: Pre-built session (tests pass a mock)
        """
        self.settings = settings or ExtractionSettings()
        self.rules = tuple(rules)
        self.logger = get_logger_for_component("extractor")

        if session is None:
            session = requests.Session()
            retry_strategy = Retry(
                total=self.settings.max_retries,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["HEAD", "GET", "OPTIONS"],
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)

        session.headers.update({"User-Agent": self.settings.user_agent})
        self.session = session

    def list_index(self, source_ref: str) -> List[IndexEntry]:
        """Fetch and parse the RSS index of a source.

        Args:
            source_ref: Source index URL

        Returns:
            Index entries in feed order; entries without a link are dropped

        Raises:
            ExtractionError: If the index cannot be fetched or parsed
        """
        response = self._get(source_ref, accept="application/rss+xml, application/atom+xml, application/xml, text/xml")

        parsed_feed = feedparser.parse(response.content, response_headers=dict(response.headers))

        if parsed_feed.bozo and not parsed_feed.entries:
            raise ExtractionError(
                f"Unparseable index {source_ref}: {parsed_feed.bozo_exception}",
                url=source_ref,
                error_code=ErrorCode.EXTRACTION_PARSE_ERROR,
            )
        if parsed_feed.bozo:
            # Many feeds have minor formatting issues
            self.logger.warning(f"Index parsing warning for {source_ref}: {parsed_feed.bozo_exception}")

        entries = []
        for entry in parsed_feed.entries:
            link = (entry.get("link") or "").strip()
            if not link:
                continue
            try:
                link = URLValidator.validate_source_url(link)
            except ValidationError as e:
                self.logger.warning(f"Skipping index entry with invalid link {link!r}: {e}")
                continue

            summary = entry.get("summary") or entry.get("description") or ""
            entries.append(
                IndexEntry(
                    title=_clean_text(entry.get("title") or ""),
                    link=link,
                    summary=_clean_text(BeautifulSoup(summary, "html.parser").get_text(" ")),
                )
            )

        self.logger.info(f"Listed {len(entries)} entries from {source_ref}")
        return entries

    def fetch_detail(self, link: str) -> Dict[str, str]:
        """Fetch an item page and extract its detail fields.

        Raises:
            ExtractionError: If the page cannot be fetched or parsed
        """
        response = self._get(link, accept="text/html, application/xhtml+xml")

        try:
            return extract_details(response.text, self.rules)
        except Exception as e:
            raise ExtractionError(
                f"Failed to parse item page {link}: {e}",
                url=link,
                error_code=ErrorCode.EXTRACTION_PARSE_ERROR,
            ) from e

    def _get(self, url: str, accept: str) -> requests.Response:
        start_time = time.time()
        try:
            response = self.session.get(
                url, timeout=self.settings.request_timeout, headers={"Accept": accept}
            )
            response.raise_for_status()
        except requests.Timeout as e:
            raise ExtractionError(
                f"Timed out fetching {url}: {e}", url=url, error_code=ErrorCode.EXTRACTION_TIMEOUT
            ) from e
        except requests.RequestException as e:
            raise ExtractionError(
                f"Failed to fetch {url}: {e}", url=url, error_code=ErrorCode.EXTRACTION_NETWORK_ERROR
            ) from e

        self.logger.debug(
            f"Fetched {url} in {time.time() - start_time:.2f}s, size: {len(response.content)} bytes"
        )
        return response

    def close(self) -> None:
        self.session.close()

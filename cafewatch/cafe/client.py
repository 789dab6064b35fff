"""
Naver Cafe writer-search listing client.

Fetches one page of a cafe's "search by writer" results over httpx with
the operator's logged-in session cookie and extracts posts with
BeautifulSoup. The board markup varies between skins, so every field is
looked up through an ordered list of selectors.

The same session also reads robots.txt, so cycles can be skipped while the
site disallows the board paths, and individual post pages, whose cleaned
body is attached to notifications.

Usage:
    async with CafeBoardClient() as client:
        items = await client.fetch_page(source, page=1)
"""

import logging
import re
import time
from urllib.parse import quote, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, Tag

from cafewatch.config.settings import get_settings
from cafewatch.monitor.config import MonitorConfig
from cafewatch.monitor.errors import (
    FetchBlocked,
    FetchNavigationFailure,
    FetchParseEmpty,
    FetchTimeout,
)
from cafewatch.monitor.ids import content_id_sort_key, parse_numeric_id
from cafewatch.monitor.schemas import ContentItem, SourceDescriptor
from cafewatch.monitor.timestamps import parse_published_at

logger = logging.getLogger(__name__)

WRITER_SEARCH_PATH = "/f-e/cafes/{club_id}/menus/0?ta=WRITER&q={nickname}&page={page}"

ROW_SELECTORS = (
    "table tbody tr",
    ".article-board tbody tr",
    ".board-list tbody tr",
    ".search-list tbody tr",
)
NICKNAME_SELECTORS = (
    ".ArticleBoardWriterInfo .nickname",
    ".nickname",
    ".writer .nickname",
    ".author .nickname",
    "td .nickname",
)
TITLE_SELECTORS = (
    ".board-list .article",
    ".article",
    'a[href*="articleid"]',
    ".title a",
    'td a[href*="articleid"]',
)
DATE_SELECTORS = (".date", ".time", ".td_date", "td:nth-last-child(2)")

# Statuses that mean the session was refused rather than the page missing
BLOCKED_STATUSES = frozenset({401, 403, 429})
LOGIN_HOST = "nid.naver.com"

# Disallow values that cover the writer-search board
BOARD_PATH_MARKERS = ("/f-e", "/ca-fe")

CONTENT_SELECTORS = (
    ".se-main-container",
    ".se-viewer .se-main-container",
    ".article_viewer .se-main-container",
    ".CafeViewer .se-main-container",
    ".se-viewer",
    ".article_viewer",
    ".CafeViewer",
    ".ArticleContentBox .content",
    "#postViewArea",
)
CONTENT_STRIP_SELECTORS = (
    "script",
    "style",
    "noscript",
    ".ad",
    ".advertisement",
    ".sponsor",
    ".share-button",
    ".reaction-button",
    '[class*="ad-"]',
    '[id*="ad-"]',
    ".__se_module_data",
)
MIN_CONTENT_TEXT = 5
MIN_CONTENT_HTML = 20

_ARTICLE_ID = re.compile(r"articleid=(\d+)", re.IGNORECASE)
_SUBJECT_PREFIX = re.compile(r"^\[.*?\]\s*")
_DATE_LIKE = re.compile(r"\d{1,2}:\d{2}|\d{4}\.\d{1,2}\.\d{1,2}|\d{1,2}\.\d{1,2}")


def build_search_url(base_url: str, club_id: str, nickname: str, page: int) -> str:
    """Writer-search URL for one page of a nickname's posts."""
    path = WRITER_SEARCH_PATH.format(
        club_id=quote(str(club_id), safe=""),
        nickname=quote(nickname, safe=""),
        page=page,
    )
    return base_url.rstrip("/") + path


class CafeBoardClient:
    """
    Page fetcher bound to one shared httpx session.

    Navigation (connect/write/pool) and content (read) get separate
    timeout budgets from MonitorConfig.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        base_url: str | None = None,
        cookie: str | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self._config = config or MonitorConfig()
        self._base_url = base_url or settings.cafe_base_url
        self._cookie = cookie if cookie is not None else settings.cafe_cookie
        self._user_agent = user_agent or settings.user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._robots_allowed = True
        self._robots_checked_at: float | None = None

    @property
    def timeout(self) -> httpx.Timeout:
        nav = self._config.navigation_timeout_seconds
        return httpx.Timeout(
            connect=nav,
            read=self._config.content_timeout_seconds,
            write=nav,
            pool=nav,
        )

    def _headers(self) -> dict[str, str]:
        headers = {
            "User-Agent": self._user_agent,
            "Accept": "text/html,application/xhtml+xml",
            "Accept-Language": "ko-KR,ko;q=0.9,en;q=0.8",
        }
        if self._cookie:
            headers["Cookie"] = self._cookie
        return headers

    async def __aenter__(self) -> "CafeBoardClient":
        self._get_client()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers=self._headers(),
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_page(self, source: SourceDescriptor, page: int) -> list[ContentItem]:
        """
        Fetch one listing page of a source's posts, newest first.

        Raises:
            FetchTimeout: The board did not answer within budget
            FetchNavigationFailure: Connection or protocol failure
            FetchBlocked: Refused or redirected to the login page
            FetchParseEmpty: The page had no recognisable listing
        """
        url = build_search_url(self._base_url, source.group_id, source.author_handle, page)

        try:
            response = await self._get_client().get(url)
        except httpx.TimeoutException as e:
            raise FetchTimeout(f"Timed out loading {url}: {e}", page=page) from e
        except httpx.HTTPError as e:
            raise FetchNavigationFailure(f"Failed to load {url}: {e}", page=page) from e

        if response.status_code in BLOCKED_STATUSES:
            raise FetchBlocked(
                f"HTTP {response.status_code} for {source.name} page {page}",
                page=page,
                status_code=response.status_code,
            )
        if urlparse(str(response.url)).hostname == LOGIN_HOST:
            raise FetchBlocked(
                f"Redirected to login for {source.name} page {page}",
                page=page,
                status_code=response.status_code,
            )
        if response.status_code != 200:
            raise FetchParseEmpty(
                f"HTTP {response.status_code} for {source.name} page {page}",
                page=page,
                status_code=response.status_code,
            )

        items = parse_listing(response.text, source.author_handle, self._base_url)
        if items is None:
            raise FetchParseEmpty(f"No listing rows for {source.name} page {page}", page=page)

        logger.debug("Parsed %d posts for %s page %d", len(items), source.name, page)
        return items

    async def allows_scanning(self) -> bool:
        """
        Whether robots.txt permits the writer-search board paths.

        The answer is cached for robots_cache_seconds. An unreachable or
        non-200 robots.txt counts as allowed.
        """
        if not self._config.respect_robots_txt:
            return True

        now = time.monotonic()
        if self._robots_checked_at is not None and (
            now - self._robots_checked_at < self._config.robots_cache_seconds
        ):
            return self._robots_allowed

        url = self._base_url.rstrip("/") + "/robots.txt"
        allowed = True
        try:
            response = await self._get_client().get(url)
            if response.status_code == 200:
                allowed = not robots_disallows_board(response.text)
        except httpx.HTTPError as e:
            logger.warning("Could not fetch %s, assuming allowed: %s", url, e)

        if not allowed:
            logger.warning("robots.txt disallows board paths on %s", self._base_url)
        self._robots_allowed = allowed
        self._robots_checked_at = now
        return allowed

    async def fetch_post_content(self, url: str) -> str | None:
        """
        Cleaned body HTML of one post, or None when it cannot be read.

        Best effort: used only to enrich notifications, so every failure
        is logged and swallowed.
        """
        try:
            response = await self._get_client().get(url)
        except httpx.HTTPError as e:
            logger.info("Post content fetch failed for %s: %s", url, e)
            return None

        if response.status_code != 200:
            logger.info("Post content fetch for %s returned HTTP %d", url, response.status_code)
            return None
        return extract_post_content(response.text)


def parse_listing(html: str, nickname: str, base_url: str) -> list[ContentItem] | None:
    """
    Extract a nickname's posts from a writer-search page.

    Returns:
        Posts sorted newest first (numeric ids by value, malformed ids
        last), or None when no listing rows exist at all.
    """
    soup = BeautifulSoup(html, "html.parser")

    rows: list[Tag] = []
    for selector in ROW_SELECTORS:
        rows = soup.select(selector)
        if rows:
            break
    if not rows:
        return None

    items: list[ContentItem] = []
    for row in rows:
        if _first_text(row, NICKNAME_SELECTORS) != nickname:
            continue
        item = _parse_row(row, nickname, base_url)
        if item is not None:
            items.append(item)

    numeric = [i for i in items if parse_numeric_id(i.id) is not None]
    malformed = [i for i in items if parse_numeric_id(i.id) is None]
    numeric.sort(key=lambda i: content_id_sort_key(i.id), reverse=True)
    return numeric + malformed


def _parse_row(row: Tag, nickname: str, base_url: str) -> ContentItem | None:
    item_id = _row_id(row)

    title, href = "", ""
    for selector in TITLE_SELECTORS:
        element = row.select_one(selector)
        if element is None:
            continue
        title = element.get_text(strip=True)
        href = element.get("href") or ""
        if title and href:
            break

    if not (item_id and title and href):
        return None

    return ContentItem(
        id=item_id,
        title=_SUBJECT_PREFIX.sub("", title),
        url=href if href.startswith("http") else urljoin(base_url, href),
        author=nickname,
        published_at=parse_published_at(_row_date(row)),
    )


def _row_id(row: Tag) -> str:
    """Article number from the first cell, else from the article link."""
    first_cell = row.select_one("td:first-child")
    cell_text = first_cell.get_text(strip=True) if first_cell else ""
    if parse_numeric_id(cell_text) is not None:
        return cell_text

    link = row.select_one('a[href*="articleid"]')
    if link is not None:
        match = _ARTICLE_ID.search(link.get("href") or "")
        if match:
            return match.group(1)
    return cell_text


def _row_date(row: Tag) -> str | None:
    cells = row.select(".td_normal")
    if len(cells) >= 2:
        text = cells[-2].get_text(strip=True)
        if text:
            return text

    for selector in DATE_SELECTORS:
        element = row.select_one(selector)
        if element is None:
            continue
        text = element.get_text(strip=True)
        if _DATE_LIKE.search(text):
            return text
    return None


def _first_text(row: Tag, selectors: tuple[str, ...]) -> str:
    for selector in selectors:
        element = row.select_one(selector)
        if element is not None:
            text = element.get_text(strip=True)
            if text:
                return text
    return ""


def robots_disallows_board(text: str) -> bool:
    """True when the ``User-agent: *`` group disallows the board paths."""
    in_wildcard = False
    seen_rule = False
    for raw in text.splitlines():
        line = raw.split("#", 1)[0].strip()
        if ":" not in line:
            continue
        key, value = (part.strip() for part in line.split(":", 1))
        key = key.lower()

        if key == "user-agent":
            # A user-agent line after rules starts a new group
            if seen_rule:
                in_wildcard = False
                seen_rule = False
            in_wildcard = in_wildcard or value == "*"
            continue

        seen_rule = True
        if not (in_wildcard and key == "disallow"):
            continue
        if any(marker in value for marker in BOARD_PATH_MARKERS):
            return True
    return False


def extract_post_content(html: str) -> str | None:
    """
    Body HTML of a post page with scripts, ads and share widgets removed.

    Returns:
        The first matching container's HTML, or None when no container
        holds meaningful text.
    """
    soup = BeautifulSoup(html, "html.parser")

    for selector in CONTENT_SELECTORS:
        container = soup.select_one(selector)
        if container is None:
            continue

        for junk in container.select(", ".join(CONTENT_STRIP_SELECTORS)):
            junk.decompose()

        text = container.get_text(strip=True)
        body = container.decode_contents().strip()
        if len(text) > MIN_CONTENT_TEXT and len(body) > MIN_CONTENT_HTML:
            return body
    return None

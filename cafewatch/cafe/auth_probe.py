"""
Naver login-state probe.

Loads the portal front page with the session cookie and looks for the
account widget. The page renders a login button for anonymous visitors
and the nickname/profile block for logged-in ones; markup churn means
either signal alone can be missing, so the session counts as logged in
when there is no login button or any profile element is present.
"""

import asyncio
import logging

import httpx
from bs4 import BeautifulSoup

from cafewatch.config.settings import get_settings
from cafewatch.monitor.config import MonitorConfig

logger = logging.getLogger(__name__)

LOGIN_BUTTON_SELECTOR = ".MyView-module__my_login___tOTgr"
PROFILE_SELECTORS = (
    ".MyView-module__my_account_name___n6R_V",
    "#account .MyView-module__my_nickname___IJ_wH",
    ".MyView-module__user_name___EWKUe",
)


def page_shows_login(html: str) -> bool:
    """True if the portal page renders for a logged-in session."""
    soup = BeautifulSoup(html, "html.parser")
    has_login_button = soup.select_one(LOGIN_BUTTON_SELECTOR) is not None
    has_profile = any(soup.select_one(s) is not None for s in PROFILE_SELECTORS)
    return not has_login_button or has_profile


class NaverAuthProbe:
    """
    AuthProbe implementation over httpx.

    Each check opens a short-lived client carrying the same cookie as the
    board client. Inconclusive results (logged out, HTTP error) are
    retried; the last attempt's error propagates so the cache can fail
    closed.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        url: str | None = None,
        cookie: str | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self._config = config or MonitorConfig()
        self._url = url or settings.cafe_login_check_url
        self._cookie = cookie if cookie is not None else settings.cafe_cookie
        self._user_agent = user_agent or settings.user_agent
        self._transport = transport

    async def check(self) -> bool:
        attempts = self._config.auth_probe_attempts
        delay = self._config.auth_probe_retry_delay_seconds

        for attempt in range(1, attempts + 1):
            try:
                logged_in = await self._check_once()
            except httpx.HTTPError as e:
                logger.warning("Login check attempt %d/%d failed: %s", attempt, attempts, e)
                if attempt == attempts:
                    raise
            else:
                if logged_in or attempt == attempts:
                    logger.info("Login check result: %s (attempt %d)", logged_in, attempt)
                    return logged_in
                logger.info("Login state unclear, retrying (%d/%d)", attempt, attempts)

            await asyncio.sleep(delay)

        return False

    async def _check_once(self) -> bool:
        headers = {"User-Agent": self._user_agent}
        if self._cookie:
            headers["Cookie"] = self._cookie

        timeout = httpx.Timeout(
            self._config.navigation_timeout_seconds,
            read=self._config.content_timeout_seconds,
        )
        async with httpx.AsyncClient(
            headers=headers,
            timeout=timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            response = await client.get(self._url)
            response.raise_for_status()
            return page_shows_login(response.text)

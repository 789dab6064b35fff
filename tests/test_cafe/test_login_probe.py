"""Tests for the Naver login-state probe."""

import httpx
import pytest
import respx

from cafewatch.cafe.auth_probe import NaverAuthProbe, page_shows_login

PORTAL_URL = "https://www.naver.com/"

LOGGED_IN = """
<html><body>
  <div id="account">
    <span class="MyView-module__my_nickname___IJ_wH">홍길동</span>
  </div>
</body></html>
"""

LOGGED_OUT = """
<html><body>
  <a class="MyView-module__my_login___tOTgr" href="https://nid.naver.com/nidlogin.login">로그인</a>
</body></html>
"""


class TestPageShowsLogin:
    """Tests for page_shows_login."""

    def test_profile_present(self):
        assert page_shows_login(LOGGED_IN) is True

    def test_login_button_only(self):
        assert page_shows_login(LOGGED_OUT) is False

    def test_neither_signal(self):
        """No login button rendered counts as logged in."""
        assert page_shows_login("<html><body></body></html>") is True

    def test_profile_wins_over_button(self):
        html = LOGGED_OUT.replace(
            "</body>",
            '<span class="MyView-module__user_name___EWKUe">홍길동</span></body>',
        )
        assert page_shows_login(html) is True


class TestNaverAuthProbe:
    """Tests for NaverAuthProbe.check over respx."""

    @pytest.fixture
    def probe(self, fast_config):
        return NaverAuthProbe(fast_config, url=PORTAL_URL, cookie="NID_AUT=abc")

    @pytest.mark.asyncio
    @respx.mock
    async def test_logged_in(self, probe):
        route = respx.get(PORTAL_URL).mock(return_value=httpx.Response(200, text=LOGGED_IN))

        assert await probe.check() is True
        assert route.call_count == 1
        assert route.calls.last.request.headers["Cookie"] == "NID_AUT=abc"

    @pytest.mark.asyncio
    @respx.mock
    async def test_logged_out_is_retried(self, probe, fast_config):
        route = respx.get(PORTAL_URL).mock(return_value=httpx.Response(200, text=LOGGED_OUT))

        assert await probe.check() is False
        assert route.call_count == fast_config.auth_probe_attempts

    @pytest.mark.asyncio
    @respx.mock
    async def test_recovers_after_transient_error(self, probe):
        route = respx.get(PORTAL_URL).mock(
            side_effect=[
                httpx.ConnectError("reset"),
                httpx.Response(200, text=LOGGED_IN),
            ]
        )

        assert await probe.check() is True
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_last_error_propagates(self, probe, fast_config):
        route = respx.get(PORTAL_URL).mock(return_value=httpx.Response(503))

        with pytest.raises(httpx.HTTPStatusError):
            await probe.check()
        assert route.call_count == fast_config.auth_probe_attempts

    @pytest.mark.asyncio
    @respx.mock
    async def test_without_cookie(self, fast_config):
        probe = NaverAuthProbe(fast_config, url=PORTAL_URL, cookie="")
        route = respx.get(PORTAL_URL).mock(return_value=httpx.Response(200, text=LOGGED_OUT))

        assert await probe.check() is False
        assert "Cookie" not in route.calls.last.request.headers

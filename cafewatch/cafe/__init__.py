"""Naver Cafe bindings for the scan engine: listing client and login probe."""

from cafewatch.cafe.auth_probe import NaverAuthProbe, page_shows_login
from cafewatch.cafe.client import CafeBoardClient, build_search_url, parse_listing

__all__ = [
    "CafeBoardClient",
    "NaverAuthProbe",
    "build_search_url",
    "page_shows_login",
    "parse_listing",
]

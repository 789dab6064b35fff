"""Sources: database-backed registry of monitored authors."""

from cafewatch.sources.config import SourcesConfig
from cafewatch.sources.repository import MONITORED_SOURCES_DDL, SourcesRepository
from cafewatch.sources.schemas import MonitoredSource
from cafewatch.sources.service import SourcesService

__all__ = [
    "MONITORED_SOURCES_DDL",
    "MonitoredSource",
    "SourcesConfig",
    "SourcesRepository",
    "SourcesService",
]

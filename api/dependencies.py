"""Dependency injection helpers for the FastAPI app."""

from __future__ import annotations

from functools import lru_cache
from typing import Callable

from fastapi import Depends

from core.kea_client import KeaClient
from models import KeaSettings, RunMode

ClientFactory = Callable[[RunMode], KeaClient]


@lru_cache
def get_settings() -> KeaSettings:
    """Return application settings (cached for process lifetime)."""

    return KeaSettings()


def get_client_factory(settings: KeaSettings = Depends(get_settings)) -> ClientFactory:
    def _factory(mode: RunMode) -> KeaClient:
        return KeaClient.from_settings(settings, mode=mode)

    return _factory

"""Financial settings providers.

The solver reads zakat, interest rates, the cash floor and working-capital
day counts from a FinancialSettings instance. Callers choose where it comes
from by passing a provider to the orchestrator:

    DefaultSettingsProvider   settings.json defaults
    StaticSettingsProvider    a fixed instance (tests, offline runs)
    RemoteSettingsProvider    settings API over HTTP, falls back on failure
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from projection.config import load_settings
from projection.types import FinancialSettings

logger = logging.getLogger(__name__)


class SettingsProvider(Protocol):
    async def get_settings(self) -> FinancialSettings: ...


class DefaultSettingsProvider:
    async def get_settings(self) -> FinancialSettings:
        return FinancialSettings.defaults()


class StaticSettingsProvider:
    def __init__(self, settings: FinancialSettings):
        self.settings = settings

    async def get_settings(self) -> FinancialSettings:
        return self.settings


class RemoteSettingsProvider:
    """GET {base_url}{settings_path}; expects {"success": true, "data": {...}}.

    Transport errors, error status codes and malformed payloads are logged
    and answered by the fallback provider.
    """

    def __init__(
        self,
        base_url: str,
        *,
        path: str | None = None,
        timeout: float | None = None,
        fallback: SettingsProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        remote = load_settings()["remote"]
        self.base_url = base_url.rstrip("/")
        self.path = path or remote["settings_path"]
        self.timeout = timeout if timeout is not None else float(remote["timeout_seconds"])
        self.fallback = fallback or DefaultSettingsProvider()
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    async def _fetch(self) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(self.url)
            response.raise_for_status()
            return response.json()

    async def get_settings(self) -> FinancialSettings:
        try:
            payload = await self._fetch()
        except httpx.HTTPStatusError as e:
            logger.warning("Settings API returned %s for %s; using defaults",
                           e.response.status_code, self.url)
            return await self.fallback.get_settings()
        except httpx.HTTPError as e:
            logger.warning("Settings API unreachable at %s (%s); using defaults", self.url, e)
            return await self.fallback.get_settings()
        except ValueError as e:
            logger.warning("Settings API sent invalid JSON from %s (%s); using defaults", self.url, e)
            return await self.fallback.get_settings()

        if not isinstance(payload, dict) or not payload.get("success") or not payload.get("data"):
            logger.warning("Settings API payload from %s has no data; using defaults", self.url)
            return await self.fallback.get_settings()

        try:
            return FinancialSettings.from_dict(payload["data"])
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Settings API payload from %s is malformed (%s); using defaults", self.url, e)
            return await self.fallback.get_settings()

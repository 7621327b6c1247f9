"""Shared pooled HTTP clients for upstream calls, media fetches and uploads."""

from __future__ import annotations

import asyncio
from typing import Optional, Dict

import httpx

from ..helpers import info_log, error_log
from ..config import Settings, settings as default_settings


def _connection_pool_config(config: Settings) -> Dict[str, object]:
    return {
        "limits": httpx.Limits(
            max_keepalive_connections=20,
            max_connections=100,
            keepalive_expiry=30,
        ),
        "timeout": httpx.Timeout(
            connect=10.0,
            read=config.UPSTREAM_TIMEOUT,
            write=30.0,
            pool=10.0,
        ),
        "http2": True,
    }


class NetworkManager:
    """Manage shared HTTP clients, one per outbound proxy (or none)."""

    def __init__(self, config: Optional[Settings] = None) -> None:
        self.settings = config or default_settings
        self._proxy_clients: Dict[str, httpx.AsyncClient] = {}
        self._default_client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

    async def get_or_create_client(self, proxy_url: Optional[str] = None) -> httpx.AsyncClient:
        async with self._client_lock:
            if proxy_url is None:
                if self._default_client is None or self._default_client.is_closed:
                    info_log("[CLIENT] creating default client (direct)")
                    self._default_client = httpx.AsyncClient(**_connection_pool_config(self.settings))
                return self._default_client

            client = self._proxy_clients.get(proxy_url)
            if client is None or client.is_closed:
                info_log("[CLIENT] creating client for proxy", proxy=proxy_url)
                client = httpx.AsyncClient(proxy=proxy_url, **_connection_pool_config(self.settings))
                self._proxy_clients[proxy_url] = client

            return client

    async def get_client(self) -> httpx.AsyncClient:
        """Client for the configured outbound proxy, or a direct one."""
        return await self.get_or_create_client(self.settings.outbound_proxy)

    async def cleanup_clients(self) -> None:
        async with self._client_lock:
            clients_to_close = list(self._proxy_clients.values())
            self._proxy_clients.clear()
            default = self._default_client
            self._default_client = None

        if default:
            clients_to_close.append(default)

        for client in clients_to_close:
            try:
                await client.aclose()
            except Exception as exc:  # pragma: no cover - logged only
                error_log("[CLIENT] failed to close client", error=str(exc))

        info_log("[CLIENT] all clients closed")


network_manager = NetworkManager()

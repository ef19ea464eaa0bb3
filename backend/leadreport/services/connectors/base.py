from __future__ import annotations

import httpx


class ConnectorResult(dict):
    """Light wrapper, but can add metadata later."""


class BaseConnector:
    """
    Shared plumbing for outbound HTTP connectors.

    ``transport`` is handed straight to ``httpx.AsyncClient`` so tests can
    swap in ``httpx.MockTransport`` without patching.
    """

    name: str
    timeout: float = 30

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Literal

import httpx

FetchMode = Literal["cors", "no-cors"]
ResponseType = Literal["basic", "opaque"]


@dataclass(slots=True)
class FetchResponse:
    ok: bool
    status: int
    type: ResponseType
    body: str | None = None

    def text(self) -> str:
        if self.body is None:
            raise ValueError("opaque response body cannot be read")
        return self.body

    def json(self) -> Any:
        return json.loads(self.text())


class PageFetcher:
    """Thin fetch-style wrapper around a shared ``httpx.AsyncClient``.

    ``mode="no-cors"`` is the permissive variant: redirects are followed and
    the response status is observed, but the body is never downloaded and the
    response is reported as ``opaque``.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        mode: FetchMode = "cors",
    ) -> FetchResponse:
        request = self.client.build_request(method, url, headers=headers, params=params)
        if mode == "no-cors":
            response = await self.client.send(request, stream=True, follow_redirects=True)
            await response.aclose()
            return FetchResponse(ok=response.is_success, status=response.status_code, type="opaque")

        response = await self.client.send(request, follow_redirects=True)
        return FetchResponse(
            ok=response.is_success,
            status=response.status_code,
            type="basic",
            body=response.text,
        )

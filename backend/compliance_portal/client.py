"""REST client and query cache consumed by the form layer."""

# purpose: fetch, cache and invalidate application data over the REST backend
# status: active

from __future__ import annotations

import logging
from typing import Any, Hashable, Protocol
from uuid import UUID

import requests

logger = logging.getLogger(__name__)

APPLICATION_ENDPOINTS = {
    "ibc": "/api/ibc-applications",
    "pmo": "/api/pmo-applications",
    "change_request": "/api/change-requests",
}

CacheKey = tuple[Hashable, ...]


class QueryCache(Protocol):
    def get(self, key: CacheKey) -> Any: ...

    def set(self, key: CacheKey, value: Any) -> None: ...

    def invalidate(self, key: CacheKey) -> None: ...


class InMemoryQueryCache:
    """Dictionary-backed cache; ``invalidate`` drops every key sharing the prefix."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, Any] = {}

    def get(self, key: CacheKey) -> Any:
        return self._entries.get(key)

    def set(self, key: CacheKey, value: Any) -> None:
        self._entries[key] = value

    def invalidate(self, key: CacheKey) -> None:
        size = len(key)
        for existing in [k for k in self._entries if k[:size] == key]:
            del self._entries[existing]


class ApiError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if isinstance(detail, str):
            return detail
        if isinstance(detail, list) and detail:
            first = detail[0]
            if isinstance(first, dict) and first.get("msg"):
                return str(first["msg"])
    text = getattr(response, "text", "") or ""
    return text or f"Request failed with status {response.status_code}"


class ComplianceApiClient:
    """Thin wrapper over the compliance REST API.

    ``session`` is anything exposing ``request(method, url, json=, params=,
    headers=)``: a ``requests.Session`` in production or FastAPI's
    ``TestClient`` in tests. Reads go through the query cache; writes
    invalidate the keys they affect.
    """

    def __init__(
        self,
        session: Any = None,
        *,
        base_url: str = "",
        token: str | None = None,
        cache: QueryCache | None = None,
    ) -> None:
        self.session = session if session is not None else requests.Session()
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.cache = cache if cache is not None else InMemoryQueryCache()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        response = self.session.request(
            method,
            f"{self.base_url}{path}",
            json=json,
            params=params,
            headers=self._headers(),
        )
        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning("%s %s failed with %s: %s", method, path, response.status_code, message)
            raise ApiError(response.status_code, message)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _cached(self, key: CacheKey, path: str, params: dict[str, Any] | None = None) -> Any:
        hit = self.cache.get(key)
        if hit is not None:
            return hit
        value = self.request("GET", path, params=params)
        self.cache.set(key, value)
        return value

    @staticmethod
    def _endpoint(kind: str) -> str:
        try:
            return APPLICATION_ENDPOINTS[kind]
        except KeyError:
            raise ValueError(f"Unknown application kind: {kind}") from None

    # reads

    def list_applications(self, kind: str) -> list[dict[str, Any]]:
        return self._cached((kind, "list"), self._endpoint(kind))

    def get_application(self, kind: str, application_id: UUID | str) -> dict[str, Any]:
        return self._cached(
            (kind, "application", str(application_id)),
            f"{self._endpoint(kind)}/{application_id}",
        )

    def list_principal_investigators(self) -> list[dict[str, Any]]:
        return self._cached(("principal-investigators",), "/api/principal-investigators")

    def list_research_activities(self, principal_investigator_id: UUID | str | None = None) -> list[dict[str, Any]]:
        params = {"principalInvestigatorId": str(principal_investigator_id)} if principal_investigator_id else None
        key = ("research-activities", str(principal_investigator_id) if principal_investigator_id else None)
        return self._cached(key, "/api/research-activities", params)

    def get_research_activity_staff(self, activity_id: UUID | str) -> list[dict[str, Any]]:
        return self._cached(
            ("research-activities", "staff", str(activity_id)),
            f"/api/research-activities/{activity_id}/staff",
        )

    def list_comments(self, kind: str, application_id: UUID | str) -> list[dict[str, Any]]:
        return self._cached(
            (kind, "comments", str(application_id)),
            f"{self._endpoint(kind)}/{application_id}/comments",
        )

    # writes

    def create_application(self, kind: str, payload: dict[str, Any]) -> dict[str, Any]:
        created = self.request("POST", self._endpoint(kind), json=payload)
        self.cache.invalidate((kind, "list"))
        if created and created.get("id"):
            self.cache.set((kind, "application", str(created["id"])), created)
        return created

    def update_application(self, kind: str, application_id: UUID | str, payload: dict[str, Any]) -> dict[str, Any]:
        updated = self.request("PATCH", f"{self._endpoint(kind)}/{application_id}", json=payload)
        self.cache.invalidate((kind, "application", str(application_id)))
        self.cache.invalidate((kind, "list"))
        # status changes append timeline entries
        self.cache.invalidate((kind, "comments", str(application_id)))
        return updated

    def add_comment(
        self,
        kind: str,
        application_id: UUID | str,
        comment: str,
        comment_type: str = "submission_comment",
    ) -> dict[str, Any]:
        created = self.request(
            "POST",
            f"{self._endpoint(kind)}/{application_id}/comments",
            json={"comment": comment, "commentType": comment_type},
        )
        self.cache.invalidate((kind, "comments", str(application_id)))
        return created

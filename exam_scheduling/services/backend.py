"""
HTTP client for the examboard API, which owns terms, rooms, exams and allocations.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from django.conf import settings

from exam_scheduling.entities import Allocation, Exam, Room, Term

logger = logging.getLogger(__name__)

TERMS_PATH = "/api/terms/"
ROOMS_PATH = "/api/rooms/"
EXAMS_PATH = "/api/exams/"
ALLOCATIONS_PATH = "/api/allocations/"

_DETAIL_KEYS = ("detail", "error", "message")


class BackendError(Exception):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
        field_errors: Optional[Dict[str, List[str]]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.field_errors = field_errors or {}

    def describe(self) -> str:
        """Flatten per-field validation errors into ``field: msg, msg | field: msg``."""
        if self.field_errors:
            return " | ".join(
                f"{field}: {', '.join(messages)}" for field, messages in self.field_errors.items()
            )
        return self.detail or str(self)

    def mentions(self, *words: str) -> bool:
        text = " ".join([self.describe(), " ".join(self.field_errors)]).lower()
        return all(word.lower() in text for word in words)


class BackendUnavailable(BackendError):
    """The examboard API could not be reached at all."""


def _as_messages(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        messages = []
        for item in value:
            messages.extend(_as_messages(item))
        return messages
    if isinstance(value, dict):
        return [f"{key}: {', '.join(_as_messages(item))}" for key, item in value.items()]
    return [str(value)]


def error_from_response(response: httpx.Response) -> BackendError:
    detail = None
    field_errors: Dict[str, List[str]] = {}
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in _DETAIL_KEYS:
            if payload.get(key):
                detail = str(payload[key])
                break
        field_errors = {
            str(key): _as_messages(value) for key, value in payload.items() if key not in _DETAIL_KEYS
        }
    elif isinstance(payload, list):
        field_errors = {"non_field_errors": _as_messages(payload)}
    elif response.text:
        detail = response.text[:200]

    message = f"{response.request.method} {response.request.url.path} failed with HTTP {response.status_code}"
    return BackendError(message, status_code=response.status_code, detail=detail, field_errors=field_errors)


def credential_from_request(request) -> Optional[str]:
    """The caller's ``Authorization`` header, or the ``accessToken`` cookie as a bearer token."""
    header = request.META.get("HTTP_AUTHORIZATION", "").strip()
    if header:
        return header
    cookie = request.COOKIES.get("accessToken", "").strip()
    if cookie:
        return f"Bearer {cookie}"
    return None


class ExamboardClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = token if token.lower().startswith("bearer ") else f"Bearer {token}"
        self.base_url = (base_url or settings.EXAMBOARD_API_URL).rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout if timeout is not None else settings.EXAMBOARD_API_TIMEOUT,
            transport=transport,
            follow_redirects=True,
        )

    @classmethod
    def from_request(cls, request, **kwargs) -> "ExamboardClient":
        return cls(token=credential_from_request(request), **kwargs)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ExamboardClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"Examboard API unreachable at {self.base_url}: {exc}") from exc

        if response.is_error:
            raise error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(
                f"{method} {url} returned a non-JSON body", status_code=response.status_code
            ) from exc

    def _paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Collect every page, accepting bare lists and ``{"results", "next"}`` pages."""
        results: List[Dict[str, Any]] = []
        url: Optional[str] = path
        seen = set()
        while url:
            if url in seen:
                logger.warning("Pagination loop detected at %s; stopping.", url)
                break
            seen.add(url)
            data = self._request("GET", url, params=params)
            # "next" links already carry the query string.
            params = None
            if isinstance(data, list):
                results.extend(data)
                break
            if isinstance(data, dict) and "results" in data:
                results.extend(data.get("results") or [])
                url = data.get("next")
                continue
            raise BackendError(f"Unexpected response format from {path}")
        return results

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_terms(self) -> List[Term]:
        return [Term.from_api(item) for item in self._paginate(TERMS_PATH)]

    def list_rooms(self) -> List[Room]:
        return [Room.from_api(item) for item in self._paginate(ROOMS_PATH)]

    def list_exams(self, term_id: Optional[int] = None) -> List[Exam]:
        params = {"term": term_id} if term_id is not None else None
        return [Exam.from_api(item) for item in self._paginate(EXAMS_PATH, params)]

    def list_allocations(self, exam_id: Optional[int] = None) -> List[Allocation]:
        params = {"exam": exam_id} if exam_id is not None else None
        return [Allocation.from_api(item) for item in self._paginate(ALLOCATIONS_PATH, params)]

    def ping(self) -> bool:
        """True when the API answers at all; auth failures still count as reachable."""
        try:
            self._request("GET", TERMS_PATH)
        except BackendUnavailable:
            return False
        except BackendError as exc:
            return exc.status_code is not None and exc.status_code < 500
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_exam(self, payload: Dict[str, Any]) -> Exam:
        return Exam.from_api(self._request("POST", EXAMS_PATH, json=payload) or {})

    def create_allocation(self, payload: Dict[str, Any]) -> Allocation:
        logger.debug("Creating allocation %s", payload)
        return Allocation.from_api(self._request("POST", ALLOCATIONS_PATH, json=payload) or {})

    def update_allocation(self, allocation_id: int, payload: Dict[str, Any]) -> Allocation:
        data = self._request("PATCH", f"{ALLOCATIONS_PATH}{allocation_id}/", json=payload)
        return Allocation.from_api(data or {})

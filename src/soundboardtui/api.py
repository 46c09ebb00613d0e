from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Generic, Mapping, TypeVar
from urllib.parse import urlencode

import httpx

from .models import Clip, ClipId, PlaybackParams, SortMode, parse_clip

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 0
DEFAULT_PAGE_SIZE = 20
DEFAULT_TIMEOUT = 10.0
UPLOAD_TIMEOUT = 120.0
PASSWORD_HEADER = "X-Clip-Password"

_LIST_PATHS = {
    SortMode.RECENT: "/clips",
    SortMode.POPULAR: "/clips/popular",
}

T = TypeVar("T")


class ErrorKind(Enum):
    NETWORK = "network"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER = "server"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ApiError:
    kind: ErrorKind
    message: str | None = None
    status_code: int | None = None


@dataclass(frozen=True)
class ApiResult(Generic[T]):
    value: T | None = None
    error: ApiError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ClipPage:
    content: list[Clip] = field(default_factory=list)
    page: int = DEFAULT_PAGE
    size: int = DEFAULT_PAGE_SIZE
    total_elements: int | None = None
    rejected: int = 0


@dataclass(frozen=True)
class UploadReceipt:
    id: ClipId | None
    status: str | None
    message: str | None

    @property
    def processing_failed(self) -> bool:
        return self.status == "error"


class SoundboardClient:
    """HTTP client for the soundboard API.

    Every call returns an ApiResult; transport and HTTP failures are folded
    into an ApiError instead of raising.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> SoundboardClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def list_clips(
        self,
        sort: SortMode = SortMode.RECENT,
        page: int = DEFAULT_PAGE,
        size: int = DEFAULT_PAGE_SIZE,
    ) -> ApiResult[ClipPage]:
        return self._get_page(_LIST_PATHS[sort], {"page": page, "size": size})

    def search(
        self,
        query: str,
        page: int = DEFAULT_PAGE,
        size: int = DEFAULT_PAGE_SIZE,
    ) -> ApiResult[ClipPage]:
        return self._get_page("/clips/search", {"q": query, "page": page, "size": size})

    def get_clip(self, clip_id: ClipId) -> ApiResult[Clip]:
        result = self._send("GET", f"/clips/{clip_id}")
        if result.error is not None:
            return ApiResult(error=result.error)
        clip = parse_clip(result.value)
        if clip is None:
            logger.warning("Rejected malformed clip payload for id %s", clip_id)
            return ApiResult(error=ApiError(ErrorKind.MALFORMED, "Malformed clip payload"))
        return ApiResult(value=clip)

    def upload(
        self,
        file: Path,
        title: str,
        description: str = "",
        uploaded_by: str = "anonymous",
    ) -> ApiResult[UploadReceipt]:
        content_type = mimetypes.guess_type(file.name)[0] or "application/octet-stream"
        try:
            handle = file.open("rb")
        except OSError as exc:
            return ApiResult(error=ApiError(ErrorKind.NETWORK, f"Failed to read file: {exc}"))
        with handle:
            payload = {
                "file": (file.name, handle, content_type),
                "title": title,
                "description": description,
                "uploadedBy": uploaded_by,
            }
            result = self._send("POST", "/clips/upload", payload=payload, timeout=UPLOAD_TIMEOUT)
        if result.error is not None:
            return ApiResult(error=result.error)
        data = result.value if isinstance(result.value, dict) else {}
        receipt = UploadReceipt(
            id=data.get("id"),
            status=_as_str(data.get("status")),
            message=_as_str(data.get("message")),
        )
        return ApiResult(value=receipt)

    def delete_clip(self, clip_id: ClipId, password: str) -> ApiResult[None]:
        result = self._send(
            "DELETE",
            f"/clips/{clip_id}",
            payload={"password": password},
            headers={PASSWORD_HEADER: password},
        )
        if result.error is not None:
            return ApiResult(error=result.error)
        return ApiResult()

    def _get_page(self, path: str, params: dict[str, Any]) -> ApiResult[ClipPage]:
        result = self._send("GET", path, params=params)
        if result.error is not None:
            return ApiResult(error=result.error)
        page = parse_page(result.value, params.get("page", DEFAULT_PAGE), params.get("size", DEFAULT_PAGE_SIZE))
        if page is None:
            return ApiResult(error=ApiError(ErrorKind.MALFORMED, "Unexpected listing response"))
        if page.rejected:
            logger.warning("Quarantined %d malformed clip(s) from %s", page.rejected, path)
        return ApiResult(value=page)

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        payload: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> ApiResult[Any]:
        request_kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if payload is not None:
            files, fields = _split_payload(payload)
            if files:
                request_kwargs["files"] = files
                request_kwargs["data"] = fields
            else:
                request_kwargs["json"] = fields
        if timeout is not None:
            request_kwargs["timeout"] = timeout
        logger.debug("%s %s params=%s", method, path, params)
        try:
            response = self._client.request(method, path, **request_kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return ApiResult(error=ApiError(ErrorKind.NETWORK, str(exc) or None))
        if response.is_error:
            error = _error_from_response(response)
            logger.warning("%s %s -> %s (%s)", method, path, response.status_code, error.kind.value)
            return ApiResult(error=error)
        if not response.content:
            return ApiResult()
        try:
            return ApiResult(value=response.json())
        except ValueError:
            if method == "DELETE":
                return ApiResult()
            return ApiResult(error=ApiError(ErrorKind.MALFORMED, "Response is not valid JSON", response.status_code))


def build_stream_url(base_url: str, clip_id: ClipId, params: PlaybackParams) -> str:
    query = urlencode({"speed": _format_ratio(params.speed), "pitch": _format_ratio(params.pitch)})
    return f"{base_url.rstrip('/')}/stream/{clip_id}?{query}"


def parse_page(data: Any, page: int = DEFAULT_PAGE, size: int = DEFAULT_PAGE_SIZE) -> ClipPage | None:
    """Normalize a listing response into a ClipPage.

    Accepts the paginated envelope (``{"content": [...]}``) or a bare list.
    Entries that fail validation are dropped and counted in ``rejected``.
    """
    if isinstance(data, list):
        entries: Any = data
        envelope: dict[str, Any] = {}
    elif isinstance(data, dict):
        entries = data.get("content", [])
        envelope = data
    else:
        return None
    if not isinstance(entries, list):
        return None
    clips: list[Clip] = []
    rejected = 0
    for entry in entries:
        clip = parse_clip(entry)
        if clip is None:
            rejected += 1
            continue
        clips.append(clip)
    return ClipPage(
        content=clips,
        page=_as_int(envelope.get("number"), page),
        size=_as_int(envelope.get("size"), size),
        total_elements=_as_int(envelope.get("totalElements"), None),
        rejected=rejected,
    )


def _split_payload(payload: Mapping[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    files: dict[str, Any] = {}
    fields: dict[str, Any] = {}
    for key, value in payload.items():
        if _is_file_value(value):
            files[key] = value
        else:
            fields[key] = value
    return files, fields


def _is_file_value(value: Any) -> bool:
    if hasattr(value, "read"):
        return True
    return isinstance(value, tuple) and len(value) >= 2 and hasattr(value[1], "read")


def _error_from_response(response: httpx.Response) -> ApiError:
    status = response.status_code
    if status in (401, 403):
        kind = ErrorKind.AUTH
    elif status == 404:
        kind = ErrorKind.NOT_FOUND
    elif status == 429:
        kind = ErrorKind.RATE_LIMITED
    else:
        kind = ErrorKind.SERVER
    return ApiError(kind, _server_message(response), status)


def _server_message(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        return _as_str(data.get("message"))
    return None


def _format_ratio(value: float) -> str:
    return repr(float(value))


def _as_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _as_int(value: Any, default: int | None) -> int | None:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    return default

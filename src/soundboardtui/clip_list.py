from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from .api import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, ApiResult, ClipPage, ErrorKind
from .models import Clip, ClipId, SortMode

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Failed to load clips. Make sure the API is running."
AUTH_ERROR_MESSAGE = "Incorrect password."
DELETE_ERROR_MESSAGE = "Failed to delete clip"
MISSING_PASSWORD_MESSAGE = "Please enter the password."


class ClipSource(Protocol):
    def list_clips(
        self, sort: SortMode = ..., page: int = ..., size: int = ...
    ) -> ApiResult[ClipPage]: ...

    def search(self, query: str, page: int = ..., size: int = ...) -> ApiResult[ClipPage]: ...

    def get_clip(self, clip_id: ClipId) -> ApiResult[Clip]: ...

    def delete_clip(self, clip_id: ClipId, password: str) -> ApiResult[None]: ...


class ListState(Enum):
    LOADING = "loading"
    ERROR = "error"
    EMPTY = "empty"
    POPULATED = "populated"


class DeleteOutcome(Enum):
    DELETED = "deleted"
    AUTH_FAILED = "auth_failed"
    FAILED = "failed"
    MISSING_PASSWORD = "missing_password"
    NO_PENDING = "no_pending"


@dataclass
class PendingDelete:
    clip_id: ClipId
    error: str | None = None


@dataclass(frozen=True)
class LoadRequest:
    generation: int
    sort: SortMode
    query: str | None
    page: int
    size: int


LoadDispatcher = Callable[["ClipListController"], None]


class ClipListController:
    """Owns the clip collection and the list's load and delete flows.

    Network calls are separated from state changes: ``fetch`` and
    ``send_delete`` only talk to the API, while ``begin_load``,
    ``finish_load`` and ``apply_delete_result`` mutate state. A UI can run the
    network half on a worker and hand the result back; ``load`` and
    ``confirm`` do both halves inline.
    """

    def __init__(
        self,
        source: ClipSource,
        *,
        sort: SortMode = SortMode.RECENT,
        page_size: int = DEFAULT_PAGE_SIZE,
        dispatch_load: LoadDispatcher | None = None,
    ) -> None:
        self._source = source
        self._dispatch_load = dispatch_load
        self.sort = sort
        self.page_size = page_size
        self.query: str | None = None
        self.state = ListState.LOADING
        self.clips: list[Clip] = []
        self.error: str | None = None
        self.notice: str | None = None
        self.total_elements: int | None = None
        self.pending_delete: PendingDelete | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def confirming(self) -> bool:
        return self.pending_delete is not None

    def find(self, clip_id: ClipId) -> Clip | None:
        for clip in self.clips:
            if clip.id == clip_id:
                return clip
        return None

    def reload(self) -> None:
        if self._dispatch_load is None:
            self.load()
        else:
            self._dispatch_load(self)

    def load(self) -> ListState:
        request = self.begin_load()
        self.finish_load(request.generation, self.fetch(request))
        return self.state

    def begin_load(self) -> LoadRequest:
        self._generation += 1
        self.state = ListState.LOADING
        return LoadRequest(
            generation=self._generation,
            sort=self.sort,
            query=self.query,
            page=DEFAULT_PAGE,
            size=self.page_size,
        )

    def fetch(self, request: LoadRequest) -> ApiResult[ClipPage]:
        if request.query:
            return self._source.search(request.query, request.page, request.size)
        return self._source.list_clips(request.sort, request.page, request.size)

    def finish_load(self, generation: int, result: ApiResult[ClipPage]) -> bool:
        if generation != self._generation:
            logger.debug("Dropping stale load result %d (current %d)", generation, self._generation)
            return False
        if result.error is not None or result.value is None:
            logger.warning("Clip listing failed: %s", result.error)
            self.clips = []
            self.total_elements = None
            self.error = LOAD_ERROR_MESSAGE
            self.state = ListState.ERROR
            return True
        page = result.value
        self.clips = list(page.content)
        self.total_elements = page.total_elements
        self.error = None
        self.state = ListState.POPULATED if self.clips else ListState.EMPTY
        return True

    def set_sort(self, mode: SortMode) -> bool:
        if mode is self.sort:
            return False
        self.sort = mode
        self.reload()
        return True

    def toggle_sort(self) -> SortMode:
        self.set_sort(self.sort.toggled())
        return self.sort

    def set_query(self, query: str | None) -> bool:
        query = (query or "").strip() or None
        if query == self.query:
            return False
        self.query = query
        self.reload()
        return True

    def refresh_clip(self, clip_id: ClipId) -> Clip | None:
        result = self._source.get_clip(clip_id)
        return self.apply_clip_refresh(clip_id, result)

    def apply_clip_refresh(self, clip_id: ClipId, result: ApiResult[Clip]) -> Clip | None:
        if result.error is not None or result.value is None:
            if result.error is not None and result.error.kind is ErrorKind.NOT_FOUND:
                self._remove(clip_id)
                self.notice = "Clip no longer exists."
            else:
                self.notice = "Failed to refresh clip."
            return None
        fresh = result.value
        self.clips = [fresh if clip.id == clip_id else clip for clip in self.clips]
        return fresh

    def rename_local(self, clip_id: ClipId, title: str) -> bool:
        """Change a clip's title for this session only; reloads restore it."""
        title = title.strip()
        if not title:
            return False
        renamed = False
        updated: list[Clip] = []
        for clip in self.clips:
            if clip.id == clip_id:
                clip = clip.with_title(title)
                renamed = True
            updated.append(clip)
        self.clips = updated
        return renamed

    def request_delete(self, clip_id: ClipId) -> PendingDelete:
        self.pending_delete = PendingDelete(clip_id=clip_id)
        self.notice = None
        return self.pending_delete

    def confirm(self, password: str) -> DeleteOutcome:
        pending = self.pending_delete
        if pending is None:
            return DeleteOutcome.NO_PENDING
        if not password:
            pending.error = MISSING_PASSWORD_MESSAGE
            return DeleteOutcome.MISSING_PASSWORD
        result = self.send_delete(pending.clip_id, password)
        return self.apply_delete_result(pending.clip_id, result)

    def send_delete(self, clip_id: ClipId, password: str) -> ApiResult[None]:
        return self._source.delete_clip(clip_id, password)

    def apply_delete_result(self, clip_id: ClipId, result: ApiResult[None]) -> DeleteOutcome:
        pending = self.pending_delete
        current = pending is not None and pending.clip_id == clip_id
        if result.error is None:
            self._remove(clip_id)
            if current:
                self.pending_delete = None
            logger.info("Deleted clip %s", clip_id)
            return DeleteOutcome.DELETED
        if result.error.kind is ErrorKind.AUTH:
            if current and pending is not None:
                pending.error = AUTH_ERROR_MESSAGE
            logger.info("Delete of clip %s rejected: bad password", clip_id)
            return DeleteOutcome.AUTH_FAILED
        if current:
            self.pending_delete = None
        self.notice = DELETE_ERROR_MESSAGE
        logger.warning("Delete of clip %s failed: %s", clip_id, result.error)
        return DeleteOutcome.FAILED

    def cancel(self) -> None:
        self.pending_delete = None

    def _remove(self, clip_id: ClipId) -> None:
        remaining = [clip for clip in self.clips if clip.id != clip_id]
        if self.total_elements is not None and len(remaining) < len(self.clips):
            self.total_elements = max(0, self.total_elements - 1)
        self.clips = remaining
        if self.state in (ListState.POPULATED, ListState.EMPTY):
            self.state = ListState.POPULATED if self.clips else ListState.EMPTY

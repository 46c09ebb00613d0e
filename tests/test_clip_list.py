from __future__ import annotations

from soundboardtui.api import ApiError, ApiResult, ClipPage, ErrorKind
from soundboardtui.clip_list import (
    AUTH_ERROR_MESSAGE,
    DELETE_ERROR_MESSAGE,
    LOAD_ERROR_MESSAGE,
    MISSING_PASSWORD_MESSAGE,
    ClipListController,
    DeleteOutcome,
    ListState,
)
from soundboardtui.models import Clip, SortMode


def _clip(clip_id: int, title: str | None = None, processed: bool = True) -> Clip:
    return Clip(id=clip_id, title=title or f"Clip {clip_id}", is_processed=processed)


class FakeSource:
    def __init__(self, clips: list[Clip] | None = None) -> None:
        self.clips = list(clips or [])
        self.calls: list[tuple] = []
        self.fail_with: ApiError | None = None
        self.password = "secret"
        self.delete_error: ApiError | None = None

    def list_clips(self, sort: SortMode = SortMode.RECENT, page: int = 0, size: int = 20) -> ApiResult[ClipPage]:
        self.calls.append(("list", sort, page, size))
        if self.fail_with is not None:
            return ApiResult(error=self.fail_with)
        return ApiResult(value=ClipPage(content=list(self.clips), total_elements=len(self.clips)))

    def search(self, query: str, page: int = 0, size: int = 20) -> ApiResult[ClipPage]:
        self.calls.append(("search", query, page, size))
        matches = [clip for clip in self.clips if query.lower() in clip.title.lower()]
        return ApiResult(value=ClipPage(content=matches))

    def get_clip(self, clip_id) -> ApiResult[Clip]:
        self.calls.append(("get", clip_id))
        for clip in self.clips:
            if clip.id == clip_id:
                return ApiResult(value=clip)
        return ApiResult(error=ApiError(ErrorKind.NOT_FOUND, status_code=404))

    def delete_clip(self, clip_id, password: str) -> ApiResult[None]:
        self.calls.append(("delete", clip_id, password))
        if self.delete_error is not None:
            return ApiResult(error=self.delete_error)
        if password != self.password:
            return ApiResult(error=ApiError(ErrorKind.AUTH, status_code=401))
        self.clips = [clip for clip in self.clips if clip.id != clip_id]
        return ApiResult()


def _loaded(clips: list[Clip], **kwargs) -> tuple[ClipListController, FakeSource]:
    source = FakeSource(clips)
    controller = ClipListController(source, **kwargs)
    controller.load()
    source.calls.clear()
    return controller, source


def test_popular_listing_is_populated() -> None:
    source = FakeSource([_clip(1), _clip(2)])
    controller = ClipListController(source, sort=SortMode.POPULAR)
    assert controller.state is ListState.LOADING
    assert controller.load() is ListState.POPULATED
    assert [clip.id for clip in controller.clips] == [1, 2]
    assert controller.error is None
    assert source.calls == [("list", SortMode.POPULAR, 0, 20)]


def test_empty_listing() -> None:
    controller, _ = _loaded([])
    assert controller.state is ListState.EMPTY
    assert controller.clips == []


def test_failed_load_clears_collection_and_sets_error() -> None:
    controller, source = _loaded([_clip(1), _clip(2)])
    source.fail_with = ApiError(ErrorKind.NETWORK)
    controller.reload()
    assert controller.state is ListState.ERROR
    assert controller.clips == []
    assert controller.error == LOAD_ERROR_MESSAGE


def test_successful_reload_clears_error() -> None:
    controller, source = _loaded([_clip(1)])
    source.fail_with = ApiError(ErrorKind.SERVER, status_code=500)
    controller.load()
    source.fail_with = None
    controller.load()
    assert controller.state is ListState.POPULATED
    assert controller.error is None


def test_toggle_sort_fetches_once_with_new_mode() -> None:
    controller, source = _loaded([_clip(1)])
    assert controller.toggle_sort() is SortMode.POPULAR
    assert source.calls == [("list", SortMode.POPULAR, 0, 20)]


def test_set_sort_to_current_mode_does_not_fetch() -> None:
    controller, source = _loaded([_clip(1)])
    assert not controller.set_sort(SortMode.RECENT)
    assert source.calls == []


def test_page_size_is_forwarded() -> None:
    controller, source = _loaded([_clip(1)], page_size=5)
    controller.reload()
    assert source.calls == [("list", SortMode.RECENT, 0, 5)]


def test_query_switches_to_search_and_back() -> None:
    controller, source = _loaded([_clip(1, "Dog bark"), _clip(2, "Cat")])
    assert controller.set_query("  bark ")
    assert controller.query == "bark"
    assert [clip.id for clip in controller.clips] == [1]
    assert not controller.set_query("bark")
    assert controller.set_query("")
    assert controller.query is None
    assert source.calls == [("search", "bark", 0, 20), ("list", SortMode.RECENT, 0, 20)]


def test_stale_load_results_are_dropped() -> None:
    controller, _ = _loaded([_clip(1)])
    first = controller.begin_load()
    second = controller.begin_load()
    fresh = ApiResult(value=ClipPage(content=[_clip(9)]))
    stale = ApiResult(value=ClipPage(content=[_clip(8)]))
    assert controller.finish_load(second.generation, fresh)
    assert not controller.finish_load(first.generation, stale)
    assert [clip.id for clip in controller.clips] == [9]


def test_dispatcher_receives_reloads() -> None:
    dispatched: list[ClipListController] = []
    source = FakeSource([_clip(1)])
    controller = ClipListController(source, dispatch_load=dispatched.append)
    controller.toggle_sort()
    assert dispatched == [controller]
    assert source.calls == []


def test_delete_with_wrong_then_correct_password() -> None:
    controller, source = _loaded([_clip(7), _clip(8)])
    pending = controller.request_delete(7)
    assert controller.confirming
    assert pending.clip_id == 7

    assert controller.confirm("wrong") is DeleteOutcome.AUTH_FAILED
    assert controller.confirming
    assert controller.pending_delete is not None
    assert controller.pending_delete.error == AUTH_ERROR_MESSAGE
    assert [clip.id for clip in controller.clips] == [7, 8]

    assert controller.confirm("secret") is DeleteOutcome.DELETED
    assert not controller.confirming
    assert [clip.id for clip in controller.clips] == [8]
    assert source.calls == [("delete", 7, "wrong"), ("delete", 7, "secret")]


def test_delete_last_clip_shows_empty_state() -> None:
    controller, _ = _loaded([_clip(7)])
    controller.request_delete(7)
    controller.confirm("secret")
    assert controller.state is ListState.EMPTY


def test_delete_requires_password() -> None:
    controller, source = _loaded([_clip(7)])
    controller.request_delete(7)
    assert controller.confirm("") is DeleteOutcome.MISSING_PASSWORD
    assert controller.pending_delete is not None
    assert controller.pending_delete.error == MISSING_PASSWORD_MESSAGE
    assert source.calls == []


def test_delete_server_failure_closes_prompt() -> None:
    controller, source = _loaded([_clip(7)])
    source.delete_error = ApiError(ErrorKind.SERVER, status_code=500)
    controller.request_delete(7)
    assert controller.confirm("secret") is DeleteOutcome.FAILED
    assert not controller.confirming
    assert controller.notice == DELETE_ERROR_MESSAGE
    assert [clip.id for clip in controller.clips] == [7]


def test_confirm_without_pending_delete() -> None:
    controller, source = _loaded([_clip(7)])
    assert controller.confirm("secret") is DeleteOutcome.NO_PENDING
    assert source.calls == []


def test_cancel_is_idempotent() -> None:
    controller, source = _loaded([_clip(7)])
    controller.request_delete(7)
    controller.cancel()
    controller.cancel()
    assert not controller.confirming
    assert [clip.id for clip in controller.clips] == [7]
    assert source.calls == []


def test_rename_local_is_session_only() -> None:
    controller, source = _loaded([_clip(1, "Old")])
    assert controller.rename_local(1, "  New ")
    assert controller.clips[0].title == "New"
    assert not controller.rename_local(1, "   ")
    assert not controller.rename_local(99, "Ghost")
    assert source.calls == []
    controller.load()
    assert controller.clips[0].title == "Old"


def test_refresh_clip_replaces_entry() -> None:
    controller, source = _loaded([_clip(1, processed=False), _clip(2)])
    source.clips[0] = _clip(1, processed=True)
    fresh = controller.refresh_clip(1)
    assert fresh is not None
    assert fresh.is_processed
    assert controller.find(1) == fresh


def test_refresh_missing_clip_removes_it() -> None:
    controller, source = _loaded([_clip(1), _clip(2)])
    source.clips = [_clip(2)]
    assert controller.refresh_clip(1) is None
    assert [clip.id for clip in controller.clips] == [2]
    assert controller.notice == "Clip no longer exists."


def test_delete_decrements_reported_total() -> None:
    controller, _ = _loaded([_clip(7), _clip(8)])
    assert controller.total_elements == 2
    controller.request_delete(7)
    controller.confirm("secret")
    assert controller.total_elements == 1

from __future__ import annotations

import argparse
import logging
import sys
import threading
from dataclasses import replace
from typing import Callable

from textual import events
from textual.app import App, ComposeResult
from textual.containers import Vertical, VerticalScroll
from textual.errors import NoWidget
from textual.theme import Theme
from textual.widgets import Footer, Label, Static

from .api import DEFAULT_PAGE_SIZE, ApiResult, ClipPage, SoundboardClient, UploadReceipt
from .clip_list import ClipListController, DeleteOutcome, ListState
from .config import AppConfig, load_config, resolve_base_url, resolve_sort, save_config
from .errors import NotReadyError, PlaybackError
from .models import Clip, ClipId, SortMode
from .paths import config_path, log_path
from .playback import PlaybackManager, ProcessLauncher
from .ui.clip_item import ClipItem, OutsideClickHub
from .ui.screens import ConfirmDeleteScreen, HelpScreen, SearchScreen, UploadScreen
from .upload import DEFAULT_UPLOADER, UploadCoordinator, UploadRequest

logger = logging.getLogger(__name__)

TIP_TEXT = "Tip: tap a clip to play, hold it to open its panel. Press ? for help."
EMPTY_TEXT = "No clips yet!\nPress u to upload your first clip."
HELP_TEXT = """Keyboard shortcuts
q  quit
r  reload clips
s  toggle sort (recent / popular)
/  search clips
u  upload a clip
x  stop playback
g  refresh the focused clip from the server
?  help

Clip (focused)
enter  play with current speed/pitch
space  open/close the clip panel
escape  close the clip panel
[ / ]  speed down/up
{ / }  pitch down/up
0  reset speed and pitch
d  delete (asks for the password)

Mouse
click  play the clip
hold  open the clip panel
click outside  close the clip panel

Titles edited in the panel only last for this session.
"""

SOUNDBOARD_THEME = Theme(
    name="soundboard",
    primary="#34A853",
    secondary="#13B1EC",
    accent="#49C867",
    warning="#e0af68",
    error="#f7768e",
    success="#9ece6a",
    foreground="#c0caf5",
    background="#1a1b26",
    surface="#1f2335",
    panel="#24283b",
    boost="#2f334d",
    variables={
        "footer-key-foreground": "#49C867",
        "button-focus-text-style": "bold",
    },
)


class SoundboardApp(App):
    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "reload", "Reload"),
        ("s", "toggle_sort", "Sort"),
        ("/", "search", "Search"),
        ("u", "upload", "Upload"),
        ("x", "stop", "Stop"),
        ("g", "refresh_clip", "Refresh Clip"),
        ("?", "help", "Help"),
    ]

    CSS = """
    Screen {
        background: $background;
        color: $text;
    }

    #root {
        height: 100%;
        padding: 0 1;
    }

    #status {
        height: 1;
        color: $secondary;
    }

    #banner {
        height: auto;
        display: none;
        color: $error;
        border: round $error;
        padding: 0 1;
    }

    #banner.visible {
        display: block;
    }

    #clip_list {
        height: 1fr;
    }

    .list-message {
        color: $text-muted;
        padding: 1 2;
    }

    #message {
        height: auto;
        color: $warning;
    }

    #tip_bar {
        height: 1;
        color: $text-muted;
    }
    """

    def __init__(
        self,
        client: SoundboardClient,
        *,
        sort: SortMode = SortMode.RECENT,
        page_size: int | None = None,
        playback: PlaybackManager | None = None,
        config: AppConfig | None = None,
        save_settings: Callable[[AppConfig], str | None] | None = None,
    ) -> None:
        super().__init__()
        self.client = client
        self.config = config or AppConfig()
        self._save_settings = save_settings
        self.controller = ClipListController(
            client,
            sort=sort,
            page_size=page_size or DEFAULT_PAGE_SIZE,
            dispatch_load=self._dispatch_load,
        )
        self.playback = playback or PlaybackManager(client.base_url)
        self.uploads = UploadCoordinator(
            client,
            on_success=self.controller.reload,
            default_uploader=self.config.uploaded_by,
        )
        self.outside_clicks = OutsideClickHub()
        self._items: dict[ClipId, ClipItem] = {}
        self._delete_screen: ConfirmDeleteScreen | None = None
        self._upload_screen: UploadScreen | None = None
        self._status: Label | None = None
        self._banner: Static | None = None
        self._clip_list: VerticalScroll | None = None
        self._message: Static | None = None
        self.register_theme(SOUNDBOARD_THEME)
        self.theme = SOUNDBOARD_THEME.name

    def compose(self) -> ComposeResult:
        with Vertical(id="root"):
            yield Label("", id="status")
            yield Static("", id="banner")
            yield VerticalScroll(id="clip_list")
            yield Static("", id="message")
            yield Static(TIP_TEXT, id="tip_bar")
        yield Footer()

    def on_mount(self) -> None:
        self._status = self.query_one("#status", Label)
        self._banner = self.query_one("#banner", Static)
        self._clip_list = self.query_one("#clip_list", VerticalScroll)
        self._message = self.query_one("#message", Static)
        self.controller.reload()

    def on_unmount(self) -> None:
        self.playback.stop_current()
        self.client.close()

    def on_mouse_down(self, event: events.MouseDown) -> None:
        if not len(self.outside_clicks):
            return
        try:
            target, _ = self.screen.get_widget_at(event.screen_x, event.screen_y)
        except NoWidget:
            target = None
        self.outside_clicks.dispatch(target)

    def action_help(self) -> None:
        self.push_screen(HelpScreen(HELP_TEXT))

    def action_reload(self) -> None:
        self.controller.reload()

    def action_toggle_sort(self) -> None:
        mode = self.controller.toggle_sort()
        self._remember(default_sort=mode.value)
        self._set_message(f"Sorted by {mode.value}.")

    def action_search(self) -> None:
        self.push_screen(SearchScreen(self.controller.query), self._handle_search)

    def action_upload(self) -> None:
        screen = UploadScreen(self.uploads, self._start_upload)
        self._upload_screen = screen
        self.push_screen(screen, self._handle_upload_closed)

    def action_stop(self) -> None:
        self.playback.stop_current()
        self._sync_playing()
        self._set_message("Stopped.")

    def action_refresh_clip(self) -> None:
        item = self.focused
        if not isinstance(item, ClipItem):
            self._set_message("No clip focused.")
            return
        clip_id = item.clip.id

        def worker() -> None:
            result = self.client.get_clip(clip_id)
            self.call_from_thread(self._apply_clip_refresh, clip_id, result)

        threading.Thread(target=worker, daemon=True).start()

    def on_clip_item_play_requested(self, message: ClipItem.PlayRequested) -> None:
        clip = self.controller.find(message.clip.id) or message.clip
        try:
            self.playback.play(clip, message.params)
        except NotReadyError as exc:
            self._set_message(str(exc))
            return
        except PlaybackError as exc:
            self._set_message(str(exc))
            self._sync_playing()
            return
        self._sync_playing()
        self._set_message(
            f"Playing: {clip.title} (speed {message.params.speed:.2f}x, pitch {message.params.pitch:.2f}x)"
        )

    def on_clip_item_delete_requested(self, message: ClipItem.DeleteRequested) -> None:
        clip = self.controller.find(message.clip_id)
        if clip is None:
            return
        self.controller.request_delete(clip.id)
        screen = ConfirmDeleteScreen(clip.title, self._submit_delete, self.controller.cancel)
        self._delete_screen = screen
        self.push_screen(screen, self._handle_delete_closed)

    def on_clip_item_rename_requested(self, message: ClipItem.RenameRequested) -> None:
        if self.controller.rename_local(message.clip_id, message.title):
            self._refresh_items()
            self._set_message(f"Renamed to \"{message.title}\" (local only, resets on reload).")

    def _dispatch_load(self, controller: ClipListController) -> None:
        request = controller.begin_load()
        self._render()

        def worker() -> None:
            result = controller.fetch(request)
            self.call_from_thread(self._apply_load_result, request.generation, result)

        threading.Thread(target=worker, daemon=True).start()

    def _apply_load_result(self, generation: int, result: ApiResult[ClipPage]) -> None:
        if self.controller.finish_load(generation, result):
            self._render()

    def _apply_clip_refresh(self, clip_id: ClipId, result: ApiResult[Clip]) -> None:
        fresh = self.controller.apply_clip_refresh(clip_id, result)
        if fresh is None:
            self._set_message(self.controller.notice or "")
            self._prune_items()
            return
        self._refresh_items()
        self._set_message(f"Refreshed: {fresh.title}")

    def _handle_search(self, query: str | None) -> None:
        if query is None:
            return
        if not self.controller.set_query(query):
            self._set_message("Search unchanged.")

    def _submit_delete(self, password: str) -> None:
        pending = self.controller.pending_delete
        screen = self._delete_screen
        if pending is None or screen is None:
            return
        if not password:
            self.controller.confirm(password)
            screen.show_error(pending.error)
            return
        screen.set_busy(True)
        clip_id = pending.clip_id

        def worker() -> None:
            result = self.controller.send_delete(clip_id, password)
            self.call_from_thread(self._apply_delete_result, clip_id, result)

        threading.Thread(target=worker, daemon=True).start()

    def _apply_delete_result(self, clip_id: ClipId, result: ApiResult[None]) -> None:
        outcome = self.controller.apply_delete_result(clip_id, result)
        screen = self._delete_screen
        if outcome is DeleteOutcome.AUTH_FAILED:
            if screen is not None and self.controller.pending_delete is not None:
                screen.set_busy(False)
                screen.show_error(self.controller.pending_delete.error)
            return
        if screen is not None and screen.is_attached:
            screen.dismiss(outcome is DeleteOutcome.DELETED)
        if outcome is DeleteOutcome.DELETED:
            self._set_message("Clip deleted.")
        else:
            self._set_message(self.controller.notice or "")
        self._prune_items()

    def _handle_delete_closed(self, deleted: bool | None) -> None:
        self._delete_screen = None
        if not deleted:
            self.controller.cancel()

    def _start_upload(self, request: UploadRequest) -> None:
        def worker() -> None:
            result = self.uploads.send(request)
            self.call_from_thread(self._apply_upload_result, request, result)

        threading.Thread(target=worker, daemon=True).start()

    def _apply_upload_result(self, request: UploadRequest, result: ApiResult[UploadReceipt]) -> None:
        receipt = self.uploads.apply_result(result)
        screen = self._upload_screen
        if screen is not None and screen.is_attached:
            screen.finish(None if receipt is not None else self.uploads.error)
        if receipt is None:
            return
        if request.uploaded_by != DEFAULT_UPLOADER:
            self.uploads.default_uploader = request.uploaded_by
            self._remember(uploaded_by=request.uploaded_by)
        self._set_message(self.uploads.notice or "Upload complete.")

    def _handle_upload_closed(self, uploaded: bool | None) -> None:
        self._upload_screen = None

    def _render(self) -> None:
        self._update_status()
        self._update_banner()
        list_view = self._clip_list
        if list_view is None:
            return
        state = self.controller.state
        if state is ListState.POPULATED:
            self._render_items(list_view)
            return
        self._items = {}
        list_view.remove_children()
        if state is ListState.LOADING:
            list_view.mount(Static("Loading clips...", classes="list-message"))
        elif state is ListState.EMPTY:
            list_view.mount(Static(self._empty_text(), classes="list-message"))

    def _prune_items(self) -> None:
        """Drop widgets whose clip left the collection; the rest keep their state."""
        if self.controller.state is not ListState.POPULATED:
            self._render()
            return
        self._update_status()
        live = {clip.id for clip in self.controller.clips}
        for clip_id in [key for key in self._items if key not in live]:
            self._items.pop(clip_id).remove()

    def _render_items(self, list_view: VerticalScroll) -> None:
        list_view.remove_children()
        current = self.playback.current_clip
        self._items = {}
        items = []
        for clip in self.controller.clips:
            playing = current is not None and current.id == clip.id
            item = ClipItem(clip, self.outside_clicks, playing=playing)
            self._items[clip.id] = item
            items.append(item)
        list_view.mount(*items)

    def _refresh_items(self) -> None:
        for clip in self.controller.clips:
            item = self._items.get(clip.id)
            if item is not None:
                item.set_clip(clip)

    def _sync_playing(self) -> None:
        current = self.playback.current_clip
        for clip_id, item in self._items.items():
            item.set_playing(current is not None and current.id == clip_id)

    def _empty_text(self) -> str:
        if self.controller.query:
            return f"No clips match \"{self.controller.query}\"."
        return EMPTY_TEXT

    def _update_status(self) -> None:
        if self._status is None:
            return
        controller = self.controller
        parts = [f"Soundboard  |  sort: {controller.sort.value}"]
        if controller.query:
            parts.append(f"search: {controller.query}")
        if controller.state is ListState.LOADING:
            parts.append("loading...")
        elif controller.state in (ListState.POPULATED, ListState.EMPTY):
            count = len(controller.clips)
            total = controller.total_elements
            label = f"{count} clip{'s' if count != 1 else ''}"
            if total is not None and total > count:
                label = f"{count} of {total} clips"
            parts.append(label)
        parts.append(self.client.base_url)
        self._status.update("  |  ".join(parts))

    def _update_banner(self) -> None:
        if self._banner is None:
            return
        if self.controller.state is ListState.ERROR and self.controller.error:
            self._banner.update(self.controller.error)
            self._banner.add_class("visible")
        else:
            self._banner.update("")
            self._banner.remove_class("visible")

    def _remember(self, **changes: str) -> None:
        updated = replace(self.config, **changes)
        if updated == self.config:
            return
        self.config = updated
        if self._save_settings is None:
            return
        error = self._save_settings(updated)
        if error:
            logger.warning(error)

    def _set_message(self, message: str) -> None:
        if self._message is None:
            return
        self._message.update(message)


def _cli_help_text() -> str:
    return (
        "soundboardtui [--api-url URL] [--sort recent|popular] [--page-size N] [--debug]\n"
        "\n"
        "Browse, play, upload and delete soundboard clips from the terminal.\n"
        "\n"
        f"Config: {config_path()}\n"
        f"Log: {log_path()}\n"
        "API URL: --api-url, then $SOUNDBOARD_API_URL, then api_base_url in the config.\n"
    )


def _setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(log_path(), encoding="utf-8")],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="soundboardtui")
    parser.add_argument("--api-url", help="Base URL of the soundboard API")
    parser.add_argument("--sort", choices=[mode.value for mode in SortMode], help="Initial sort order")
    parser.add_argument("--page-size", type=int, help="Clips per page")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser


def main() -> None:
    if any(arg in {"-help", "--help", "-h"} for arg in sys.argv[1:]):
        print(_cli_help_text())
        return
    parser = _build_parser()
    args = parser.parse_args()
    if args.page_size is not None and args.page_size <= 0:
        parser.error("--page-size must be positive")
    _setup_logging(args.debug)
    config, error = load_config()
    if error:
        logger.warning(error)
    base_url = resolve_base_url(config, override=args.api_url)
    sort = SortMode.parse(args.sort) if args.sort else resolve_sort(config)
    logger.info("Starting soundboardtui against %s", base_url)
    client = SoundboardClient(base_url)
    app = SoundboardApp(
        client,
        sort=sort or SortMode.RECENT,
        page_size=args.page_size or config.page_size,
        playback=PlaybackManager(base_url, ProcessLauncher(config.player_command)),
        config=config,
        save_settings=None if error else save_config,
    )
    app.run()

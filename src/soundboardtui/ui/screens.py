from __future__ import annotations

from pathlib import Path
from typing import Callable

from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static

from ..errors import UploadValidationError
from ..upload import UploadCoordinator, UploadRequest

_DIALOG_CSS = """
    {name} {{
        align: center middle;
        background: $surface 80%;
    }}

    #{dialog} {{
        width: 70%;
        max-width: 80;
        height: auto;
        padding: 1 2;
        border: heavy $accent;
        background: $panel;
    }}

    #{dialog} .dialog-error {{
        color: $error;
        height: auto;
    }}

    #{dialog} .dialog-hint {{
        color: $text-muted;
        height: auto;
    }}
"""


class HelpScreen(ModalScreen[None]):
    """Scrollable keyboard and mouse reference."""

    BINDINGS = [("escape", "close", "Close")]

    CSS = _DIALOG_CSS.format(name="HelpScreen", dialog="help_dialog") + """
    #help_dialog {
        height: 80%;
    }

    #help_body {
        height: 1fr;
    }
    """

    def __init__(self, help_text: str) -> None:
        super().__init__()
        self._help_text = help_text

    def compose(self) -> ComposeResult:
        with Vertical(id="help_dialog"):
            with VerticalScroll(id="help_body"):
                yield Static(self._help_text, markup=False)
            yield Button("Close", id="help_dismiss")

    def on_mount(self) -> None:
        self.query_one("#help_body", VerticalScroll).focus()

    def action_close(self) -> None:
        self.dismiss(None)

    def on_key(self, event: events.Key) -> None:
        if event.character == "?":
            event.stop()
            self.action_close()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "help_dismiss":
            self.action_close()


class SearchScreen(ModalScreen[str | None]):
    """Ask for a search query; an empty query clears the current search."""

    BINDINGS = [("escape", "cancel", "Cancel")]

    CSS = _DIALOG_CSS.format(name="SearchScreen", dialog="search_dialog")

    def __init__(self, current: str | None) -> None:
        super().__init__()
        self._current = current or ""

    def compose(self) -> ComposeResult:
        with Vertical(id="search_dialog"):
            yield Label("Search clips")
            yield Input(value=self._current, placeholder="Title or description", id="search_input")
            yield Static("Leave blank to show all clips.", classes="dialog-hint")
            with Horizontal():
                yield Button("Search", id="search_apply", variant="primary")
                yield Button("Cancel", id="search_cancel")

    def on_mount(self) -> None:
        self.query_one("#search_input", Input).focus()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "search_cancel":
            self.dismiss(None)
        elif event.button.id == "search_apply":
            self._submit()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "search_input":
            self._submit()

    def _submit(self) -> None:
        self.dismiss(self.query_one("#search_input", Input).value.strip())


class ConfirmDeleteScreen(ModalScreen[bool]):
    """Password challenge for deleting a clip.

    The screen stays open after a rejected password so the user can retry;
    the app closes it on success, on an unexpected failure, or on cancel.
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    CSS = _DIALOG_CSS.format(name="ConfirmDeleteScreen", dialog="delete_dialog")

    def __init__(
        self,
        title: str,
        on_submit: Callable[[str], None],
        on_cancel: Callable[[], None],
    ) -> None:
        super().__init__()
        self._title = title
        self._on_submit = on_submit
        self._on_cancel = on_cancel

    def compose(self) -> ComposeResult:
        with Vertical(id="delete_dialog"):
            yield Label(f"Delete \"{self._title}\"?")
            yield Static("Are you sure you want to delete this clip?", classes="dialog-hint")
            yield Input(password=True, placeholder="Password", id="delete_password")
            yield Label("", id="delete_error", classes="dialog-error")
            with Horizontal():
                yield Button("Delete", id="delete_confirm", variant="error")
                yield Button("Cancel", id="delete_cancel")

    def on_mount(self) -> None:
        self.query_one("#delete_password", Input).focus()

    def action_cancel(self) -> None:
        self._on_cancel()
        self.dismiss(False)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "delete_cancel":
            self.action_cancel()
        elif event.button.id == "delete_confirm":
            self._submit()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "delete_password":
            self._submit()

    def show_error(self, message: str | None) -> None:
        self.query_one("#delete_error", Label).update(message or "")
        password = self.query_one("#delete_password", Input)
        password.value = ""
        password.focus()

    def set_busy(self, busy: bool) -> None:
        self.query_one("#delete_confirm", Button).disabled = busy

    def _submit(self) -> None:
        self._on_submit(self.query_one("#delete_password", Input).value)


class UploadScreen(ModalScreen[bool]):
    """Form for a new upload backed by an UploadCoordinator.

    Validation happens here; the network call is handed to ``start_upload``
    and its outcome comes back through ``finish``.
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    CSS = _DIALOG_CSS.format(name="UploadScreen", dialog="upload_dialog")

    def __init__(
        self,
        coordinator: UploadCoordinator,
        start_upload: Callable[[UploadRequest], None],
    ) -> None:
        super().__init__()
        self._coordinator = coordinator
        self._start_upload = start_upload

    def compose(self) -> ComposeResult:
        pending = self._coordinator.open()
        with Vertical(id="upload_dialog"):
            yield Label("Upload Clip")
            yield Label("Video/Audio File *")
            yield Input(
                value=str(pending.file) if pending.file else "",
                placeholder="Path to a video or audio file",
                id="upload_file",
            )
            yield Static("", id="upload_file_info", classes="dialog-hint")
            yield Label("Title *")
            yield Input(value=pending.title, placeholder="My funny moment", id="upload_title")
            yield Label("Description")
            yield Input(value=pending.description, id="upload_description")
            yield Label("Your Name")
            yield Input(value=pending.uploaded_by, placeholder="anonymous", id="upload_by")
            yield Label("", id="upload_error", classes="dialog-error")
            with Horizontal():
                yield Button("Upload", id="upload_submit", variant="primary")
                yield Button("Cancel", id="upload_cancel")

    def on_mount(self) -> None:
        self.query_one("#upload_file", Input).focus()

    def action_cancel(self) -> None:
        self._coordinator.cancel()
        self.dismiss(False)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "upload_cancel":
            self.action_cancel()
        elif event.button.id == "upload_submit":
            self._submit()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "upload_title":
            self._coordinator.set_fields(title=event.value)
        elif event.input.id == "upload_description":
            self._coordinator.set_fields(description=event.value)
        elif event.input.id == "upload_by":
            self._coordinator.set_fields(uploaded_by=event.value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "upload_file":
            self._select_file(event.value)
            self.query_one("#upload_title", Input).focus()
        else:
            self._submit()

    def on_descendant_blur(self, event: events.DescendantBlur) -> None:
        if getattr(event.widget, "id", None) == "upload_file":
            self._select_file(self.query_one("#upload_file", Input).value)

    def finish(self, error: str | None) -> None:
        self.query_one("#upload_submit", Button).disabled = False
        self.query_one("#upload_submit", Button).label = "Upload"
        if error is None:
            self.dismiss(True)
            return
        self.query_one("#upload_error", Label).update(error)

    def _select_file(self, value: str) -> None:
        value = value.strip()
        if not value:
            return
        path = Path(value).expanduser()
        self._coordinator.select_file(path)
        info = self.query_one("#upload_file_info", Static)
        if path.is_file():
            size = path.stat().st_size / 1024 / 1024
            info.update(f"{path.name} ({size:.2f} MB)")
        else:
            info.update("File not found.")
        title_input = self.query_one("#upload_title", Input)
        pending = self._coordinator.pending
        if pending is not None and title_input.value != pending.title:
            title_input.value = pending.title

    def _submit(self) -> None:
        self._select_file(self.query_one("#upload_file", Input).value)
        error_label = self.query_one("#upload_error", Label)
        try:
            request = self._coordinator.prepare()
        except UploadValidationError as exc:
            error_label.update(str(exc))
            return
        error_label.update("")
        button = self.query_one("#upload_submit", Button)
        button.disabled = True
        button.label = "Uploading..."
        self._start_upload(request)

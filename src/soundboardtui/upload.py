from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol

from .api import ApiResult, ErrorKind, UploadReceipt
from .errors import UploadValidationError

logger = logging.getLogger(__name__)

DEFAULT_UPLOADER = "anonymous"
MISSING_FIELDS_MESSAGE = "Please select a file and enter a title"
UPLOAD_ERROR_MESSAGE = "Failed to upload file"


class UploadTarget(Protocol):
    def upload(
        self, file: Path, title: str, description: str = ..., uploaded_by: str = ...
    ) -> ApiResult[UploadReceipt]: ...


@dataclass
class PendingUpload:
    file: Path | None = None
    title: str = ""
    description: str = ""
    uploaded_by: str = ""


@dataclass(frozen=True)
class UploadRequest:
    file: Path
    title: str
    description: str
    uploaded_by: str


def default_title(path: Path) -> str:
    """Derive a title from a filename by dropping its last extension."""
    name = path.name
    stem, dot, _ = name.rpartition(".")
    if dot and stem:
        return stem
    return name


class UploadCoordinator:
    def __init__(
        self,
        target: UploadTarget,
        on_success: Callable[[], None] | None = None,
        *,
        default_uploader: str | None = None,
    ) -> None:
        self._target = target
        self._on_success = on_success
        self.default_uploader = default_uploader or ""
        self.pending: PendingUpload | None = None
        self.error: str | None = None
        self.notice: str | None = None

    @property
    def is_open(self) -> bool:
        return self.pending is not None

    def open(self) -> PendingUpload:
        if self.pending is None:
            self.pending = PendingUpload(uploaded_by=self.default_uploader)
        self.error = None
        return self.pending

    def cancel(self) -> None:
        self.pending = None
        self.error = None

    def select_file(self, path: Path) -> None:
        pending = self.open()
        pending.file = path
        if not pending.title.strip():
            pending.title = default_title(path)

    def set_fields(
        self,
        *,
        title: str | None = None,
        description: str | None = None,
        uploaded_by: str | None = None,
    ) -> None:
        pending = self.open()
        if title is not None:
            pending.title = title
        if description is not None:
            pending.description = description
        if uploaded_by is not None:
            pending.uploaded_by = uploaded_by

    def prepare(self) -> UploadRequest:
        """Validate the pending form and freeze it into a request.

        Raises UploadValidationError when the file or title is missing; no
        network call is made in that case.
        """
        pending = self.pending
        if pending is None or pending.file is None or not pending.title.strip():
            self.error = MISSING_FIELDS_MESSAGE
            raise UploadValidationError(MISSING_FIELDS_MESSAGE)
        if not pending.file.is_file():
            self.error = f"File not found: {pending.file}"
            raise UploadValidationError(self.error)
        self.error = None
        return UploadRequest(
            file=pending.file,
            title=pending.title.strip(),
            description=pending.description.strip(),
            uploaded_by=pending.uploaded_by.strip() or DEFAULT_UPLOADER,
        )

    def send(self, request: UploadRequest) -> ApiResult[UploadReceipt]:
        return self._target.upload(
            request.file, request.title, request.description, request.uploaded_by
        )

    def submit(self) -> UploadReceipt | None:
        """Validate and upload the pending form.

        Returns the receipt on success, or None when the upload failed and
        ``error`` holds the message to show.
        """
        request = self.prepare()
        return self.apply_result(self.send(request))

    def apply_result(self, result: ApiResult[UploadReceipt]) -> UploadReceipt | None:
        error = result.error
        if error is not None:
            server_message = error.message if error.kind is not ErrorKind.NETWORK else None
            self.error = server_message or UPLOAD_ERROR_MESSAGE
            logger.warning("Upload failed: %s", error)
            return None
        receipt = result.value or UploadReceipt(id=None, status=None, message=None)
        self.notice = receipt.message if receipt.processing_failed else None
        logger.info("Uploaded clip %s", receipt.id)
        self.pending = None
        self.error = None
        if self._on_success is not None:
            self._on_success()
        return receipt

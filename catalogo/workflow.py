# catalogo/workflow.py
"""Product registration workflow.

One ``ProductSubmission`` per form instance. It owns the form state (category
options, image preview, outcome of the last attempt) and runs a submission as
validate -> upload image -> create record, strictly in that order.

States per attempt::

    IDLE -> VALIDATING -> UPLOADING -> CREATING_RECORD -> SUCCEEDED
                 |            |               |
                 +------------+---------------+--> FAILED

A failed attempt is never retried; a new ``submit`` call starts over.
"""
from __future__ import annotations

import base64
import enum
import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from .config import Settings
from .errors import (
    RecordCreationError, StorageError, SubmissionError, UnexpectedError,
    ValidationError,
)
from .form import ImageFile, ProductForm, validate_product_form
from .storage import storage_from_settings

log = logging.getLogger(__name__)


class SubmissionStatus(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    UPLOADING = "uploading"
    CREATING_RECORD = "creating_record"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_IN_FLIGHT = (SubmissionStatus.VALIDATING, SubmissionStatus.UPLOADING, SubmissionStatus.CREATING_RECORD)


@dataclass
class FormState:
    status: SubmissionStatus = SubmissionStatus.IDLE
    categories: List[Dict[str, str]] = field(default_factory=list)
    preview: Optional[str] = None
    success: bool = False
    field_errors: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    failure: Optional[SubmissionError] = None
    orphaned_uploads: List[str] = field(default_factory=list)

    @property
    def is_submitting(self) -> bool:
        return self.status in _IN_FLIGHT


def render_data_url(image: ImageFile) -> str:
    encoded = base64.b64encode(image.data).decode("ascii")
    return f"data:{image.content_type};base64,{encoded}"


def _first_image(files: Any) -> Optional[ImageFile]:
    if isinstance(files, ImageFile):
        return files
    if isinstance(files, (list, tuple)) and files and isinstance(files[0], ImageFile):
        return files[0]
    return None


class ImagePreview:
    """Derives a displayable preview from the current image selection.

    Every selection bumps a generation number; a rendering only lands if its
    generation is still the latest, so a slow earlier read never overwrites a
    newer selection or a cleared one.
    """

    def __init__(self, on_change: Callable[[Optional[str]], None],
                 executor: Optional[ThreadPoolExecutor] = None) -> None:
        self._on_change = on_change
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="preview")
        self._lock = threading.Lock()
        self._generation = 0

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def _publish(self, generation: int, value: Optional[str]) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            self._on_change(value)
            return True

    def _render(self, generation: int, image: ImageFile) -> Optional[str]:
        try:
            value = render_data_url(image)
        except (TypeError, ValueError) as e:
            log.warning("Could not render preview for %s: %s", image.name, e)
            value = None
        if not self._publish(generation, value):
            log.debug("Preview for %s superseded", image.name)
        return value

    def select(self, files: Any) -> "Future[Optional[str]]":
        generation = self._next_generation()
        image = _first_image(files)
        if image is None:
            self._publish(generation, None)
            done: Future = Future()
            done.set_result(None)
            return done
        return self._executor.submit(self._render, generation, image)

    def clear(self) -> None:
        self._publish(self._next_generation(), None)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


def _navigate_noop(path: str) -> None:
    log.info("Navigate to %s", path)


class ProductSubmission:
    def __init__(
        self,
        storage,
        *,
        api_base_url: str,
        http=None,
        bucket: str = "catalogo",
        prefix: str = "products",
        timeout: float = 25.0,
        navigate: Optional[Callable[[str], None]] = None,
        listing_path: str = "/products",
    ) -> None:
        self.storage = storage
        self.api_base = api_base_url.rstrip("/")
        self.http = http or requests.Session()
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.timeout = timeout
        self.navigate = navigate or _navigate_noop
        self.listing_path = listing_path
        self.state = FormState()
        self.preview = ImagePreview(self._set_preview)
        self._inflight = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "ProductSubmission":
        return cls(
            storage_from_settings(settings),
            api_base_url=settings.api_base_url,
            bucket=settings.bucket,
            timeout=settings.http_timeout,
            **kwargs,
        )

    def __enter__(self) -> "ProductSubmission":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self.preview.shutdown()

    # ---------- categories ----------
    def load_categories(self) -> List[Dict[str, str]]:
        try:
            r = self.http.get(f"{self.api_base}/api/categories", timeout=self.timeout)
            if not 200 <= r.status_code < 300:
                log.error("Erro ao carregar categorias: HTTP %s", r.status_code)
                return self.state.categories
            data = r.json()
            self.state.categories = [{"id": str(c["id"]), "name": c["name"]} for c in data]
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            log.error("Erro ao carregar categorias: %s", e)
        return self.state.categories

    # ---------- image preview ----------
    def _set_preview(self, value: Optional[str]) -> None:
        self.state.preview = value

    def select_image(self, files: Any) -> "Future[Optional[str]]":
        return self.preview.select(files)

    def clear_image(self) -> None:
        self.preview.clear()

    # ---------- submission ----------
    def submit(self, data: Mapping[str, Any]) -> bool:
        """Run one submission attempt; True when the product was created.

        Refused (False, state untouched) while another attempt of this form is
        still in flight.
        """
        if not self._inflight.acquire(blocking=False):
            log.warning("Submission already in progress; ignoring new submit")
            return False
        try:
            return self._run(data)
        finally:
            self._inflight.release()

    def _run(self, data: Mapping[str, Any]) -> bool:
        st = self.state
        st.success = False
        st.error = None
        st.failure = None
        st.field_errors = {}

        self._transition(SubmissionStatus.VALIDATING)
        result = validate_product_form(data)
        if not result.is_ok:
            st.field_errors = dict(result.errors)
            self._fail(ValidationError(result.errors))
            return False
        form = result.ok

        path = self._object_path(form.image)
        uploaded = False
        try:
            self._transition(SubmissionStatus.UPLOADING)
            self.storage.upload(self.bucket, path, form.image.data, form.image.content_type)
            uploaded = True
            image_url = self.storage.get_public_url(self.bucket, path)

            self._transition(SubmissionStatus.CREATING_RECORD)
            self._create_record(form, image_url)
        except RecordCreationError as e:
            self._compensate(path)
            self._fail(e)
            return False
        except Exception as e:
            if uploaded:
                self._release_upload(path)
            if not isinstance(e, SubmissionError):
                log.exception("Unexpected failure while %s", st.status.value)
                e = UnexpectedError(e)
            self._fail(e)
            return False

        self._transition(SubmissionStatus.SUCCEEDED)
        st.success = True
        self.navigate(self.listing_path)
        return True

    def _object_path(self, image: ImageFile) -> str:
        return f"{self.prefix}/{uuid.uuid4()}.{image.extension}"

    def _create_record(self, form: ProductForm, image_url: str) -> None:
        payload = {
            "name": form.name,
            "type": form.type.value,
            "description": form.description,
            "price": float(form.price),
            "categoryId": form.category_id,
            "imageUrl": image_url,
            "barcode": form.barcode,
        }
        r = self.http.post(f"{self.api_base}/api/products", json=payload, timeout=self.timeout)
        if not 200 <= r.status_code < 300:
            raise RecordCreationError(r.status_code, r.text)
        log.info("Product %r created (barcode=%s)", form.name, form.barcode)

    def _compensate(self, path: str) -> None:
        try:
            self.storage.remove(self.bucket, path)
        except StorageError as e:
            log.error("Could not remove orphaned upload %s: %s", path, e)
            self.state.orphaned_uploads.append(path)

    def _release_upload(self, path: str) -> None:
        # no create call went out yet: safe to delete. A transport error on the
        # create call may still have committed the row, so that image is only flagged
        if self.state.status is SubmissionStatus.CREATING_RECORD:
            self.state.orphaned_uploads.append(path)
        else:
            self._compensate(path)

    def _transition(self, status: SubmissionStatus) -> None:
        log.debug("Submission %s -> %s", self.state.status.value, status.value)
        self.state.status = status

    def _fail(self, error: SubmissionError) -> None:
        self.state.failure = error
        self.state.error = error.user_message
        self._transition(SubmissionStatus.FAILED)
        if isinstance(error, ValidationError):
            log.info("Validation failed: %s", error.errors)
        else:
            log.error("Submission failed: %s", error)

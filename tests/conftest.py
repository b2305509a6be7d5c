"""
Pytest configuration and shared fixtures for reportgate tests.
"""

import asyncio
import base64
import io
from datetime import timedelta
from typing import Optional

import pytest
from PIL import Image

from reportgate import event_bus, session_store
from reportgate.errors import BackendError, MediaUploadError
from reportgate.models.report import DraftReport, ReportLocation, ReportRecord, utcnow
from reportgate.services import backend as backend_module
from reportgate.services import media as media_module
from reportgate.services.memory_backend import InMemoryReportBackend
from reportgate.utils.audit import clear_audit_log

pytest_plugins = ('pytest_asyncio',)

# Quito, around the university campus
BASE_LAT = -0.2010
BASE_LNG = -78.5030


def pytest_configure(config):
    """Configure pytest with asyncio marker."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test."
    )


def png_data_url(color: str = "red") -> str:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()


def make_record(
    report_id: str = "rep-1",
    title: str = "Broken light",
    lat: float = BASE_LAT,
    lng: float = BASE_LNG,
    hours_old: float = 2,
    **overrides,
) -> ReportRecord:
    fields = dict(
        id=report_id,
        title=title,
        description="Street light out near the main gate",
        category_id="Infrastructure",
        location=ReportLocation(lat=lat, lng=lng, address="Av. América"),
        user_id="user-author",
        created_at=utcnow() - timedelta(hours=hours_old),
    )
    fields.update(overrides)
    return ReportRecord(**fields)


class RecordingUploader:
    """Uploader stub that records the order of upload starts and ends."""

    HOST = "https://cdn.example.test/"

    def __init__(self, fail_on: Optional[str] = None, events: Optional[list] = None):
        self.fail_on = fail_on
        self.events = events if events is not None else []
        self.uploads: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    def is_hosted(self, ref: str) -> bool:
        return ref.startswith(self.HOST)

    async def upload(self, data: str, folder: str) -> str:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.events.append(("start", data))
        try:
            await asyncio.sleep(0)
            if data == self.fail_on:
                raise MediaUploadError("storage unavailable")
            self.uploads.append((data, folder))
            return f"{self.HOST}{folder}/{len(self.uploads)}.png"
        finally:
            self.active -= 1
            self.events.append(("end", data))


class FailingQueryBackend(InMemoryReportBackend):
    async def find_similar(self, *args, **kwargs):
        raise BackendError("proximity RPC timed out", 504)


class FlakyBackend(InMemoryReportBackend):
    """Fails the first ``confirm_failures`` confirms and ``create_failures`` creates."""

    def __init__(self, confirm_failures: int = 0, create_failures: int = 0):
        super().__init__()
        self.confirm_failures = confirm_failures
        self.create_failures = create_failures
        self.confirm_calls = 0
        self.create_calls = 0

    async def confirm_report(self, report_id: str, user_id: str) -> None:
        self.confirm_calls += 1
        if self.confirm_failures > 0:
            self.confirm_failures -= 1
            raise BackendError("confirm failed", 500)
        await super().confirm_report(report_id, user_id)

    async def create_report(self, draft, image_urls):
        self.create_calls += 1
        if self.create_failures > 0:
            self.create_failures -= 1
            raise BackendError("insert failed", 500)
        return await super().create_report(draft, image_urls)


@pytest.fixture
def location() -> ReportLocation:
    return ReportLocation(lat=BASE_LAT, lng=BASE_LNG, address="Av. América", building="Block B")


@pytest.fixture
def draft(location) -> DraftReport:
    return DraftReport(
        title="Broken light",
        description="The light at the entrance is not working",
        category_id="Infrastructure",
        location=location,
        user_id="user-1",
    )


@pytest.fixture
def memory_backend() -> InMemoryReportBackend:
    return InMemoryReportBackend()


@pytest.fixture
def uploader() -> RecordingUploader:
    return RecordingUploader()


@pytest.fixture(autouse=True)
def _reset_state():
    """Module singletons and stores are process-wide; reset them around each test."""
    session_store.clear_all()
    clear_audit_log()
    event_bus.clear_handlers()
    backend_module.set_backend(None)
    media_module.set_uploader(None)
    yield
    session_store.clear_all()
    event_bus.clear_handlers()
    backend_module.set_backend(None)
    media_module.set_uploader(None)

"""
Auto-share tests: share content and non-blocking failures.
"""

import pytest

from conftest import make_record
from reportgate.config import settings
from reportgate.pipelines import auto_share
from reportgate.services import backend as backend_module
from reportgate.services.memory_backend import InMemoryReportBackend


class BrokenPostBackend(InMemoryReportBackend):
    async def create_post(self, *args, **kwargs):
        raise RuntimeError("posts table unavailable")


def test_share_content_truncates_description():
    report = make_record(description="x" * 250)

    content = auto_share.build_share_content(report)
    parts = content.split("\n\n")

    assert parts[0] == "📢 Broken light"
    assert len(parts[1]) == 200
    assert parts[1].endswith("...")
    assert parts[2] == "📍 Av. América"
    assert parts[3] == "#Reporte"


@pytest.mark.asyncio
async def test_share_creates_status_then_linked_post():
    backend = InMemoryReportBackend()

    result = await auto_share.share_report(make_record(images=["https://cdn/x.png"]), backend)

    assert result["status_id"] == backend.statuses[0]["id"]
    assert backend.posts[0]["status_id"] == result["status_id"]
    assert backend.posts[0]["images"] == ["https://cdn/x.png"]


@pytest.mark.asyncio
async def test_share_failure_is_swallowed():
    backend = BrokenPostBackend()

    result = await auto_share.share_report(make_record(), backend)

    assert result["status_id"] is not None
    assert result["post_id"] is None


@pytest.mark.asyncio
async def test_handler_respects_setting(monkeypatch):
    backend = InMemoryReportBackend()
    backend_module.set_backend(backend)
    payload = {"session_id": "SUB-1", "report": make_record().model_dump(mode="json")}

    monkeypatch.setattr(settings, "auto_share_reports", False)
    await auto_share.handle_report_created(payload)
    assert backend.posts == []

    monkeypatch.setattr(settings, "auto_share_reports", True)
    await auto_share.handle_report_created(payload)
    assert len(backend.posts) == 1

"""Unit tests for task models, snapshot serialization and item describers."""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from card_enricher.models.task import ErrorEntry, ItemOutcome, ItemResult, TaskSnapshot, TaskState
from card_enricher.pipeline.options import (
    StartOptions,
    default_id_of,
    default_label_of,
    default_title_of,
    extract_domain,
)


# ======================================================================
# TaskSnapshot.to_dict
# ======================================================================


class TestTaskSnapshot:
    def test_idle_without_task_is_minimal(self) -> None:
        assert TaskSnapshot().to_dict() == {"running": False}

    def test_camel_case_wire_form(self) -> None:
        started = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        entry = ErrorEntry(
            item_id=7,
            item_title="Docs",
            message="partially succeeded: tags failed",
            time=started,
            is_warning=True,
        )
        snapshot = TaskSnapshot(
            running=True,
            state=TaskState.RUNNING,
            current=4,
            total=10,
            success_count=4,
            fail_count=0,
            current_card="Docs, example.org",
            start_time=started,
            concurrency=2,
            is_rate_limited=True,
            fields=["name", "tags"],
            errors=[entry],
        )

        data = snapshot.to_dict()

        assert data["running"] is True
        assert data["state"] == "RUNNING"
        assert data["types"] == ["name", "tags"]
        assert data["successCount"] == 4
        assert data["failCount"] == 0
        assert data["currentCard"] == "Docs, example.org"
        assert data["startTime"] == 1714564800000
        assert data["isRateLimited"] is True
        assert data["errors"] == [
            {
                "cardId": 7,
                "cardTitle": "Docs",
                "error": "partially succeeded: tags failed",
                "time": 1714564800000,
                "isWarning": True,
            }
        ]

    def test_finished_task_keeps_full_form(self) -> None:
        snapshot = TaskSnapshot(running=False, current=3, total=3, start_time=datetime.now(tz=timezone.utc))
        data = snapshot.to_dict()
        assert data["running"] is False
        assert data["current"] == 3

    def test_snapshot_is_frozen(self) -> None:
        with pytest.raises(Exception):
            TaskSnapshot().current = 3  # type: ignore[misc]


class TestItemResult:
    def test_success_flags(self) -> None:
        assert ItemResult(outcome=ItemOutcome.OK).success
        assert not ItemResult(outcome=ItemOutcome.FAILED).success
        assert ItemResult(outcome=ItemOutcome.RATE_LIMITED).rate_limited
        assert not ItemResult(outcome=ItemOutcome.OK, rate_limit_hits=2).rate_limited


# ======================================================================
# Describers
# ======================================================================


class TestExtractDomain:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://www.github.com/explore", "github.com"),
            ("http://docs.python.org", "docs.python.org"),
            ("https://example.com:8443/a?b=c", "example.com"),
            ("not a url", "not a url"),
            ("", ""),
        ],
    )
    def test_extract(self, url: str, expected: str) -> None:
        assert extract_domain(url) == expected


class TestDescribers:
    def test_mapping_item(self) -> None:
        item = {"id": "abc", "title": "GitHub", "url": "https://www.github.com"}
        assert default_id_of(item, 4) == "abc"
        assert default_title_of(item) == "GitHub"
        assert default_label_of(item) == "GitHub"

    def test_object_item(self) -> None:
        item = SimpleNamespace(id=12, title="", url="https://www.python.org/")
        assert default_id_of(item, 0) == 12
        assert default_title_of(item) == "https://www.python.org/"
        assert default_label_of(item) == "python.org"

    def test_missing_id_falls_back_to_index(self) -> None:
        assert default_id_of({"title": "x"}, 5) == 5
        assert default_id_of("plain", 2) == 2

    def test_opaque_item(self) -> None:
        assert default_title_of(42) == "42"
        assert default_label_of(42) == "42"

    def test_start_options_defaults(self) -> None:
        options = StartOptions()
        assert options.base_delay_ms is None
        assert options.fields == []
        assert options.strategy == {}
        assert options.label_of is default_label_of

"""Unit tests for the card_enricher.cli runner."""

from __future__ import annotations

import importlib
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from card_enricher.cli import run as cli_run
from card_enricher.cli.run import (
    format_snapshot,
    load_items,
    main,
    parse_strategy,
    resolve_processor,
)
from card_enricher.interfaces.item_processor import IItemProcessor
from card_enricher.models.task import TaskSnapshot, TaskState
from card_enricher.utils.errors import ConfigurationError

_PROCESSOR_MODULE = '''
from card_enricher.interfaces.item_processor import IItemProcessor
from card_enricher.utils.errors import ItemError


async def enrich(item):
    if item.get("fail"):
        raise ItemError("generation failed")


SEEN_CONTEXTS = []


async def enrich_with_context(item, context):
    SEEN_CONTEXTS.append(context)


class Enricher(IItemProcessor):
    async def process_item(self, item, context):
        return None


NOT_CALLABLE = 42
'''

_FAST_CONFIG = """
app:
  env: production
logging:
  level: WARNING
batch:
  default_base_delay_ms: 0
  min_base_delay_ms: 0
  parallel_delay_floor_ms: 0
  completion_grace_seconds: 0
"""


@pytest.fixture()
def processor_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, request: pytest.FixtureRequest) -> str:
    name = f"enrich_{request.node.name.replace('[', '_').replace(']', '_')}"
    (tmp_path / f"{name}.py").write_text(_PROCESSOR_MODULE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    return name


@pytest.fixture()
def fast_config(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(_FAST_CONFIG, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def logging_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    # configure_logging rebinds process-wide structlog and root handlers.
    calls: list[dict] = []
    monkeypatch.setattr(cli_run, "configure_logging", lambda **kwargs: calls.append(kwargs))
    return calls


# ======================================================================
# resolve_processor
# ======================================================================


class TestResolveProcessor:
    def test_async_function(self, processor_module: str) -> None:
        fn = resolve_processor(f"{processor_module}:enrich")
        assert callable(fn)
        assert fn.__name__ == "enrich"

    def test_processor_class_is_instantiated(self, processor_module: str) -> None:
        assert isinstance(resolve_processor(f"{processor_module}:Enricher"), IItemProcessor)

    @pytest.mark.parametrize("path", ["no_colon", ":enrich", "module:"])
    def test_malformed_path(self, path: str) -> None:
        with pytest.raises(ConfigurationError):
            resolve_processor(path)

    def test_unknown_module(self) -> None:
        with pytest.raises(ConfigurationError, match="cannot import"):
            resolve_processor("card_enricher_missing_module:fn")

    def test_unknown_attribute(self, processor_module: str) -> None:
        with pytest.raises(ConfigurationError, match="no attribute"):
            resolve_processor(f"{processor_module}:missing")

    def test_not_callable(self, processor_module: str) -> None:
        with pytest.raises(ConfigurationError):
            resolve_processor(f"{processor_module}:NOT_CALLABLE")


# ======================================================================
# load_items / format_snapshot
# ======================================================================


class TestLoadItems:
    def test_plain_list(self, tmp_path: Path) -> None:
        path = tmp_path / "items.json"
        path.write_text(json.dumps([{"id": 1}, {"id": 2}]), encoding="utf-8")
        assert load_items(path) == [{"id": 1}, {"id": 2}]

    def test_wrapped_list(self, tmp_path: Path) -> None:
        path = tmp_path / "items.json"
        path.write_text(json.dumps({"items": [{"id": 1}]}), encoding="utf-8")
        assert load_items(path) == [{"id": 1}]

    def test_rejects_non_list(self, tmp_path: Path) -> None:
        path = tmp_path / "items.json"
        path.write_text(json.dumps({"id": 1}), encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_items(path)


class TestFormatSnapshot:
    def test_running_line(self) -> None:
        snapshot = TaskSnapshot(
            running=True,
            state=TaskState.RUNNING,
            current=3,
            total=10,
            success_count=2,
            fail_count=1,
            current_card="GitHub, python.org",
            start_time=datetime.now(tz=timezone.utc),
            concurrency=1,
            is_rate_limited=True,
        )
        assert format_snapshot(snapshot) == (
            "[3/10] ok=2 fail=1 concurrency=1 (rate limited) | GitHub, python.org"
        )

    def test_finished_line_has_no_label(self) -> None:
        snapshot = TaskSnapshot(current=2, total=2, success_count=2, concurrency=3)
        assert format_snapshot(snapshot) == "[2/2] ok=2 fail=0 concurrency=3"


# ======================================================================
# main
# ======================================================================


class TestMain:
    def _items(self, tmp_path: Path, items: list[dict]) -> str:
        path = tmp_path / "items.json"
        path.write_text(json.dumps(items), encoding="utf-8")
        return str(path)

    def test_successful_run(
        self, tmp_path: Path, processor_module: str, fast_config: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        items = self._items(tmp_path, [{"id": i, "title": f"Card {i}"} for i in range(4)])
        code = main(
            [items, "--processor", f"{processor_module}:enrich", "--config", str(fast_config),
             "--fields", "name", "tags", "--quiet"]
        )
        assert code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["running"] is False
        assert summary["successCount"] == 4
        assert summary["types"] == ["name", "tags"]

    def test_failures_give_exit_code_one(
        self, tmp_path: Path, processor_module: str, fast_config: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        items = self._items(tmp_path, [{"id": 1, "title": "ok"}, {"id": 2, "title": "bad", "fail": True}])
        code = main([items, "--processor", f"{processor_module}:enrich", "--config", str(fast_config)])
        assert code == 1
        out = capsys.readouterr().out
        assert "[2/2] ok=1 fail=1" in out
        assert "generation failed" in out

    def test_bad_processor_path_returns_two(
        self, tmp_path: Path, fast_config: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        items = self._items(tmp_path, [{"id": 1}])
        code = main([items, "--processor", "nowhere", "--config", str(fast_config)])
        assert code == 2
        assert "error:" in capsys.readouterr().err

    def test_strategy_and_fields_reach_processor(
        self, tmp_path: Path, processor_module: str, fast_config: Path
    ) -> None:
        items = self._items(tmp_path, [{"id": 1, "title": "a"}, {"id": 2, "title": "b"}])
        code = main(
            [items, "--processor", f"{processor_module}:enrich_with_context", "--config", str(fast_config),
             "--fields", "name", "--strategy", '{"tone": "short"}', "--quiet"]
        )
        assert code == 0
        seen = importlib.import_module(processor_module).SEEN_CONTEXTS
        assert [c.item_id for c in seen] == [1, 2]
        assert all(c.strategy == {"tone": "short"} for c in seen)
        assert all(c.fields == ["name"] for c in seen)

    def test_config_loaded_once_and_app_env_passed_to_logging(
        self,
        tmp_path: Path,
        processor_module: str,
        fast_config: Path,
        logging_calls: list[dict],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        loads: list[str] = []
        real_load_config = cli_run.load_config

        def counting_load_config(path, *args, **kwargs):
            loads.append(path)
            return real_load_config(path, *args, **kwargs)

        monkeypatch.delenv("APP_ENV", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setattr(cli_run, "load_config", counting_load_config)
        items = self._items(tmp_path, [{"id": 1}])
        assert main([items, "--processor", f"{processor_module}:enrich", "--config", str(fast_config), "--quiet"]) == 0

        assert loads == [str(fast_config)]
        assert logging_calls == [{"log_level": "WARNING", "json_output": False, "app_env": "production"}]

    def test_invalid_strategy_returns_two(
        self, tmp_path: Path, processor_module: str, fast_config: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        items = self._items(tmp_path, [{"id": 1}])
        code = main(
            [items, "--processor", f"{processor_module}:enrich", "--config", str(fast_config),
             "--strategy", "not json"]
        )
        assert code == 2
        assert "--strategy" in capsys.readouterr().err


class TestParseStrategy:
    def test_empty(self) -> None:
        assert parse_strategy(None) == {}
        assert parse_strategy("") == {}

    def test_object(self) -> None:
        assert parse_strategy('{"mode": "full", "max_tags": 5}') == {"mode": "full", "max_tags": 5}

    def test_rejects_non_object(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_strategy("[1, 2]")

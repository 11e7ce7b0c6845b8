# =============================================================================
# card_enricher/cli/run.py: Run an adaptive enrichment batch from the shell
# =============================================================================
#
# Loads a JSON list of items, resolves an item processor from a
# ``module:attribute`` path, and drives it through a TaskController while
# printing one progress line per snapshot.  Ctrl-C requests a cooperative
# stop: the in-flight window finishes, nothing new is launched.
#
# The processor attribute may be:
#   - an async function ``async def fn(item)`` or ``async def fn(item, context)``
#   - an IItemProcessor subclass (instantiated with no arguments)
#   - an IItemProcessor instance
#
# Usage examples:
#   python -m card_enricher.cli items.json --processor myapp.enrich:process_card
#   python -m card_enricher.cli items.json --processor myapp.enrich:CardEnricher \
#       --fields name description tags --strategy '{"tone": "short"}' --delay-ms 3000
# =============================================================================

"""Command-line runner for adaptive enrichment batches.

Usage::

    python -m card_enricher.cli items.json --processor package.module:callable
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import inspect
import json
import signal
import sys
from pathlib import Path
from typing import Any

from card_enricher.config.loader import load_config, policy_from_config
from card_enricher.interfaces.item_processor import IItemProcessor
from card_enricher.models.task import TaskSnapshot
from card_enricher.pipeline.controller import TaskController
from card_enricher.pipeline.options import StartOptions
from card_enricher.utils.errors import ConfigurationError
from card_enricher.utils.logging import configure_logging


def resolve_processor(path: str) -> Any:
    """Import ``module:attribute`` and return something ``start()`` accepts."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"processor must look like 'module:attribute', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"cannot import processor module {module_name!r}: {exc}") from exc

    target: Any = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ConfigurationError(f"{module_name!r} has no attribute {attr!r}") from exc

    if inspect.isclass(target) and issubclass(target, IItemProcessor):
        return target()
    if isinstance(target, IItemProcessor) or callable(target):
        return target
    raise ConfigurationError(f"{path!r} is neither an IItemProcessor nor callable")


def load_items(path: Path) -> list[Any]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict) and isinstance(data.get("items"), list):
        data = data["items"]
    if not isinstance(data, list):
        raise ConfigurationError(f"{path} must contain a JSON list of items")
    return data


def parse_strategy(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        strategy = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"--strategy is not valid JSON: {exc}") from exc
    if not isinstance(strategy, dict):
        raise ConfigurationError("--strategy must be a JSON object")
    return strategy


def format_snapshot(snapshot: TaskSnapshot) -> str:
    line = (
        f"[{snapshot.current}/{snapshot.total}] "
        f"ok={snapshot.success_count} fail={snapshot.fail_count} "
        f"concurrency={snapshot.concurrency}"
    )
    if snapshot.is_rate_limited:
        line += " (rate limited)"
    if snapshot.current_card:
        line += f" | {snapshot.current_card}"
    return line


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="card_enricher.cli",
        description="Enrich a list of items through a rate-limited generation service.",
    )
    parser.add_argument("items", type=Path, help="JSON file holding a list of items")
    parser.add_argument("--processor", required=True, help="module:attribute of the item processor")
    parser.add_argument("--fields", nargs="*", default=[], help="metadata fields being generated")
    parser.add_argument("--strategy", default=None, help="generation strategy as a JSON object")
    parser.add_argument("--delay-ms", type=float, default=None, help="base delay between windows")
    parser.add_argument("--config", default="config/config.yaml", help="YAML config path")
    parser.add_argument("--json-logs", action="store_true", help="emit JSON log lines")
    parser.add_argument("--quiet", action="store_true", help="only print the final summary")
    return parser


async def _run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    configure_logging(
        log_level=(config.get("logging") or {}).get("level", "INFO"),
        json_output=args.json_logs,
        app_env=(config.get("app") or {}).get("env"),
    )
    policy = policy_from_config(config)
    strategy = parse_strategy(args.strategy)
    items = load_items(args.items)
    processor = resolve_processor(args.processor)

    controller = TaskController(policy=policy)
    if not args.quiet:
        controller.subscribe(lambda snap: print(format_snapshot(snap), flush=True))

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, controller.stop)
    except (NotImplementedError, RuntimeError):
        pass  # Windows: Ctrl-C falls back to KeyboardInterrupt

    await controller.start(
        items,
        processor,
        StartOptions(base_delay_ms=args.delay_ms, fields=list(args.fields), strategy=strategy),
    )
    final = await controller.wait()

    print(json.dumps(final.to_dict(), ensure_ascii=False, indent=2))
    return 0 if final.fail_count == 0 else 1


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except ConfigurationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())

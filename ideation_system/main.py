import argparse
import asyncio
import dataclasses
import logging
import os
import sys
import time
from pathlib import Path

import structlog

from ideation_system.config.settings import Settings
from ideation_system.coordinator import Coordinator
from ideation_system.exceptions import ConfigurationError
from ideation_system.persistence import JsonFileSessionStore
from ideation_system.providers import ProviderRegistry, StaticProvider
from ideation_system.utils.file_ops import atomic_write_json, topic_slug


def _init_logging(verbose: bool = False):
    level = "DEBUG" if verbose else os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level)
    structlog.configure(
        processors=[structlog.processors.add_log_level, structlog.processors.TimeStamper(fmt="iso"), structlog.processors.JSONRenderer()],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level, logging.INFO)),
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ideation-system", description="Research gathering and business ideation")
    p.add_argument("--topic", required=True, help="Research topic (required)")
    p.add_argument("--documents", default=None, help="JSONL document corpus for offline retrieval")
    p.add_argument("--output-dir", default="outputs")
    p.add_argument("--max-concurrent", type=int, default=None, help="Concurrent tasks per round (defaults to MAX_CONCURRENT)")
    p.add_argument("--research-rounds", type=int, default=None)
    p.add_argument("--ideation-rounds", type=int, default=None)
    p.add_argument("--target-count", type=int, default=None, help="Number of ideas to select")
    p.add_argument("--verbose", action="store_true", help="Verbose output")
    return p


def build_settings(args) -> Settings:
    overrides = {}
    if args.max_concurrent is not None:
        overrides["MAX_CONCURRENT"] = args.max_concurrent
    if args.research_rounds is not None:
        overrides["RESEARCH_MAX_ROUNDS"] = args.research_rounds
    if args.ideation_rounds is not None:
        overrides["IDEATION_MAX_ROUNDS"] = args.ideation_rounds
    settings = dataclasses.replace(Settings(), **overrides)
    settings.validate()
    return settings


def build_retrieval(args, settings: Settings) -> ProviderRegistry:
    registry = ProviderRegistry()
    if args.documents:
        registry.register(StaticProvider.from_jsonl(args.documents))
    if settings.TAVILY_API_KEY:
        from ideation_system.providers.tavily import TavilyProvider
        registry.register(TavilyProvider(settings))
    if not len(registry):
        raise ConfigurationError("no retrieval source: pass --documents or set TAVILY_API_KEY")
    return registry


def build_llm(settings: Settings):
    if not settings.has_llm():
        return None
    from ideation_system.llm.client import LLMClient
    return LLMClient(settings)


async def run(args, settings: Settings, run_dir: Path):
    store = JsonFileSessionStore(str(run_dir / "sessions"))
    coordinator = Coordinator(build_retrieval(args, settings), build_llm(settings), settings, store=store)
    outcome = await coordinator.run(args.topic, target_count=args.target_count, session_id=run_dir.name)
    atomic_write_json(str(run_dir / "run_report.json"), outcome.reports())
    atomic_write_json(str(run_dir / "result.json"), outcome.to_dict())
    return outcome


def main(argv=None):
    args = build_parser().parse_args(argv)
    _init_logging(args.verbose)

    try:
        settings = build_settings(args)
    except ConfigurationError as e:
        sys.stderr.write(f"Configuration error: {e}\n")
        sys.exit(2)

    run_dir = Path(args.output_dir) / f"{topic_slug(args.topic)}_{time.strftime('%Y%m%d_%H%M%S')}"
    run_dir.mkdir(parents=True, exist_ok=True)
    print(f"Output directory: {run_dir}", file=sys.stderr)

    t0 = time.time()
    try:
        outcome = asyncio.run(asyncio.wait_for(run(args, settings, run_dir), timeout=settings.WALL_TIMEOUT_SEC))
    except asyncio.TimeoutError:
        dur = time.time() - t0
        sys.stderr.write(f"\nGLOBAL TIMEOUT after {dur:.1f}s. Increase WALL_TIMEOUT_SEC.\n")
        sys.exit(2)
    except KeyboardInterrupt:
        sys.stderr.write("\nInterrupted by user.\n")
        sys.exit(1)
    except ConfigurationError as e:
        sys.stderr.write(f"Configuration error: {e}\n")
        sys.exit(2)

    ideation = outcome.ideation.result if outcome.ideation else None
    summary = f"Research: {outcome.research.result.next_action.value} ({len(outcome.research.result.records)} records)"
    if ideation is not None:
        summary += f"; ideation: {ideation.decision.value} ({len(ideation.ideas)} ideas)"
    elif outcome.skipped_reason:
        summary += f"; ideation skipped: {outcome.skipped_reason}"
    print(summary, file=sys.stderr)
    return outcome


if __name__ == "__main__":
    main()

"""Command-line interface for satwatch.

Provides the main entry point for running the monitor, starting the
control server, or exercising individual pipeline stages for testing.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="satwatch",
        description="Watch the screen for SAT practice questions",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/satwatch.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    monitor_parser = subparsers.add_parser("monitor", help="Run the monitor and print events")
    monitor_parser.add_argument(
        "--duration", type=float, default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    monitor_parser.add_argument(
        "--status", action="store_true",
        help="Also print per-tick status events",
    )

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP control server")
    serve_parser.add_argument("--host", type=str, default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument(
        "--autostart", action="store_true",
        help="Start monitoring as soon as the server is up",
    )

    subparsers.add_parser("sources", help="List capture sources and the one that would be used")

    capture_parser = subparsers.add_parser("capture-test", help="Capture one screenshot to a file")
    capture_parser.add_argument(
        "-o", "--output", type=Path, default=Path("capture_test.png"),
    )

    analyze_parser = subparsers.add_parser("analyze", help="OCR and classify an image file")
    analyze_parser.add_argument("image", type=Path)

    classify_parser = subparsers.add_parser("classify", help="Classify text ('-' reads stdin)")
    classify_parser.add_argument("text", type=str)

    return parser.parse_args(argv)


def _print_json(data: dict | None) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def _run_monitor(settings, duration: float | None, show_status: bool) -> None:
    """Run the monitor, printing detected questions until interrupted."""
    from satwatch.domain.models import LiveStatus, QuestionDetected
    from satwatch.integrations.dashboard import DashboardSync
    from satwatch.monitor.loop import MonitorLoop

    monitor = MonitorLoop.from_settings(settings)

    def on_question(event: QuestionDetected) -> None:
        _print_json(event.model_dump(mode="json", by_alias=True))

    def on_status(event: LiveStatus) -> None:
        print(
            f"[{event.scan_time:%H:%M:%S}] {event.status:<9} "
            f"sources={event.sources_found} chars={event.text_length} {event.message}"
        )

    monitor.bus.subscribe(QuestionDetected, on_question)
    if show_status:
        monitor.bus.subscribe(LiveStatus, on_status)

    dashboard = None
    if settings.dashboard.enabled:
        dashboard = DashboardSync.from_settings(settings)
        dashboard.attach(monitor.bus)

    await monitor.start()
    try:
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)
    finally:
        await monitor.stop()
        if dashboard is not None:
            await dashboard.aclose()


def _serve(settings, args) -> None:
    from satwatch.endpoint.server import create_app, serve
    from satwatch.integrations.dashboard import DashboardSync
    from satwatch.monitor.loop import MonitorLoop

    dashboard = DashboardSync.from_settings(settings) if settings.dashboard.enabled else None
    app = create_app(
        MonitorLoop.from_settings(settings),
        dashboard=dashboard,
        autostart=args.autostart or settings.server.autostart,
    )
    serve(
        app,
        host=args.host or settings.server.host,
        port=args.port or settings.server.port,
    )


async def _list_sources(settings) -> None:
    from satwatch.capture.sampler import ScreenSampler

    sampler = ScreenSampler.from_settings(settings.capture)
    loop = asyncio.get_running_loop()
    sources = await loop.run_in_executor(None, sampler.backend.list_sources)
    selected = sampler.select_source(sources)

    for source in sources:
        marker = "*" if selected and selected[0].id == source.id else " "
        print(f"{marker} {source.id:<20} {source.kind.value:<7} {source.name}")
    if selected is None:
        print("No suitable capture source found")
    else:
        print(f"\nSelected: {selected[0].name} ({selected[1].value})")


async def _capture_test(settings, output: Path) -> None:
    """Capture a single screenshot and save to file."""
    from satwatch.capture.sampler import ScreenSampler

    sampler = ScreenSampler.from_settings(settings.capture)
    frame = await sampler.capture_frame()
    if frame is None:
        print("No suitable capture source found")
        return
    output.write_bytes(frame.image)
    print(f"Saved {frame.source_name} ({frame.source_tag.value}) to {output}")


async def _analyze(settings, image: Path) -> None:
    """OCR an image file, then normalize and classify its text."""
    from satwatch.detection.classifier import QuestionClassifier
    from satwatch.detection.normalizer import normalize_text
    from satwatch.ocr.tesseract import TesseractEngine, load_image

    data = load_image(str(image))
    async with TesseractEngine.from_config(settings.ocr) as engine:
        result = await engine.recognize(data, source_id=str(image))

    text = normalize_text(result.text)
    print(f"OCR: {len(result.text)} chars, confidence {result.confidence:.2f}, {result.elapsed:.2f}s")
    print("-" * 40)
    print(text)
    print("-" * 40)
    candidate = QuestionClassifier(**settings.classifier.model_dump()).classify(text)
    _print_json(candidate.model_dump(mode="json", by_alias=True))


def _classify(settings, text: str) -> None:
    from satwatch.detection.classifier import QuestionClassifier
    from satwatch.detection.normalizer import normalize_text

    if text == "-":
        text = sys.stdin.read()
    candidate = QuestionClassifier(**settings.classifier.model_dump()).classify(
        normalize_text(text)
    )
    _print_json(candidate.model_dump(mode="json", by_alias=True))


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the satwatch CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from satwatch.config.settings import load_settings
    from satwatch.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "monitor":
        logger.info("Starting monitor")
        try:
            asyncio.run(_run_monitor(settings, args.duration, args.status))
        except KeyboardInterrupt:
            logger.info("Interrupted")

    elif args.command == "serve":
        logger.info("Starting control server")
        _serve(settings, args)

    elif args.command == "sources":
        asyncio.run(_list_sources(settings))

    elif args.command == "capture-test":
        logger.info("Running capture test")
        asyncio.run(_capture_test(settings, args.output))

    elif args.command == "analyze":
        asyncio.run(_analyze(settings, args.image))

    elif args.command == "classify":
        _classify(settings, args.text)


if __name__ == "__main__":
    main()

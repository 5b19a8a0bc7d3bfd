#!/usr/bin/env python3
"""Command line client for the retinal image inference backend."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from retinascan.config import get_settings
from retinascan.services.client.session import ClientSession
from retinascan.services.reports import (
    build_health_markdown,
    build_model_info_markdown,
    build_prediction_markdown,
    build_privacy_notice_markdown,
    export_prediction_pdf,
)
from retinascan.services.statsig_client import shutdown_statsig

logger = logging.getLogger("retinascan")


async def _health(session: ClientSession) -> int:
    await session.wait_for_health()
    print(build_health_markdown(session.health_view()))
    state = session.monitor.state
    return 0 if state is not None and state.model_loaded else 1


async def _analyze(
    session: ClientSession, image: Path, data: bytes, gradcam: bool, pdf: Optional[Path]
) -> int:
    await session.wait_for_health()
    info = session.select_file(image.name, data)
    if info is None:
        print(f"Error: {session.error}", file=sys.stderr)
        return 2

    result = await session.analyze(want_gradcam=gradcam)
    if result is None:
        print(f"Error: {session.error}", file=sys.stderr)
        return 1

    print(build_prediction_markdown(result, filename=image.name, want_gradcam=gradcam))
    if pdf is not None:
        path = export_prediction_pdf(result, pdf, filename=image.name, want_gradcam=gradcam)
        logger.info("Report written to %s", path)
    return 0 if result.success else 1


async def _document(session: ClientSession, which: str) -> int:
    if which == "model-info":
        view = await session.open_model_info()
        render = build_model_info_markdown
    else:
        view = await session.open_privacy_notice()
        render = build_privacy_notice_markdown

    if view.data is None:
        print(f"Error: {view.error}", file=sys.stderr)
        return 1
    print(render(view.data))
    return 0


async def _run(args: argparse.Namespace) -> int:
    data = b""
    if args.command == "analyze":
        try:
            data = args.image.read_bytes()
        except OSError as exc:
            print(f"Error: cannot read {args.image}: {exc.strerror or exc}", file=sys.stderr)
            return 2

    async with ClientSession(get_settings()) as session:
        if args.command == "health":
            return await _health(session)
        if args.command == "analyze":
            return await _analyze(session, args.image, data, args.gradcam, args.pdf)
        return await _document(session, args.command)


def _serve(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("retinascan.main:app", host=host, port=port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="retinascan", description=__doc__)
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("health", help="probe backend readiness")

    analyze = sub.add_parser("analyze", help="classify a retinal image")
    analyze.add_argument("image", type=Path)
    analyze.add_argument("--gradcam", action="store_true", help="request a Grad-CAM overlay")
    analyze.add_argument("--pdf", type=Path, default=None, help="also write a PDF report")

    sub.add_parser("model-info", help="show backend model information")
    sub.add_parser("privacy", help="show the backend privacy notice")

    serve = sub.add_parser("serve", help="run the local session API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8080)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    if args.command == "serve":
        return _serve(args.host, args.port)
    try:
        return asyncio.run(_run(args))
    finally:
        shutdown_statsig()


if __name__ == "__main__":
    sys.exit(main())

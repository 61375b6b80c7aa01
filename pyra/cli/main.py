"""PYRA CLI: guarded command pipeline from the terminal.

Usage:
    pyra serve                      Run the HTTP/WebSocket API with uvicorn
    pyra console                    Drive one guarded command interactively
    pyra health                     Probe RPC, explorer and scanner once
    pyra config                     Show current configuration
    pyra --version                  Print version

Examples:
    pyra console --action send --amount "0.01 ETH" --target vitalik.eth
    pyra console --action deposit --amount "1 ETH" --target proxy-vault.eth --no-delay
    PYRA_APP_ENV=production pyra serve --port 8080
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Callable

from pyra.core.config import Settings, get_settings

__version__ = "0.1.0"


# ── Coloured output helpers ──────────────────────────────────────────────────

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"

_STATUS_COLOR = {
    "NEEDS_VERIFICATION": _CYAN,
    "PENDING": _CYAN,
    "NEEDS_ACKNOWLEDGEMENT": _YELLOW,
    "CHECKS_PASSED": _GREEN,
    "SUCCESS": _GREEN,
    "ABORTED": _RED,
    "ERROR": _RED,
}

# Statuses after which the pipeline is waiting for the user to say something.
_AWAITING_INPUT = {"NEEDS_VERIFICATION", "NEEDS_ACKNOWLEDGEMENT", "CHECKS_PASSED"}


def _c(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


# ── CLI argument parser ─────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyra",
        description="PYRA: guarded command pipeline for crypto transfers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")

    sub = parser.add_subparsers(dest="command")

    # ── serve ────────────────────────────────────────────────────────────────
    serve_p = sub.add_parser("serve", help="Run the API server")
    serve_p.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_p.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve_p.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    # ── console ──────────────────────────────────────────────────────────────
    console_p = sub.add_parser("console", help="Drive one guarded command over stdin")
    console_p.add_argument("--action", choices=["deposit", "swap", "send", "invest"])
    console_p.add_argument("--amount", help='Amount with denomination, e.g. "0.5 ETH"')
    console_p.add_argument("--target", help="Target address (0x...) or name (vault.eth)")
    console_p.add_argument(
        "--no-delay", action="store_true", help="Skip the artificial simulated-transaction delay"
    )

    # ── health / config ──────────────────────────────────────────────────────
    sub.add_parser("health", help="Check connectivity to RPC, explorer and scanner")
    sub.add_parser("config", help="Show current configuration")

    return parser


# ── Serve command ────────────────────────────────────────────────────────────


def _run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "pyra.api.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


# ── Console command ──────────────────────────────────────────────────────────


def _print_response(status: str, message: str) -> None:
    print(f"{_c(f'[{status}]', _STATUS_COLOR.get(status, _DIM))} {message}")


async def _ask(prompt: str, input_fn: Callable[[str], str]) -> str | None:
    try:
        return await asyncio.to_thread(input_fn, prompt)
    except EOFError:
        return None


async def _run_console(
    args: argparse.Namespace,
    settings: Settings,
    input_fn: Callable[[str], str] = input,
) -> int:
    """Run one command through verify → check → (acknowledge) → execute."""
    from pyra.core.logging import setup_logging
    from pyra.pipeline.commands import CommandStatus, ToolCall, ToolStep
    from pyra.pipeline.factory import build_runtime

    if args.no_delay:
        settings = settings.model_copy(update={"simulated_tx_delay_seconds": 0.0})
    setup_logging(env=settings.app_env, log_level="DEBUG" if settings.debug else "WARNING")

    action = args.action or await _ask("Action (deposit/swap/send/invest): ", input_fn)
    amount = args.amount or await _ask("Amount (e.g. 0.5 ETH): ", input_fn)
    target = args.target or await _ask("Target address or name: ", input_fn)
    if not (action and amount and target):
        print(_c("Error: action, amount and target are required.", _RED), file=sys.stderr)
        return 1

    runtime = build_runtime(settings)
    session = runtime.sessions.create()
    try:
        response = await runtime.pipeline.handle(
            session,
            ToolCall(step=ToolStep.VERIFY, action=action, amount=amount, target=target),
        )
        _print_response(response.status.value, response.message)

        while response.status.value in _AWAITING_INPUT:
            text = await _ask(_c("you> ", _BOLD), input_fn)
            if text is None:
                response = await runtime.pipeline.reset(session)
                _print_response(response.status.value, response.message)
                break
            if not text.strip():
                continue
            response = await runtime.pipeline.respond(session, text)
            _print_response(response.status.value, response.message)
        if session.pending is not None:
            # Leaving on an error must not strand a confirmed command.
            reset = await runtime.pipeline.reset(session)
            _print_response(reset.status.value, reset.message)
    finally:
        await runtime.close()

    return 0 if response.status == CommandStatus.SUCCESS else 1


# ── Health command ───────────────────────────────────────────────────────────


async def _run_health(settings: Settings) -> int:
    from pyra.api.services.readiness import readiness_report
    from pyra.pipeline.factory import build_runtime

    runtime = build_runtime(settings)
    try:
        report = await readiness_report(runtime)
    finally:
        await runtime.close()

    print(json.dumps(report, indent=2))
    return 0 if report["status"] == "healthy" else 1


# ── Config command ───────────────────────────────────────────────────────────


def _run_config(settings: Settings) -> int:
    """Print current settings (redacted)."""
    print(f"\n{_BOLD}PYRA Configuration{_RESET}\n")
    for field_name in sorted(type(settings).model_fields.keys()):
        val = getattr(settings, field_name, "")
        if any(kw in field_name for kw in ("password", "secret", "key", "token")):
            val = "****" if val else "(not set)"
        print(f"  {_DIM}{field_name}:{_RESET}  {val}")
    print()
    return 0


# ── Entrypoint ───────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"pyra {__version__}")
        return 0

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "serve":
        return _run_serve(args)

    settings = get_settings()

    if args.command == "config":
        return _run_config(settings)

    if args.command == "health":
        return asyncio.run(_run_health(settings))

    if args.command == "console":
        return asyncio.run(_run_console(args, settings))

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())

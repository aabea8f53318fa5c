"""Canispect CLI — WASM security analysis and audit registry client.

Usage:
    canispect login --pem <path>        Log in with an Ed25519 identity file
    canispect logout                    Forget the stored session
    canispect whoami                    Print the current principal
    canispect analyze <module.wasm>     Analyze a WASM module
    canispect audit <audit-id>          Show one audit record
    canispect history --canister-id ID  List audits of a canister
    canispect mine                      List audits submitted by you
    canispect stats                     Registry-wide statistics
    canispect config                    Show current configuration

Examples:
    canispect analyze ./target/backend.wasm --name backend --submit
    canispect history --canister-id bkyz2-fmaaa-aaaaa-qaaaq-cai --format json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator

from canispect import __version__
from canispect.core.config import Settings, get_settings
from canispect.core.errors import CanispectError
from canispect.core.logging import setup_logging
from canispect.core.principal import Principal, PrincipalError
from canispect.core.types import (
    AnalysisMetadata,
    AuditRecord,
    AuditSummary,
    SecurityAnalysisResult,
    WasmAnalysisRequest,
)
from canispect.gateway.client import GatewayClient
from canispect.session.manager import SessionManager
from canispect.session.providers import PemFileChannel
from canispect.session.storage import FileStorage
from canispect.transport.factory import TransportFactory


# ── Coloured output helpers ──────────────────────────────────────────────────

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"

_SEV_COLOR = {
    "critical": _RED,
    "high": "\033[38;5;208m",  # orange
    "medium": _YELLOW,
    "low": _CYAN,
    "info": _DIM,
    "unknown": _DIM,
}


def _c(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


def _badge(severity: str) -> str:
    return _c(f" {severity.upper()} ", _SEV_COLOR.get(severity, "") + _BOLD)


def _fmt_ms(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


BANNER = f"""
{_BOLD}{_CYAN}canispect{_RESET} {_DIM}— canister WASM security analysis — v{__version__}{_RESET}
"""


# ── CLI argument parser ─────────────────────────────────────────────────────


def _principal_arg(text: str) -> Principal:
    try:
        return Principal.from_text(text)
    except PrincipalError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _add_format(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--format",
        "-f",
        default="table",
        choices=["table", "json"],
        help="Output format (default: table)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="canispect",
        description="Canispect — canister WASM security analysis client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--no-banner", action="store_true", help="Suppress the startup banner")
    parser.add_argument("--quiet", "-q", action="store_true", help="Minimal output")

    sub = parser.add_subparsers(dest="command")

    # ── session ──────────────────────────────────────────────────────────────
    login_p = sub.add_parser("login", help="Log in with an identity file")
    login_p.add_argument("--pem", required=True, help="Path to an Ed25519 PKCS#8 PEM identity")
    sub.add_parser("logout", help="Forget the stored session")
    sub.add_parser("whoami", help="Print the current principal")

    # ── analyze ──────────────────────────────────────────────────────────────
    analyze_p = sub.add_parser("analyze", help="Analyze a WASM module")
    analyze_p.add_argument("path", help="Path to the .wasm module")
    analyze_p.add_argument("--canister-id", type=_principal_arg, help="Canister the module belongs to")
    analyze_p.add_argument("--name", help="Module name")
    analyze_p.add_argument("--description", help="Module description")
    analyze_p.add_argument("--version-tag", help="Module version")
    analyze_p.add_argument("--submit", action="store_true", help="Submit the result to the audit registry")
    _add_format(analyze_p)

    # ── registry ─────────────────────────────────────────────────────────────
    audit_p = sub.add_parser("audit", help="Show one audit record")
    audit_p.add_argument("audit_id", help="Audit ID")
    _add_format(audit_p)

    history_p = sub.add_parser("history", help="List audits of a canister")
    history_p.add_argument("--canister-id", type=_principal_arg, help="Canister to list audits for")
    _add_format(history_p)

    mine_p = sub.add_parser("mine", help="List audits you submitted")
    _add_format(mine_p)

    stats_p = sub.add_parser("stats", help="Registry-wide audit statistics")
    _add_format(stats_p)

    # ── config ───────────────────────────────────────────────────────────────
    sub.add_parser("config", help="Show current configuration")

    return parser


# ── Wiring ───────────────────────────────────────────────────────────────────


def build_session(settings: Settings, pem: str | None = None) -> SessionManager:
    channel = PemFileChannel(pem) if pem else None
    return SessionManager(settings, storage=FileStorage(settings.session_path), channel=channel)


@asynccontextmanager
async def open_gateway(settings: Settings) -> AsyncIterator[tuple[SessionManager, GatewayClient]]:
    session = build_session(settings)
    await session.init()
    async with TransportFactory(session, settings) as transports:
        yield session, GatewayClient(session, transports)


# ── Output ───────────────────────────────────────────────────────────────────


def _dump(model: Any) -> str:
    if isinstance(model, list):
        return json.dumps([m.model_dump(mode="json") for m in model], indent=2)
    return json.dumps(model.model_dump(mode="json"), indent=2)


def _print_analysis(result: SecurityAnalysisResult, quiet: bool = False) -> None:
    sev = result.overall_severity.value
    print(f"\n{_BOLD}Analysis complete{_RESET} — {_badge(sev)}")
    print(f"  WASM hash: {_c(result.wasm_hash, _DIM)}")
    print(f"  Analyzed:  {_fmt_ms(result.analysis_timestamp_ms)}")
    metrics = result.static_analysis.metrics
    print(
        f"  Size: {metrics.file_size_bytes} bytes"
        f"  |  ~LOC: {metrics.estimated_lines_of_code}"
        f"  |  Functions: {metrics.function_count}"
        f"  |  Complexity: {metrics.complexity_score}\n"
    )

    findings = result.static_analysis.vulnerabilities_found
    if not findings:
        print(_c("  ✓ No static findings.", _GREEN))
    for i, f in enumerate(findings, 1):
        loc = _c(f"  {f.location}", _DIM) if f.location else ""
        print(f"  {_DIM}{i:>3}.{_RESET} {_badge(f.severity.value)} {_c(f.category, _BOLD)} {f.message}{loc}")
        print(f"       {_DIM}tool: {f.tool}{_RESET}")

    if quiet:
        return
    print(f"\n{_BOLD}AI summary{_RESET} {_DIM}(confidence {result.ai_analysis.confidence_score:.0%}){_RESET}")
    print(f"  {result.ai_analysis.summary}")
    if result.recommendations:
        print(f"\n{_BOLD}Recommendations{_RESET}")
        for rec in result.recommendations:
            print(f"  • {rec}")
    print()


def _print_summaries(audits: list[AuditSummary]) -> None:
    if not audits:
        print(_c("  No audits found.", _DIM))
        return
    for a in audits:
        canister = a.canister_id.to_text() if a.canister_id else "-"
        print(
            f"  {_c(a.id, _BOLD)}  {_badge(a.severity.value)}  {a.status:<14s}"
            f"  findings: {a.findings_count:<3d}  canister: {canister}  {_c(_fmt_ms(a.audit_timestamp_ms), _DIM)}"
        )


def _print_record(record: AuditRecord) -> None:
    print(f"\n{_BOLD}Audit {record.id}{_RESET} — {_badge(record.severity.value)}  {record.status}")
    print(f"  Auditor:   {record.auditor}")
    print(f"  Canister:  {record.canister_id or '-'}")
    print(f"  WASM hash: {_c(record.wasm_hash, _DIM)}")
    print(f"  Audited:   {_fmt_ms(record.audit_timestamp_ms)}")
    print(f"  Tools:     {', '.join(record.metadata.tools_used) or '-'}")
    print(f"\n  {record.ai_summary}\n")
    for i, f in enumerate(record.findings, 1):
        print(f"  {_DIM}{i:>3}.{_RESET} {_badge(f.severity.value)} {_c(f.title, _BOLD)} {_DIM}[{f.category}]{_RESET}")
        print(f"       {f.description}")
        print(f"       {_DIM}Fix: {f.recommendation}{_RESET}")
    print()


# ── Commands ─────────────────────────────────────────────────────────────────


async def _run_login(args: argparse.Namespace, settings: Settings) -> int:
    session = build_session(settings, pem=args.pem)
    await session.login()
    print(f"  Logged in as {_c(str(session.get_state().principal), _CYAN)}")
    return 0


async def _run_logout(args: argparse.Namespace, settings: Settings) -> int:
    session = build_session(settings)
    await session.init()
    await session.logout()
    if not args.quiet:
        print("  Logged out.")
    return 0


async def _run_whoami(args: argparse.Namespace, settings: Settings) -> int:
    session = build_session(settings)
    await session.init()
    state = session.get_state()
    if state.is_authenticated:
        print(state.principal)
    else:
        print(f"{Principal.anonymous()} {_c('(anonymous)', _DIM)}")
    return 0


async def _run_analyze(args: argparse.Namespace, settings: Settings) -> int:
    path = Path(args.path)
    if not path.is_file():
        print(_c(f"Error: '{path}' is not a file.", _RED), file=sys.stderr)
        return 1

    metadata = None
    if args.name or args.description or args.version_tag:
        metadata = AnalysisMetadata(name=args.name, description=args.description, version=args.version_tag)
    request = WasmAnalysisRequest(wasm_bytes=path.read_bytes(), canister_id=args.canister_id, metadata=metadata)

    async with open_gateway(settings) as (_, gateway):
        if not args.quiet:
            print(f"  Analyzing {_c(str(path), _CYAN)} ({len(request.wasm_bytes)} bytes)…")
        start = time.monotonic()
        result = await gateway.analyze_wasm(request)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        if args.format == "json":
            print(_dump(result))
        else:
            _print_analysis(result, quiet=args.quiet)

        if args.submit:
            audit_id = await gateway.submit_audit_record(
                result, canister_id=args.canister_id, analysis_duration_ms=elapsed_ms
            )
            print(f"  Submitted audit {_c(audit_id, _CYAN)}", file=sys.stderr if args.format == "json" else sys.stdout)

    # Exit code: 1 if the module is rated critical/high
    return 1 if result.overall_severity.value in ("critical", "high") else 0


async def _run_audit(args: argparse.Namespace, settings: Settings) -> int:
    async with open_gateway(settings) as (_, gateway):
        record = await gateway.get_audit_record(args.audit_id)
    if record is None:
        print(_c(f"Audit {args.audit_id} not found.", _YELLOW), file=sys.stderr)
        return 1
    if args.format == "json":
        print(_dump(record))
    else:
        _print_record(record)
    return 0


async def _run_listing(args: argparse.Namespace, settings: Settings) -> int:
    async with open_gateway(settings) as (session, gateway):
        if args.command == "history":
            if args.canister_id is None and not args.quiet:
                print(_c("  Listing recent audits is not supported; pass --canister-id.", _YELLOW), file=sys.stderr)
            audits = await gateway.get_audit_history(args.canister_id)
        else:
            if not session.get_state().is_authenticated and not args.quiet:
                print(_c("  Not logged in; run `canispect login --pem <file>`.", _YELLOW), file=sys.stderr)
            audits = await gateway.get_my_audits()
    if args.format == "json":
        print(_dump(audits))
    else:
        _print_summaries(audits)
    return 0


async def _run_stats(args: argparse.Namespace, settings: Settings) -> int:
    async with open_gateway(settings) as (_, gateway):
        stats = await gateway.get_audit_statistics()
    if args.format == "json":
        print(_dump(stats))
    else:
        print(f"\n{_BOLD}Audit registry{_RESET}")
        print(f"  Total: {stats.total}  |  Completed: {stats.completed}")
        print(f"  {_badge('critical')} {stats.critical}  {_badge('high')} {stats.high}\n")
    return 0


def _run_config(settings: Settings | None = None) -> int:
    """Print current settings (redacted)."""
    s = settings or get_settings()
    print(f"\n{_BOLD}Canispect Configuration{_RESET}\n")
    for field_name in sorted(type(s).model_fields.keys()):
        val = getattr(s, field_name, "")
        if any(kw in field_name for kw in ("password", "secret", "token")):
            val = "****" if val else "(not set)"
        print(f"  {_DIM}{field_name}:{_RESET}  {val}")
    print(f"  {_DIM}identity_provider_url:{_RESET}  {s.identity_provider_url}")
    print()
    return 0


_COMMANDS = {
    "login": _run_login,
    "logout": _run_logout,
    "whoami": _run_whoami,
    "analyze": _run_analyze,
    "audit": _run_audit,
    "history": _run_listing,
    "mine": _run_listing,
    "stats": _run_stats,
}


# ── Entrypoint ───────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"canispect {__version__}")
        return 0

    if not args.no_banner and not args.quiet:
        print(BANNER, file=sys.stderr)

    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    setup_logging(settings.app_env, settings.log_level, settings.log_format)

    if args.command == "config":
        return _run_config(settings)

    command = _COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 0

    try:
        return asyncio.run(command(args, settings))
    except CanispectError as exc:
        print(_c(f"Error [{exc.code.value}]: {exc.message}", _RED), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

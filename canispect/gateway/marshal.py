"""Marshaling between Python values and the IDL wire encoding.

Wire conventions:

- ``opt T``: ``[]`` when absent, ``[value]`` when present
- ``vec nat8``: a list of byte values, not a packed blob
- ``nat`` / ``nat64``: arbitrary-precision integers (JSON numbers, or decimal strings)
- ``principal``: canonical textual form
- variants: a single-key object ``{"Critical": null}``; plain strings are accepted too

Every decoder raises :class:`MalformedResponse` on a shape violation and
never returns a partially decoded value.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from pydantic import ValidationError

from canispect.core.errors import MalformedResponse
from canispect.core.principal import Principal, PrincipalError
from canispect.core.types import (
    AiAnalysisResult,
    AnalysisMetadata,
    AuditMetadata,
    AuditRecord,
    AuditStatistics,
    AuditSummary,
    CodeMetrics,
    SecurityAnalysisResult,
    SecurityFinding,
    Severity,
    StaticAnalysisResult,
    StaticFinding,
    WasmAnalysisRequest,
)

T = TypeVar("T")
U = TypeVar("U")

_SEVERITY_BY_TAG = {s.value: s for s in Severity if s is not Severity.UNKNOWN}


# ── Primitives ───────────────────────────────────────────────────────────────


def to_opt(value: T | None, encode: Callable[[T], Any] | None = None) -> list[Any]:
    """Encode an optional value as a zero- or one-element list."""
    if value is None:
        return []
    return [encode(value) if encode else value]


def from_opt(wire: Any, decode: Callable[[Any], U] | None = None) -> U | None:
    """Decode a zero- or one-element list back into an optional value."""
    if not isinstance(wire, list):
        raise MalformedResponse(f"optional must be a sequence, got {type(wire).__name__}")
    if len(wire) == 0:
        return None
    if len(wire) > 1:
        raise MalformedResponse(f"optional must have at most one element, got {len(wire)}")
    return decode(wire[0]) if decode else wire[0]


def encode_bytes(data: bytes) -> list[int]:
    return list(data)


def decode_bytes(wire: Any) -> bytes:
    if not isinstance(wire, list):
        raise MalformedResponse(f"byte sequence must be a list, got {type(wire).__name__}")
    try:
        return bytes(wire)
    except (TypeError, ValueError) as exc:
        raise MalformedResponse(f"invalid byte sequence: {exc}", cause=exc) from exc


def decode_nat(wire: Any) -> int:
    """Decode a non-negative arbitrary-precision integer."""
    if isinstance(wire, bool):
        raise MalformedResponse("expected a natural number, got a boolean")
    if isinstance(wire, int):
        value = wire
    elif isinstance(wire, str) and wire.isascii() and wire.isdigit():
        value = int(wire)
    else:
        raise MalformedResponse(f"expected a natural number, got {wire!r}")
    if value < 0:
        raise MalformedResponse(f"expected a natural number, got {value}")
    return value


def encode_principal(principal: Principal) -> str:
    return principal.to_text()


def decode_principal(wire: Any) -> Principal:
    if not isinstance(wire, str):
        raise MalformedResponse(f"principal must be text, got {type(wire).__name__}")
    try:
        return Principal.from_text(wire)
    except PrincipalError as exc:
        raise MalformedResponse(str(exc), cause=exc) from exc


def decode_vec(wire: Any, decode: Callable[[Any], U]) -> list[U]:
    if not isinstance(wire, list):
        raise MalformedResponse(f"expected a sequence, got {type(wire).__name__}")
    return [decode(item) for item in wire]


# ── Variants ─────────────────────────────────────────────────────────────────


def variant_tag(wire: Any) -> str | None:
    """Return the variant name of a plain string or single-key tagged object."""
    if isinstance(wire, str):
        return wire or None
    if isinstance(wire, dict) and len(wire) == 1:
        (tag,) = wire.keys()
        return tag if isinstance(tag, str) and tag else None
    return None


def decode_severity(wire: Any) -> Severity:
    """Total severity decoder: anything unrecognized is ``Severity.UNKNOWN``."""
    tag = variant_tag(wire)
    if tag is None:
        return Severity.UNKNOWN
    return _SEVERITY_BY_TAG.get(tag.lower(), Severity.UNKNOWN)


def decode_enum_text(wire: Any) -> str:
    """Decode an enum-like variant (status, category) to its variant name."""
    tag = variant_tag(wire)
    if tag is None:
        raise MalformedResponse(f"expected a variant, got {wire!r}")
    return tag


# ── Requests ─────────────────────────────────────────────────────────────────


def encode_analysis_metadata(metadata: AnalysisMetadata) -> dict[str, Any]:
    return {
        "name": to_opt(metadata.name),
        "description": to_opt(metadata.description),
        "version": to_opt(metadata.version),
    }


def encode_analysis_request(request: WasmAnalysisRequest) -> dict[str, Any]:
    return {
        "wasm_bytes": encode_bytes(request.wasm_bytes),
        "canister_id": to_opt(request.canister_id, encode_principal),
        "metadata": to_opt(request.metadata, encode_analysis_metadata),
    }


def encode_audit_metadata(metadata: AuditMetadata) -> dict[str, Any]:
    return {
        "tools_used": list(metadata.tools_used),
        "analysis_duration_ms": metadata.analysis_duration_ms,
        "lines_of_code": to_opt(metadata.lines_of_code),
        "file_size_bytes": metadata.file_size_bytes,
    }


def encode_audit_request(
    canister_id: Principal | None,
    metadata: AuditMetadata | None,
    wasm_bytes: bytes = b"",
) -> dict[str, Any]:
    return {
        "canister_id": to_opt(canister_id, encode_principal),
        "wasm_bytes": encode_bytes(wasm_bytes),
        "metadata": to_opt(metadata, encode_audit_metadata),
    }


# ── Responses ────────────────────────────────────────────────────────────────


def _record(wire: Any, what: str) -> dict[str, Any]:
    if not isinstance(wire, dict):
        raise MalformedResponse(f"{what} must be a record, got {type(wire).__name__}")
    return wire


def _decoding(what: str, build: Callable[[dict[str, Any]], T], wire: Any) -> T:
    record = _record(wire, what)
    try:
        return build(record)
    except KeyError as exc:
        raise MalformedResponse(f"{what} is missing field {exc}", cause=exc) from exc
    except ValidationError as exc:
        raise MalformedResponse(f"{what} failed validation: {exc}", cause=exc) from exc


def decode_static_finding(wire: Any) -> StaticFinding:
    return _decoding(
        "StaticFinding",
        lambda r: StaticFinding(
            tool=r["tool"],
            severity=decode_severity(r["severity"]),
            category=r["category"],
            message=r["message"],
            location=from_opt(r["location"]),
        ),
        wire,
    )


def decode_code_metrics(wire: Any) -> CodeMetrics:
    return _decoding(
        "CodeMetrics",
        lambda r: CodeMetrics(
            file_size_bytes=decode_nat(r["file_size_bytes"]),
            estimated_lines_of_code=decode_nat(r["estimated_lines_of_code"]),
            function_count=decode_nat(r["function_count"]),
            complexity_score=decode_nat(r["complexity_score"]),
        ),
        wire,
    )


def decode_analysis_result(wire: Any) -> SecurityAnalysisResult:
    def build(r: dict[str, Any]) -> SecurityAnalysisResult:
        static = _record(r["static_analysis"], "StaticAnalysisResult")
        ai = _record(r["ai_analysis"], "AiAnalysisResult")
        return SecurityAnalysisResult(
            wasm_hash=r["wasm_hash"],
            static_analysis=StaticAnalysisResult(
                tools_used=static["tools_used"],
                vulnerabilities_found=decode_vec(static["vulnerabilities_found"], decode_static_finding),
                metrics=decode_code_metrics(static["metrics"]),
            ),
            ai_analysis=AiAnalysisResult(
                summary=ai["summary"],
                identified_patterns=ai["identified_patterns"],
                security_concerns=ai["security_concerns"],
                recommendations=ai["recommendations"],
                confidence_score=ai["confidence_score"],
            ),
            overall_severity=decode_severity(r["overall_severity"]),
            recommendations=r["recommendations"],
            analysis_timestamp=decode_nat(r["analysis_timestamp"]),
        )

    return _decoding("SecurityAnalysisResult", build, wire)


def decode_security_finding(wire: Any) -> SecurityFinding:
    return _decoding(
        "SecurityFinding",
        lambda r: SecurityFinding(
            id=r["id"],
            severity=decode_severity(r["severity"]),
            category=decode_enum_text(r["category"]),
            title=r["title"],
            description=r["description"],
            recommendation=r["recommendation"],
            location=from_opt(r["location"]),
        ),
        wire,
    )


def decode_audit_metadata(wire: Any) -> AuditMetadata:
    return _decoding(
        "AuditMetadata",
        lambda r: AuditMetadata(
            tools_used=r["tools_used"],
            analysis_duration_ms=decode_nat(r["analysis_duration_ms"]),
            lines_of_code=from_opt(r["lines_of_code"], decode_nat),
            file_size_bytes=decode_nat(r["file_size_bytes"]),
        ),
        wire,
    )


def decode_audit_record(wire: Any) -> AuditRecord:
    return _decoding(
        "AuditRecord",
        lambda r: AuditRecord(
            id=r["id"],
            canister_id=from_opt(r["canister_id"], decode_principal),
            wasm_hash=r["wasm_hash"],
            audit_timestamp=decode_nat(r["audit_timestamp"]),
            auditor=decode_principal(r["auditor"]),
            severity=decode_severity(r["severity"]),
            findings=decode_vec(r["findings"], decode_security_finding),
            ai_summary=r["ai_summary"],
            status=decode_enum_text(r["status"]),
            metadata=decode_audit_metadata(r["metadata"]),
        ),
        wire,
    )


def decode_audit_summary(wire: Any) -> AuditSummary:
    return _decoding(
        "AuditSummary",
        lambda r: AuditSummary(
            id=r["id"],
            canister_id=from_opt(r["canister_id"], decode_principal),
            wasm_hash=r["wasm_hash"],
            audit_timestamp=decode_nat(r["audit_timestamp"]),
            auditor=decode_principal(r["auditor"]),
            severity=decode_severity(r["severity"]),
            findings_count=decode_nat(r["findings_count"]),
            status=decode_enum_text(r["status"]),
        ),
        wire,
    )


def decode_audit_statistics(wire: Any) -> AuditStatistics:
    if not isinstance(wire, list) or len(wire) != 4:
        raise MalformedResponse(f"audit statistics must be a 4-tuple, got {wire!r}")
    total, completed, critical, high = (decode_nat(v) for v in wire)
    return AuditStatistics(total=total, completed=completed, critical=critical, high=high)


def decode_text(wire: Any) -> str:
    if not isinstance(wire, str):
        raise MalformedResponse(f"expected text, got {type(wire).__name__}")
    return wire

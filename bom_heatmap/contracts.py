"""Versioned JSON contracts for bom-heatmap machine output."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

from bom_heatmap import __version__ as TOOL_VERSION
from bom_heatmap.models import BomRow, ParseResult

CONTRACT_VERSIONS = {
    "bom_heatmap.import": "1.0.0",
    "bom_heatmap.tree": "1.0.0",
    "bom_heatmap.export": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    input_path: Optional[Path],
    status: str = "ok",
    output_path: Optional[Path] = None,
    metrics: Optional[dict[str, Any]] = None,
    warnings: Optional[list[str]] = None,
) -> dict[str, Any]:
    return {
        "tool": "bom-heatmap",
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path) if input_path else None,
        "output_file": str(output_path) if output_path else None,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def import_status(result: ParseResult) -> str:
    if not result.success:
        return "failed"
    return "warnings" if result.errors else "ok"


def build_import_payload(result: ParseResult, *, input_path: Optional[Path] = None) -> dict[str, Any]:
    return {
        "contract": build_contract("bom_heatmap.import"),
        "schema_version": CONTRACT_VERSIONS["bom_heatmap.import"],
        "tool_version": TOOL_VERSION,
        "success": result.success,
        "rows": [row.to_dict() for row in result.data],
        "errors": list(result.errors),
        "run_summary": build_run_summary(
            command="import",
            input_path=input_path,
            status=import_status(result),
            metrics={"row_count": len(result.data), "error_count": len(result.errors)},
            warnings=result.errors if result.success else [],
        ),
    }


def build_tree_payload(
    tree: Sequence[BomRow],
    result: ParseResult,
    *,
    input_path: Optional[Path] = None,
) -> dict[str, Any]:
    return {
        "contract": build_contract("bom_heatmap.tree"),
        "schema_version": CONTRACT_VERSIONS["bom_heatmap.tree"],
        "tool_version": TOOL_VERSION,
        "categories": [node.to_dict() for node in tree],
        "run_summary": build_run_summary(
            command="tree",
            input_path=input_path,
            status=import_status(result),
            metrics={"category_count": len(tree), "row_count": len(result.data)},
            warnings=result.errors,
        ),
    }


def build_export_payload(
    result: ParseResult,
    *,
    input_path: Path,
    output_path: Path,
    include_tree: bool,
) -> dict[str, Any]:
    return {
        "contract": build_contract("bom_heatmap.export"),
        "schema_version": CONTRACT_VERSIONS["bom_heatmap.export"],
        "tool_version": TOOL_VERSION,
        "run_summary": build_run_summary(
            command="export",
            input_path=input_path,
            output_path=output_path,
            status=import_status(result),
            metrics={"row_count": len(result.data), "hierarchy_sheet": include_tree},
            warnings=result.errors,
        ),
    }

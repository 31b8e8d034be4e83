from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from bom_heatmap import __version__ as TOOL_VERSION
from bom_heatmap.config import DEFAULT_CONFIG_NAME, ConfigError, Settings, load_settings, starter_config
from bom_heatmap.contracts import build_export_payload, build_import_payload, build_tree_payload
from bom_heatmap.heatmap import calculate_heatmap_color, diff_text_color, format_supplier_rate, supplier_cell_tooltip
from bom_heatmap.loader import parse_csv_file
from bom_heatmap.models import SUPPLIER_KEYS, ParseResult
from bom_heatmap.numbers import calculate_percentage_diff, format_currency, format_percentage_diff, format_quantity
from bom_heatmap.table import display_name, preview_rows, supplier_label
from bom_heatmap.tree import build_tree, iter_tree
from bom_heatmap.workbook import write_heatmap_workbook

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_IMPORT_FAILED = 2
EXIT_IMPORT_WARNINGS = 3

OUTPUT_STAMP_ENV = "BOM_HEATMAP_OUTPUT_STAMP"

logger = logging.getLogger("bom_heatmap.cli")


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class BomHeatmapArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def timestamp_token() -> str:
    override = os.environ.get(OUTPUT_STAMP_ENV)
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_text(path: Path, payload: str) -> None:
    ensure_parent(path)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def safe_output_path(path: Path) -> Path:
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def configure_logging(args: argparse.Namespace) -> None:
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")


def resolve_settings(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        return load_settings(config_path)
    except ConfigError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc


def load_input(args: argparse.Namespace) -> tuple[Path, ParseResult]:
    input_path = Path(args.input)
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)
    settings = resolve_settings(args)
    result = parse_csv_file(input_path, max_bytes=settings.max_file_bytes)
    logger.debug("Import of %s finished: success=%s rows=%d", input_path, result.success, len(result.data))
    return input_path, result


def exit_code_for_result(result: ParseResult) -> int:
    if not result.success:
        return EXIT_IMPORT_FAILED
    if result.errors:
        return EXIT_IMPORT_WARNINGS
    return EXIT_SUCCESS


def render_errors(result: ParseResult) -> str:
    if not result.success:
        return "\n".join(["Import failed:", *[f"  - {message}" for message in result.errors]])
    if not result.errors:
        return ""
    return "\n".join([f"Warnings ({len(result.errors)}):", *[f"  - {message}" for message in result.errors]])


def render_import_text(result: ParseResult, input_path: Path) -> str:
    if not result.success:
        return render_errors(result) + "\n"
    lines = [f"{len(result.data)} rows parsed from {input_path.name}"]
    for row in preview_rows(result.data):
        lines.append(
            f"  {row.id}: {row.item_code} | {display_name(row)} | qty {format_quantity(row.quantity)}"
            f" | est {format_currency(row.estimated_rate)}"
        )
    warnings = render_errors(result)
    if warnings:
        lines.append(warnings)
    return "\n".join(lines) + "\n"


def render_tree_text(tree, max_depth: Optional[int] = None) -> str:
    lines = []
    for node, depth in iter_tree(tree):
        if max_depth is not None and depth >= max_depth:
            continue
        marker = "+" if node.is_aggregate else "-"
        lines.append(
            f"{'  ' * depth}{marker} {display_name(node)}"
            f"  qty {format_quantity(node.quantity)}  est {format_currency(node.estimated_rate)}"
        )
    return "\n".join(lines) + "\n"


def render_score_text(row) -> str:
    lines = [f"{row.id}: {row.item_code} ({display_name(row)})", f"Estimated: {format_currency(row.estimated_rate)}"]
    for key in SUPPLIER_KEYS:
        value = row.suppliers.get(key)
        color = calculate_heatmap_color(value, row)
        lines.append(
            f"  {supplier_label(key)}: {format_supplier_rate(value, row.estimated_rate)}"
            f"  background {color.background_color}  text {color.text_color}"
        )
    return "\n".join(lines) + "\n"


def score_payload(row) -> dict[str, Any]:
    cells = []
    for key in SUPPLIER_KEYS:
        value = row.suppliers.get(key)
        color = calculate_heatmap_color(value, row)
        diff = calculate_percentage_diff(value, row.estimated_rate)
        cells.append(
            {
                "supplier": key,
                "rate": value,
                "background_color": color.background_color,
                "text_color": color.text_color,
                "percentage_diff": diff,
                "percentage_diff_text": format_percentage_diff(diff),
                "diff_text_color": diff_text_color(diff),
                "tooltip": supplier_cell_tooltip(value, row.estimated_rate),
            }
        )
    return {"id": row.id, "item_code": row.item_code, "estimated_rate": row.estimated_rate, "cells": cells}


def build_parser() -> argparse.ArgumentParser:
    parser = BomHeatmapArgumentParser(prog="bom-heatmap", description="BOM CSV import, rollups and supplier heatmaps.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("input", help="BOM CSV path")
        sub.add_argument("--config", help="JSON settings file")
        sub.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
        sub.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    import_cmd = subparsers.add_parser("import", help="Parse and validate a BOM CSV.")
    add_common(import_cmd)
    import_cmd.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    import_cmd.add_argument("--output", help="Write the JSON import payload to this path")

    tree = subparsers.add_parser("tree", help="Show the category hierarchy with rolled-up rates.")
    add_common(tree)
    tree.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    tree.add_argument("--depth", type=int, default=None, help="Only show nodes shallower than this depth")

    export = subparsers.add_parser("export", help="Write an xlsx workbook with heatmap colouring.")
    add_common(export)
    export.add_argument("output", nargs="?", default=None, help="Output .xlsx path")
    export.add_argument("--no-tree", dest="no_tree", action="store_true", help="Skip the hierarchy sheet")
    export.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    score = subparsers.add_parser("score", help="Show heatmap colours for one imported row.")
    add_common(score)
    score.add_argument("--row", dest="row_id", required=True, help="Row id, e.g. row-0")
    score.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default=DEFAULT_CONFIG_NAME, help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def run_import(args: argparse.Namespace) -> int:
    input_path, result = load_input(args)
    payload = build_import_payload(result, input_path=input_path)
    if args.output:
        output_path = safe_output_path(Path(args.output))
        write_json(output_path, payload)
        emit_human(f"Import payload written: {output_path}", quiet=args.quiet)
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(render_import_text(result, input_path).rstrip(), quiet=args.quiet and result.success)
    return exit_code_for_result(result)


def run_tree(args: argparse.Namespace) -> int:
    input_path, result = load_input(args)
    if not result.success:
        eprint(render_errors(result))
        return EXIT_IMPORT_FAILED
    if args.depth is not None and args.depth < 1:
        raise CliError("--depth must be at least 1", EXIT_COMMAND_ERROR)
    tree = build_tree(result.data)
    if args.json:
        maybe_emit_json_stdout(build_tree_payload(tree, result, input_path=input_path), True)
    else:
        print(render_tree_text(tree, args.depth).rstrip())
        if result.errors:
            emit_human(render_errors(result), quiet=args.quiet)
    return exit_code_for_result(result)


def default_export_path(input_path: Path) -> Path:
    return Path.cwd() / "bom-heatmap-output" / f"{input_path.stem}-{timestamp_token()}.xlsx"


def run_export(args: argparse.Namespace) -> int:
    input_path, result = load_input(args)
    if not result.success:
        eprint(render_errors(result))
        return EXIT_IMPORT_FAILED
    output_path = Path(args.output) if args.output else default_export_path(input_path)
    if output_path.suffix.lower() != ".xlsx":
        raise CliError("Export output must be an .xlsx path", EXIT_COMMAND_ERROR)
    output_path = safe_output_path(output_path)
    tree = None if args.no_tree else build_tree(result.data)
    try:
        write_heatmap_workbook(result.data, output_path, tree=tree)
    except OSError as exc:
        raise CliError(f"Could not write workbook: {exc}", EXIT_COMMAND_ERROR) from exc
    if args.json:
        maybe_emit_json_stdout(
            build_export_payload(result, input_path=input_path, output_path=output_path, include_tree=tree is not None),
            True,
        )
    else:
        emit_human(f"Heatmap workbook: {output_path}", quiet=args.quiet)
        if result.errors:
            emit_human(render_errors(result), quiet=args.quiet)
    return exit_code_for_result(result)


def run_score(args: argparse.Namespace) -> int:
    _, result = load_input(args)
    if not result.success:
        eprint(render_errors(result))
        return EXIT_IMPORT_FAILED
    row = next((candidate for candidate in result.data if candidate.id == args.row_id), None)
    if row is None:
        raise CliError(f"Unknown row id: {args.row_id}", EXIT_COMMAND_ERROR)
    if args.json:
        maybe_emit_json_stdout(score_payload(row), True)
    else:
        print(render_score_text(row).rstrip())
    return EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_json(config_path, starter_config())
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: Optional[list[str]] = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(args)
        if args.command == "import":
            return run_import(args)
        if args.command == "tree":
            return run_tree(args)
        if args.command == "export":
            return run_export(args)
        if args.command == "score":
            return run_score(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())

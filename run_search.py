#!/usr/bin/env python3
"""
CLI entry point for batch filtering of captured webhook entries.

Supports loading NDJSON or JSON array-formatted entry dumps and applying
a single filter given on the command line, or every preset in a saved
presets file.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from webhook_search import FilterSpec, WebhookSearchEngine, load_config
from webhook_search.config import ConfigError, setup_logging


def load_entries(input_file: str) -> List[Dict[str, Any]]:
    """Load entries from NDJSON or JSON array file.

    Args:
        input_file: Path to input file (NDJSON or JSON)

    Returns:
        List of entry dictionaries

    Raises:
        ValueError: If file format is invalid
    """
    entries = []
    path = Path(input_file)

    if not path.exists():
        raise ValueError(f"Input file not found: {input_file}")

    with open(path, 'r') as f:
        content = f.read().strip()

    if not content:
        return entries

    if content.startswith('['):
        try:
            entries = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}")
        if not isinstance(entries, list):
            raise ValueError("JSON must be an array of objects")
    else:
        for line_num, line in enumerate(content.split('\n'), 1):
            line = line.strip()
            if not line:
                continue

            try:
                entry = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"Line {line_num}: Invalid JSON: {e}")
            if not isinstance(entry, dict):
                raise ValueError(f"Line {line_num}: Entry must be a JSON object")
            entries.append(entry)

    return entries


def load_presets(presets_file: str) -> Dict[str, Dict[str, Any]]:
    """Load filter presets from a JSON file.

    Accepts either the preset store format (a list of objects with "name"
    and "filters") or a plain object mapping preset names to filters.

    Args:
        presets_file: Path to presets file

    Returns:
        Dictionary mapping preset names to filter dictionaries

    Raises:
        ValueError: If file format is invalid
    """
    path = Path(presets_file)

    if not path.exists():
        raise ValueError(f"Presets file not found: {presets_file}")

    with open(path, 'r') as f:
        try:
            content = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in presets file: {e}")

    if isinstance(content, list):
        presets = {}
        for i, preset in enumerate(content):
            if not isinstance(preset, dict) or 'name' not in preset:
                raise ValueError(f"Preset {i}: must be an object with a name")
            presets[preset['name']] = preset.get('filters') or {}
        return presets

    if isinstance(content, dict):
        for name, filters in content.items():
            if not isinstance(filters, dict):
                raise ValueError(f"Preset '{name}': filters must be an object")
        return content

    raise ValueError("Presets file must contain a JSON array or object")


def build_engine(entries: List[Dict[str, Any]], config_path: str | None = None) -> WebhookSearchEngine:
    engine = WebhookSearchEngine(load_config(config_path))
    engine.submit_entries(entries)
    return engine


def execute_single_filter(
    engine: WebhookSearchEngine,
    spec: FilterSpec,
    verbose: bool = False,
) -> Dict[str, Any]:
    """Apply one filter and build the JSON output.

    Args:
        engine: Engine holding the loaded entries
        spec: Filter to apply
        verbose: Whether to print verbose output

    Returns:
        Output dictionary with counts, timing and matching entries
    """
    if verbose:
        print(f"Applying filter {spec.cache_key()!r} to {engine.entry_count} entries", file=sys.stderr)

    result = engine.apply_filters(spec)
    return {
        "total_matches": result.total_matches,
        "total_entries": result.total_entries,
        "execution_time_ms": result.execution_time_ms,
        "matches": [
            dict(id=entry_id, **engine.get_entry(entry_id).to_dict())
            for entry_id in result.sorted_ids()
        ],
    }


def execute_presets(
    engine: WebhookSearchEngine,
    presets_file: str,
    verbose: bool = False,
) -> Dict[str, Any]:
    """Apply every preset in a file and collect per-preset results.

    Args:
        engine: Engine holding the loaded entries
        presets_file: Path to presets file
        verbose: Whether to print verbose output

    Returns:
        Dictionary mapping preset names to their results
    """
    if verbose:
        print(f"Loading presets from {presets_file}", file=sys.stderr)

    results = {}
    for name, filters in load_presets(presets_file).items():
        if verbose:
            print(f"Applying preset: {name}", file=sys.stderr)

        try:
            spec = FilterSpec.from_dict(filters)
        except ValueError as e:
            results[name] = {"status": "error", "error": str(e)}
            continue

        result = engine.apply_filters(spec)
        results[name] = {
            "status": "success",
            "total_matches": result.total_matches,
            "total_entries": result.total_entries,
            "execution_time_ms": result.execution_time_ms,
            "ids": result.sorted_ids(),
        }

    return results


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Webhook Search - filter captured webhook entries"
    )

    parser.add_argument(
        "entries",
        help="Path to entries file (NDJSON or JSON array format)",
    )

    parser.add_argument("-m", "--method", default="", help="HTTP method (case-insensitive)")
    parser.add_argument("--path", default="", help="Path segment substring")
    parser.add_argument("--ip", default="", help="Client IP substring")
    parser.add_argument("-t", "--text", default="", help="Free-text search words")
    parser.add_argument("--from", dest="time_from", help="Earliest timestamp (ISO-8601)")
    parser.add_argument("--to", dest="time_to", help="Latest timestamp (ISO-8601)")
    parser.add_argument("-j", "--jsonpath", default="", help="JSONPath predicate on the payload")

    parser.add_argument(
        "-p", "--presets",
        help="Path to presets file (JSON) for batch execution",
    )

    parser.add_argument(
        "-c", "--config",
        help="Path to YAML configuration file",
    )

    parser.add_argument(
        "-o", "--output",
        help="Output file path for results",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    args = parser.parse_args()
    setup_logging("DEBUG" if args.verbose else "WARNING")

    try:
        if args.verbose:
            print(f"Loading entries from {args.entries}", file=sys.stderr)

        entries = load_entries(args.entries)
        engine = build_engine(entries, args.config)

        if args.verbose:
            print(f"Loaded {len(entries)} entries", file=sys.stderr)

    except (ValueError, ConfigError) as e:
        print(f"Error loading entries: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.presets:
            output = execute_presets(engine, args.presets, args.verbose)
        else:
            spec = FilterSpec(
                search_text=args.text,
                method=args.method,
                path_substring=args.path,
                ip_substring=args.ip,
                time_from=args.time_from,
                time_to=args.time_to,
                json_path_expr=args.jsonpath,
            )
            output = execute_single_filter(engine, spec, args.verbose)
    except ValueError as e:
        print(json.dumps({"error": str(e)}), file=sys.stderr)
        sys.exit(1)

    text = json.dumps(output, indent=2, default=str)
    if args.output:
        Path(args.output).write_text(text)
        if args.verbose:
            print(f"Results saved to {args.output}", file=sys.stderr)
    else:
        print(text)


if __name__ == "__main__":
    main()

"""
Admin CLI for esmodeller.

Commands:
- ping: Check that the store answers
- count: Count documents matching a query
- validate: Validate a JSON document against a schema file
- schema: Print the normalized field definitions of a schema file

Usage:
    esmodeller ping --timeout-ms 500
    esmodeller count --index posts --query '{"query": {"match_all": {}}}'
    esmodeller validate --schema posts.yaml --doc post.json
    esmodeller schema --schema posts.yaml

Connection settings come from the environment (see esmodeller.config).

Invariants:
    - Failures exit non-zero
    - JSON output is deterministic (sorted keys)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

import json_log_formatter

from ..config import ModellerConfig, ObservabilityConfig
from ..errors import ModellerError
from ..registry import Modeller
from ..schema_file import load_schema_file
from ..store.base import DEFAULT_DOC_TYPE
from ..validate import dropped_fields, validate_document

logger = logging.getLogger(__name__)


def setup_logging(config: ObservabilityConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Logging configuration
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if config.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("elastic_transport").setLevel(logging.WARNING)
    logging.getLogger("elasticsearch").setLevel(logging.WARNING)


class AdminCLI:
    """CLI commands, returning (exit_code, output) so they can be tested."""

    def __init__(self, modeller: Modeller | None = None) -> None:
        self._modeller = modeller

    def _get_modeller(self) -> Modeller:
        if self._modeller is None:
            self._modeller = Modeller(ModellerConfig.from_env())
        return self._modeller

    async def ping(self, timeout_ms: int) -> tuple[int, str]:
        """Ping the store."""
        modeller = self._get_modeller()
        await modeller.connect()
        try:
            ok = await modeller.ping(timeout_ms)
        finally:
            await modeller.close()
        return (0, "ok") if ok else (1, "store did not answer")

    async def count(
        self,
        index: str,
        doc_type: str,
        query: dict[str, Any] | None,
    ) -> tuple[int, str]:
        """Count documents in an index."""
        modeller = self._get_modeller()
        await modeller.connect()
        try:
            model = modeller.create_model(index, doc_type, {})
            total = await model.count(query)
        finally:
            await modeller.close()
        return 0, str(total)

    def validate(self, schema_path: str, doc_path: str, output_format: str) -> tuple[int, str]:
        """Validate a document file against a schema file."""
        definition = load_schema_file(schema_path)
        with open(doc_path) as f:
            document = json.load(f)

        is_valid, errors = validate_document(definition.schema, document)
        dropped = dropped_fields(definition.schema, document)

        if output_format == "json":
            output = json.dumps(
                {
                    "valid": is_valid,
                    "errors": [e.to_dict() for e in errors],
                    "dropped": dropped,
                },
                indent=2,
                sort_keys=True,
            )
            return (0 if is_valid else 1), output

        lines = []
        if is_valid:
            lines.append("Document is valid")
        else:
            lines.append(f"Document validation failed with {len(errors)} error(s):")
            for error in errors:
                lines.append(f"  - {error.field} {error.message}")
        for key, suggestions in dropped.items():
            hint = f" (did you mean: {', '.join(suggestions)}?)" if suggestions else ""
            lines.append(f"  note: undeclared field '{key}' would be dropped{hint}")
        return (0 if is_valid else 1), "\n".join(lines)

    def schema(self, schema_path: str) -> tuple[int, str]:
        """Print the normalized schema."""
        definition = load_schema_file(schema_path)
        output: dict[str, Any] = {"schema": definition.schema.to_dict()}
        if definition.index:
            output["index"] = definition.index
            output["type"] = definition.doc_type
        return 0, json.dumps(output, indent=2, sort_keys=True)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the admin CLI."""
    parser = argparse.ArgumentParser(prog="esmodeller", description="esmodeller admin tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ping_parser = subparsers.add_parser("ping", help="Check that the store answers")
    ping_parser.add_argument("--timeout-ms", type=int, default=1000, help="Request timeout")

    count_parser = subparsers.add_parser("count", help="Count documents matching a query")
    count_parser.add_argument("--index", "-i", required=True, help="Index name")
    count_parser.add_argument("--type", "-t", default=DEFAULT_DOC_TYPE, help="Mapping type")
    count_parser.add_argument("--query", "-q", help="Query body as JSON")

    validate_parser = subparsers.add_parser("validate", help="Validate a document file")
    validate_parser.add_argument("--schema", "-s", required=True, help="Schema file (JSON/YAML)")
    validate_parser.add_argument("--doc", "-d", required=True, help="Document file (JSON)")
    validate_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )

    schema_parser = subparsers.add_parser("schema", help="Print normalized schema")
    schema_parser.add_argument("--schema", "-s", required=True, help="Schema file (JSON/YAML)")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(ObservabilityConfig.from_env())
    cli = AdminCLI()

    try:
        if args.command == "ping":
            code, output = asyncio.run(cli.ping(args.timeout_ms))
        elif args.command == "count":
            query = json.loads(args.query) if args.query else None
            code, output = asyncio.run(cli.count(args.index, args.type, query))
        elif args.command == "validate":
            code, output = cli.validate(args.schema, args.doc, args.format)
        else:
            code, output = cli.schema(args.schema)
    except ModellerError as e:
        print(json.dumps(e.to_dict(), sort_keys=True), file=sys.stderr)
        sys.exit(2)

    print(output)
    sys.exit(code)


if __name__ == "__main__":
    main()

"""
Command-line interface for ifcflow.

Usage:
    ifcflow validate workflow.json
    ifcflow run workflow.json --model model.json --output results.json
"""

import argparse
import asyncio
import base64
import json
import sys
from pathlib import Path
from typing import Any

from ifcflow.config import RuntimeConfig
from ifcflow.graph import CyclicGraphError, WorkflowError, WorkflowExecutor, load_workflow_json
from ifcflow.graph.node import TaggedResult
from ifcflow.graph.sorter import topological_sort
from ifcflow.observability import configure_logging
from ifcflow.runtime import EventBus
from ifcflow.services import JsonModelLoader, Services


def _read_workflow(path: str):
    return load_workflow_json(Path(path).read_text(encoding="utf-8"))


def to_jsonable(value: Any) -> Any:
    """Convert node results into something json.dumps accepts."""
    if isinstance(value, TaggedResult):
        return to_jsonable(value.to_dict())
    if isinstance(value, bytes):
        return {"encoding": "base64", "data": base64.b64encode(value).decode("ascii")}
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [to_jsonable(item) for item in value]
    if value is None or isinstance(value, str | int | float | bool):
        return value
    return str(value)


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        graph = _read_workflow(args.workflow)
    except (OSError, ValueError) as e:
        print(f"✗ Cannot read workflow {args.workflow}: {e}", file=sys.stderr)
        return 1

    errors = graph.validate()
    for error in errors:
        print(f"  ✗ {error}")

    try:
        order = topological_sort(graph)
    except CyclicGraphError as e:
        print(f"  ✗ {e}")
        return 1

    if errors:
        return 1

    print(f"✓ Workflow '{graph.id}' is valid ({len(graph.nodes)} nodes)")
    print(f"  Execution order: {' → '.join(order)}")
    return 0


async def _run(args: argparse.Namespace, config: RuntimeConfig) -> dict[str, Any]:
    workflow_path = Path(args.workflow)
    graph = _read_workflow(args.workflow)

    services = Services(loader=JsonModelLoader(base_dir=workflow_path.parent), config=config)
    if args.model:
        services.remember_model(await JsonModelLoader().load(args.model))

    executor = WorkflowExecutor(
        graph,
        services=services,
        event_bus=EventBus(max_history=config.max_event_history),
        stream_id="cli",
    )
    return await executor.execute()


def cmd_run(args: argparse.Namespace) -> int:
    config = RuntimeConfig()
    if args.log_level:
        config.log_level = args.log_level.upper()
    configure_logging(level=config.log_level, format=config.log_format)

    try:
        results = asyncio.run(_run(args, config))
    except WorkflowError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        # Unreadable workflow or model file
        print(f"✗ Cannot read input: {e}", file=sys.stderr)
        return 1

    text = json.dumps(to_jsonable(results), indent=2)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        print(f"✓ Wrote {len(results)} node results to {args.output}")
    else:
        print(text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ifcflow",
        description="ifcflow - run node-based IFC workflows",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser("validate", help="Check a workflow without running it")
    validate_parser.add_argument("workflow", help="Path to the workflow JSON document")
    validate_parser.set_defaults(func=cmd_validate)

    run_parser = subparsers.add_parser("run", help="Execute a workflow once")
    run_parser.add_argument("workflow", help="Path to the workflow JSON document")
    run_parser.add_argument(
        "--model",
        help="Model JSON used when the source node has no file of its own",
    )
    run_parser.add_argument("--output", "-o", help="Write results to this file instead of stdout")
    run_parser.add_argument("--log-level", help="Override the configured log level")
    run_parser.set_defaults(func=cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

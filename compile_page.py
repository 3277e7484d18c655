"""
Compile one generated source file in memory and report the outcome.
"""
import argparse
import json
import logging
import os
import sys
from typing import Dict, Optional

# Add the project root to sys.path to allow for absolute imports
project_root = os.path.dirname(os.path.abspath(__file__))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from memcompile.compiler import InMemoryCompiler, LineMap
from memcompile.config import CompilerSettings, load_settings
from memcompile.logging_utils import configure_logging
from memcompile.runtime import ArtifactStore, MemcompileError

logger = logging.getLogger(__name__)


def load_line_map(file_path: Optional[str]) -> Optional[LineMap]:
    """Load a JSON object mapping generated lines to template lines."""
    if not file_path:
        return None
    with open(file_path, "r", encoding="utf-8") as handle:
        payload: Dict[str, int] = json.load(handle)
    return LineMap.from_mapping({int(line): int(target) for line, target in payload.items()})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compile a generated page without writing bytecode to disk.")
    parser.add_argument("source", help="Path to the generated source file")
    parser.add_argument("unit_name", help="Fully-qualified unit name, e.g. generated.pages.Index")
    parser.add_argument("--config", help="YAML file with a compiler_config section")
    parser.add_argument("--encoding", default="utf-8")
    parser.add_argument("--line-map", help="JSON object of generated line -> template line")
    parser.add_argument("--save", help="Write the compiled artifact to this path on success")
    parser.add_argument("--log-level", default="WARNING")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        settings = load_settings(args.config) if args.config else CompilerSettings()
        compiler = InMemoryCompiler.from_settings(settings, ArtifactStore())
        with open(args.source, "r", encoding=args.encoding) as handle:
            text = handle.read()
        compiler.open_source_sink(args.unit_name, args.encoding).write(text)
        result = compiler.compile(args.unit_name, load_line_map(args.line_map))
    except (MemcompileError, OSError, ValueError) as exc:
        logger.error("Compilation could not run: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if not result:
        for error in result.errors:
            print(error)
        return 1

    content = compiler.artifact_store.get(args.unit_name) or b""
    print(f"compiled {args.unit_name} ({len(content)} bytes)")
    if args.save:
        compiler.save_artifact(args.unit_name, args.save)
    return 0


if __name__ == "__main__":
    sys.exit(main())

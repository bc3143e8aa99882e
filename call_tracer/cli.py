"""
Command-line entry point — writes a dependency report for one function.

Usage:
    call-tracer -p path/to/project -i pkg/service.py -t handle_request --deep 2
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from call_tracer.shared.config import TracerSettings
from call_tracer.shared.exceptions import TracerError
from call_tracer.shared.logging import setup_logging
from call_tracer.tracer import analyze, analyze_data, find_target, load_project
from call_tracer.tracer.renderer import SnippetStyle
from call_tracer.tracer.scheduler import check_depth

logger = logging.getLogger("call_tracer.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="call-tracer",
        description="Trace the functions and types a Python function transitively depends on.",
    )
    parser.add_argument("-p", dest="project", required=True, help="Project root directory")
    parser.add_argument("-i", dest="input_file", required=True, help="File defining the target function")
    parser.add_argument("-t", dest="target", required=True, help="Target function or method name")
    parser.add_argument("-o", dest="output", default="analysis_result.txt", help="Output file for the result")
    parser.add_argument("--deep", type=int, default=0,
                        help="Recursion depth for analysis (0 means no recursion)")
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Report format")
    parser.add_argument("--style", choices=[s.value for s in SnippetStyle], default=None,
                        help="Snippet style (default from settings)")
    parser.add_argument("--strict", action="store_true",
                        help="Fail when any project file cannot be parsed")
    parser.add_argument("--log-level", default=None, help="Log level (default from settings)")
    return parser


def run(args: argparse.Namespace, settings: TracerSettings) -> str:
    """Load the project, trace the target and write the report. Returns the output path."""
    project_root = Path(args.project).expanduser().resolve()
    input_file = Path(args.input_file)
    if not input_file.is_absolute():
        input_file = project_root / input_file

    check_depth(args.deep)

    print(f"Loading project from: {project_root}")
    db = load_project(project_root, settings)
    target = find_target(db, input_file, args.target)

    style = args.style or settings.snippet_style
    if args.format == "json":
        data = analyze_data(target, str(input_file), args.deep, db, style)
        report = json.dumps(data, indent=2)
    else:
        report = analyze(target, str(input_file), args.deep, db, style)

    Path(args.output).write_text(report, encoding="utf-8")
    return args.output


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = build_parser().parse_args(argv)

    settings = TracerSettings()
    if args.strict:
        settings.strict_load = True
    setup_logging("call_tracer", level=args.log_level or settings.log_level)

    try:
        output = run(args, settings)
    except TracerError as e:
        logger.error("Analysis failed: %s", e)
        sys.exit(1)
    except OSError as e:
        logger.error("Error writing to output file: %s", e)
        sys.exit(1)

    print(f"Analysis complete. Results written to {output}")


if __name__ == "__main__":
    main()

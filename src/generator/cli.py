"""
CLI for generating unit tests from state-definition units.

    python -m src.generator.cli generate tests/implications/AcceptedImplications.py
    python -m src.generator.cli inspect tests/implications/AcceptedImplications.py
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from src.generator.errors import GeneratorError
from src.generator.resolvers.transition_resolver import ExplicitTransition
from src.generator.unit_test_generator import UnitTestGenerator

logger = logging.getLogger(__name__)


def _explicit_transition(args):
    if args.event and args.from_state:
        return ExplicitTransition(event=args.event, from_state=args.from_state)
    if args.event or args.from_state:
        logger.warning("Both --event and --from-state are needed; ignoring explicit transition")
    return None


def _generator(args):
    return UnitTestGenerator(project_root=args.project_root, templates_dir=args.templates_dir)


def cmd_generate(args):
    """Generate (and optionally write) unit tests."""
    results = _generator(args).generate(
        args.unit,
        platform=args.platform,
        state=args.state,
        transition=_explicit_transition(args),
        force_raw_mode=args.raw,
        preview=not args.write,
        output_dir=args.output_dir,
    )
    if not isinstance(results, list):
        results = [results]

    if not results:
        print("No states with setup found, nothing generated")
        return

    for result in results:
        if result.file_path:
            print(f"✅ Written: {result.file_path} ({result.mode})")
        else:
            print(f"// ===== {result.file_name} ({result.mode}) =====")
            print(result.code)
        for degradation in result.degradations:
            print(f"   ⚠️  {degradation}", file=sys.stderr)


def cmd_inspect(args):
    """Print the metadata record as JSON."""
    records = _generator(args).inspect(
        args.unit,
        platform=args.platform,
        state=args.state,
        transition=_explicit_transition(args),
    )
    if isinstance(records, list):
        payload = [record.to_record() for record in records]
    else:
        payload = records.to_record()
    print(json.dumps(payload, indent=2))


def main(argv=None):
    """Main CLI entry point. Returns the process exit status."""
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    logging.basicConfig(
        level=os.getenv("TESTGEN_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Generate unit tests from state definitions")
    parser.add_argument("--project-root", help="Project root (default: found from the unit)")
    parser.add_argument("--templates-dir", help="Template directory (default: bundled)")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    for name, help_text in (
        ("generate", "Generate unit test code"),
        ("inspect", "Print the metadata record as JSON"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("unit", help="Path of the state-definition unit")
        sub.add_argument("--platform", default="web", help="Target platform (default: web)")
        sub.add_argument("--state", help="Sub-state of a multi-state graph")
        sub.add_argument("--event", help="Event of an explicit incoming transition")
        sub.add_argument("--from-state", help="Source state of an explicit incoming transition")
        if name == "generate":
            sub.add_argument("--raw", action="store_true", help="Force raw assertion mode")
            sub.add_argument("--write", action="store_true", help="Write instead of preview")
            sub.add_argument("--output-dir", help="Output directory (default: the unit's)")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "generate": cmd_generate,
        "inspect": cmd_inspect,
    }

    try:
        commands[args.command](args)
    except GeneratorError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

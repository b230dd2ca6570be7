"""Bakepipe CLI: validate, status, run and clean a script pipeline."""

import argparse
import logging
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path
from typing import List, Optional


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _print_files(label: str, files) -> None:
    if not files:
        print(f"       {label}: (none)")
        return
    print(f"       {label}:")
    for f in files:
        print(f"         - {f.path} ({f.state})")


def _print_status(report) -> None:
    print("[STATUS] Bakepipe Status")
    if not report.scripts:
        print("   No scripts found in pipeline")
        return
    summary = f"   {_plural(report.fresh_count, 'fresh script')}"
    if report.stale_count:
        summary += f" - {_plural(report.stale_count, 'stale script')}"
    print(summary)
    print()

    width = max(len(s.script) for s in report.scripts)
    for s in report.scripts:
        marker = "[OK]" if s.state == "fresh" else "[!] "
        line = f"{marker} {s.script:<{width}} ({s.state})"
        if s.reason:
            line += f" [{s.reason}"
            if s.cause and s.cause != s.script:
                line += f": {s.cause}"
            line += "]"
        print(line)
        _print_files("inputs", s.inputs)
        _print_files("externals", s.externals)
        _print_files("outputs", s.outputs)


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point for bakepipe commands."""
    # Get version for --version argument (handle PackageNotFoundError)
    try:
        bakepipe_version = get_version("bakepipe")
    except PackageNotFoundError:
        bakepipe_version = "dev"

    parser = argparse.ArgumentParser(
        prog="bakepipe",
        description="Bakepipe: incremental builds for script pipelines"
    )
    parser.add_argument("--version", action="version", version=f"bakepipe {bakepipe_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Project root (defaults to the current directory)"
    )
    parent_parser.add_argument(
        "--manifest",
        type=Path,
        default=None,
        help="Scanner output JSON, relative to the root (defaults to 'bakepipe.json')"
    )
    parent_parser.add_argument(
        "--state-file",
        type=Path,
        default=None,
        help="Fingerprint state file, relative to the root (defaults to '.bakepipe.state')"
    )
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )
    parent_parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every staleness decision and executed script."
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    validate_parser = subparsers.add_parser(
        "validate",
        help="Check the pipeline for configuration errors",
        parents=[parent_parser]
    )
    validate_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the validation result as canonical JSON"
    )

    status_parser = subparsers.add_parser(
        "status",
        help="Show which scripts are fresh and which are stale",
        parents=[parent_parser]
    )
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the status report as canonical JSON"
    )

    run_parser = subparsers.add_parser(
        "run",
        help="Run stale scripts in dependency order",
        parents=[parent_parser]
    )
    run_parser.add_argument(
        "--interpreter",
        default=None,
        help="Program used to run each script (defaults to the current Python)"
    )
    run_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-script timeout in seconds"
    )

    subparsers.add_parser(
        "clean",
        help="Delete all artifacts and forget their fingerprints",
        parents=[parent_parser]
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Lazy imports: keep --help and --version fast
    from pydantic import ValidationError
    from ._internal.canonical_json import canonical_dumps
    from .config import BakepipeConfig
    from .kernel.errors import BakepipeError
    from . import api

    try:
        overrides = {}
        if args.root is not None:
            overrides["root"] = args.root.resolve()
        if args.manifest is not None:
            overrides["manifest"] = args.manifest
        if args.state_file is not None:
            overrides["state_file"] = args.state_file
        if getattr(args, "interpreter", None):
            overrides["interpreter"] = args.interpreter
        if getattr(args, "timeout", None) is not None:
            overrides["timeout"] = args.timeout
        config = BakepipeConfig(**overrides)

        if args.command == "validate":
            result = api.validate(config.manifest_path)
            if args.json:
                print(canonical_dumps(result.model_dump(mode="json")))
            elif not args.quiet:
                print(f"[{'OK' if result.ok else 'FAILED'}] Validation complete")
                print(f"  Errors: {len(result.errors)}")
                for issue in result.errors:
                    print(f"  - [{issue.code}] {issue.message}")
            if not result.ok:
                sys.exit(1)

        elif args.command == "status":
            report = api.status(config)
            if args.json:
                print(canonical_dumps(report.model_dump(mode="json")))
            elif not args.quiet:
                _print_status(report)

        elif args.command == "run":
            result = api.run(config)
            if not args.quiet:
                print("[OK] Run complete")
                print(f"  Executed: {len(result.executed)}")
                for script in result.executed:
                    print(f"    - {script}")
                print(f"  Skipped (fresh): {len(result.skipped)}")
                print(f"  Outputs written: {len(result.outputs)}")
                for path in result.outputs:
                    print(f"    - {path}")

        elif args.command == "clean":
            removed = api.clean(config)
            if not args.quiet:
                print("[OK] Clean complete")
                print(f"  Removed: {len(removed)}")
                for path in removed:
                    print(f"    - {path}")

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except BakepipeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValidationError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()

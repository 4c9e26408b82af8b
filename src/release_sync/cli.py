"""Command-line entry point for the two release-sync CI steps.

    release-sync parse-tracker --tracker-url https://github.com/org/tracker/issues/12
    release-sync update-manifest --manifest get_all_manifests.sh
    release-sync sync --tracker-url ... --manifest ...

In GitHub Actions the steps usually run separately: ``parse-tracker``
appends ``component_*`` variables to ``$GITHUB_ENV`` and the next step's
``update-manifest`` reads them back from its environment. ``sync`` runs both
in one process and hands the exports over directly.

Exit status is 1 on a fatal error (the message goes to stderr), 0 otherwise;
per-component problems are only logged as warnings.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Mapping
from pathlib import Path

from release_sync.config import SyncConfig, load_sync_config
from release_sync.github import GitHubClient
from release_sync.logging_config import get_logger, setup_logging
from release_sync.manifest import ManifestUpdater
from release_sync.schemas import ReleaseExports
from release_sync.tracker import ReleaseTrackerParser, TrackerError

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Export I/O
# ---------------------------------------------------------------------------


def write_github_env(exports: ReleaseExports, path: str | Path) -> None:
    """Append exports to a GitHub Actions environment file (``name=value``)."""
    with open(path, "a", encoding="utf-8") as f:
        for key, value in exports.to_env().items():
            f.write(f"{key}={value}\n")


def load_exports(path: str | Path | None, environ: Mapping[str, str]) -> ReleaseExports:
    """Read exports from a JSON file written by parse-tracker, else from env."""
    if path is None:
        return ReleaseExports.from_env(environ)
    try:
        return ReleaseExports.model_validate_json(Path(path).read_text())
    except ValueError as exc:
        raise ValueError(f"Invalid exports file {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _resolve_tracker(args: argparse.Namespace, config: SyncConfig) -> ReleaseExports:
    tracker_url = args.tracker_url or os.environ.get("TRACKER_URL")
    if not tracker_url:
        raise ValueError("No tracker URL: pass --tracker-url or set TRACKER_URL")
    parser = ReleaseTrackerParser(GitHubClient(), config)
    return asyncio.run(parser.resolve(tracker_url))


def _cmd_parse_tracker(args: argparse.Namespace, config: SyncConfig) -> int:
    exports = _resolve_tracker(args, config)

    github_env = args.github_env or os.environ.get("GITHUB_ENV")
    if github_env:
        write_github_env(exports, github_env)
        logger.info("exports_written", path=github_env, format="github_env")
    if args.output:
        Path(args.output).write_text(exports.model_dump_json(indent=2))
        logger.info("exports_written", path=args.output, format="json")

    print(json.dumps(exports.to_env(), indent=2))
    return 0


def _cmd_update_manifest(args: argparse.Namespace, config: SyncConfig) -> int:
    exports = load_exports(args.exports, os.environ)
    ManifestUpdater(args.manifest or config.manifest_file).apply(exports)
    return 0


def _cmd_sync(args: argparse.Namespace, config: SyncConfig) -> int:
    exports = _resolve_tracker(args, config)
    ManifestUpdater(args.manifest or config.manifest_file).apply(exports)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="release-sync",
        description="Pin component refs from a release tracker issue into a manifest",
    )
    parser.add_argument("--config", "-c", help="Path to a YAML config file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser(
        "parse-tracker", help="Resolve component refs and SHAs from a tracker issue"
    )
    parse_cmd.add_argument("--tracker-url", help="Tracker issue URL (default: $TRACKER_URL)")
    parse_cmd.add_argument(
        "--github-env", help="Environment file to append to (default: $GITHUB_ENV)"
    )
    parse_cmd.add_argument("--output", "-o", help="Also write exports to this JSON file")
    parse_cmd.set_defaults(handler=_cmd_parse_tracker)

    update_cmd = subparsers.add_parser(
        "update-manifest", help="Rewrite manifest refs from exported components"
    )
    update_cmd.add_argument("--manifest", "-m", help="Manifest file to rewrite")
    update_cmd.add_argument(
        "--exports", help="JSON file from parse-tracker --output (default: environment)"
    )
    update_cmd.set_defaults(handler=_cmd_update_manifest)

    sync_cmd = subparsers.add_parser("sync", help="parse-tracker and update-manifest in one go")
    sync_cmd.add_argument("--tracker-url", help="Tracker issue URL (default: $TRACKER_URL)")
    sync_cmd.add_argument("--manifest", "-m", help="Manifest file to rewrite")
    sync_cmd.set_defaults(handler=_cmd_sync)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        config = load_sync_config(args.config) if args.config else SyncConfig()
        return args.handler(args, config)
    except (TrackerError, ValueError, OSError) as exc:
        print(f"Action failed with error {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

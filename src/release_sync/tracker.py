"""Tracker parser: turn a release tracker issue into component exports.

A release tracker issue has a comment with a table below a marker line:

    #Release#
    dashboard | https://github.com/opendatahub-io/odh-dashboard/tree/v2.30.0
    workbenches/notebooks | https://github.com/opendatahub-io/notebooks/releases/tag/v1.2 | https://github.com/opendatahub-io/notebooks/releases/tag/v1.2

Each row names a component and links the branch (``tree``) or release tag
(``releases/tag``) to ship. The parser pulls org, repo and ref out of that
URL, looks up the commit the ref currently points at, and exports the result
as a ReleaseExports mapping for the manifest updater.

Row parsing is kept in pure functions (extract_release_rows,
parse_component_row) so it can be tested against literal lines; only
ReleaseTrackerParser talks to GitHub.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from release_sync.config import SyncConfig
from release_sync.github import GitHubClientProtocol
from release_sync.logging_config import get_logger
from release_sync.schemas import (
    ComponentRecord,
    IssueRef,
    ReleaseExports,
    normalize_component_name,
)

logger = get_logger(__name__)

# "<ident> | <tree or releases URL> [| <releases URL>]"
ROW_PATTERN = re.compile(
    r"\s*[A-Za-z0-9_/-]+\s*\|\s*"
    r"(https://github\.com/.*(?:tree|releases).*)"
    r"\s*\|?\s*(https://github\.com/.*releases.*)?\s*"
)

# Looked up in order: a tag URL contains "releases/tag/<tag>"
REF_MARKERS = ("tag", "tree")


class TrackerError(Exception):
    """Raised when the tracker issue cannot be read or processed."""


# ---------------------------------------------------------------------------
# Pure Parsing
# ---------------------------------------------------------------------------


def parse_tracker_url(url: str) -> IssueRef:
    """Split ``https://github.com/<owner>/<repo>/issues/<number>``.

    Raises:
        ValueError: If the URL doesn't have that shape
    """
    parts = url.strip().rstrip("/").split("/")
    if len(parts) < 7 or parts[2] != "github.com" or parts[5] != "issues":
        raise ValueError(f"Not a GitHub issue URL: {url!r}")
    if not parts[6].isdigit():
        raise ValueError(f"Invalid issue number in tracker URL: {url!r}")
    return IssueRef(owner=parts[3], repo=parts[4], number=int(parts[6]))


def extract_release_rows(body: str, marker: str = "#Release#") -> list[str]:
    """Return the lines after the release marker line, or [] without one."""
    if marker not in body:
        return []
    lines = [line.rstrip("\r") for line in body.split("\n")]
    start = next(i for i, line in enumerate(lines) if marker in line)
    return lines[start + 1:]


def parse_component_row(line: str) -> ComponentRecord | None:
    """Parse one ``name | url`` row.

    Returns:
        The component, or None if the row isn't a component row or its URL
        has neither a ``tag`` nor a ``tree`` segment to take the ref from.
    """
    if not ROW_PATTERN.match(line):
        return None

    fields = [field.strip() for field in line.split("|")]
    name, url = fields[0], fields[1]
    release_url = fields[2] if len(fields) > 2 and fields[2] else None

    segments = url.split("/")
    # org and repo sit at fixed positions; only search what follows them
    tail = segments[5:]
    for marker in REF_MARKERS:
        if marker in tail:
            ref = "/".join(tail[tail.index(marker) + 1:])
            break
    else:
        logger.debug("row_without_ref", row=line.strip())
        return None

    if not ref:
        return None

    # https: / "" / github.com / <org> / <repo> / (tree|releases) / ...
    return ComponentRecord(
        name=name,
        org=segments[3],
        repo=segments[4],
        ref=ref,
        release_url=release_url,
    )


def collect_components(
    comments: Iterable[str], marker: str = "#Release#"
) -> list[ComponentRecord]:
    """Collect component rows from every comment, in discovery order."""
    records: list[ComponentRecord] = []
    for body in comments:
        for line in extract_release_rows(body, marker):
            record = parse_component_row(line)
            if record is not None:
                records.append(record)
    return records


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class ReleaseTrackerParser:
    """Resolves a tracker issue into a ReleaseExports mapping.

    Usage:
        parser = ReleaseTrackerParser(GitHubClient())
        exports = await parser.resolve("https://github.com/org/tracker/issues/12")
    """

    def __init__(
        self,
        client: GitHubClientProtocol,
        config: SyncConfig | None = None,
    ) -> None:
        self.client = client
        self.config = config or SyncConfig()

    async def resolve(self, tracker_url: str) -> ReleaseExports:
        """Read the tracker issue and export every component it lists.

        Commit lookups run one after another, in the order the components
        appear in the issue. A failed lookup only drops that component's SHA.

        Raises:
            TrackerError: If the issue can't be fetched or processed. Nothing
                is exported in that case.
        """
        logger.info("tracker_parse_started", tracker_url=tracker_url)
        try:
            issue = parse_tracker_url(tracker_url)
            comments = await self.client.get_issue_comments(issue)
            records = collect_components(comments, self.config.release_marker)
            logger.info("components_found", count=len(records))

            exports = ReleaseExports()
            for record in records:
                logger.info("processing_component", component=record.name)
                sha = await self._lookup_sha(record)
                self._export(exports, record.model_copy(update={"commit_sha": sha}))
        except Exception as exc:
            logger.error("tracker_parse_failed", tracker_url=tracker_url, error=str(exc))
            raise TrackerError(str(exc)) from exc

        logger.info("tracker_parse_complete", exported=len(exports.components))
        return exports

    async def _lookup_sha(self, record: ComponentRecord) -> str | None:
        logger.info(
            "fetching_commit_sha", org=record.org, repo=record.repo, ref=record.ref
        )
        try:
            sha = await self.client.get_commit_sha(record.org, record.repo, record.ref)
        except Exception as exc:
            logger.warning(
                "commit_sha_lookup_failed",
                org=record.org,
                repo=record.repo,
                ref=record.ref,
                error=str(exc),
            )
            return None
        logger.info("commit_sha_resolved", component=record.name, sha=sha[:8])
        return sha

    def _export(self, exports: ReleaseExports, record: ComponentRecord) -> None:
        names = self.config.aliases.get(record.name) or [record.name]
        for name in names:
            exports.add(normalize_component_name(name), record)
        if record.release_url:
            logger.debug(
                "release_url_ignored", component=record.name, url=record.release_url
            )

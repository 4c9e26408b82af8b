"""Manifest updater: pin component refs and orgs in get_all_manifests.sh.

The manifest is a shell script with one associative-array entry per
component:

    ["dashboard"]="opendatahub-io:odh-dashboard:main:manifests"
    ["workbenches/notebooks"]="opendatahub-io:notebooks:main:manifests/base"

i.e. ``["<key>"]="<org>:<repo>:<ref>:<path>"``. Only the org and ref fields
are rewritten; repo and path are left as they are.

Export names are in dash form (``workbenches-notebooks``) while manifest
keys may use a path form (``workbenches/notebooks``), so each component is
looked up under an ordered list of candidate keys (see candidate_keys).
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from release_sync.logging_config import get_logger
from release_sync.schemas import ReleaseExports

logger = get_logger(__name__)

# Candidate key builders, tried in order
KeyVariant = Callable[[str], str]

KEY_VARIANTS: list[KeyVariant] = [
    lambda name: name,
    # workbenches-kf-notebook-controller -> workbenches/kf-notebook-controller
    lambda name: name.replace("-", "/", 1),
]


def candidate_keys(component: str) -> list[str]:
    """Manifest keys to try for a component, in order, without duplicates."""
    keys: list[str] = []
    for variant in KEY_VARIANTS:
        key = variant(component)
        if key not in keys:
            keys.append(key)
    return keys


def _ref_pattern(key: str) -> re.Pattern[str]:
    # ["key"]="org:repo:  REF  :path"
    return re.compile(rf'(\["{re.escape(key)}"\]="[^:"]+:[^:"]+:)([^:"]+)(:+[^"]+")')


def _org_pattern(key: str) -> re.Pattern[str]:
    # ["key"]="  ORG  :repo:ref:path"
    return re.compile(rf'(\["{re.escape(key)}"\]=")([^:"]+)(:+[^"]+")')


def _replace_field(
    content: str,
    component: str,
    value: str,
    pattern_for: Callable[[str], re.Pattern[str]],
) -> tuple[str, str | None]:
    for key in candidate_keys(component):
        new_content, count = pattern_for(key).subn(
            lambda m: m.group(1) + value + m.group(3), content
        )
        if count:
            return new_content, key
    return content, None


def replace_ref(content: str, component: str, ref: str) -> tuple[str, str | None]:
    """Set the ref field of a component's entry.

    Returns:
        The new content and the manifest key that matched, or the content
        unchanged and None if no candidate key is in the manifest.
    """
    return _replace_field(content, component, ref, _ref_pattern)


def replace_org(content: str, component: str, org: str) -> tuple[str, str | None]:
    """Set the org field of a component's entry. Same contract as replace_ref."""
    return _replace_field(content, component, org, _org_pattern)


@dataclass
class UpdateReport:
    """What an update run did to the manifest."""

    updated_refs: list[str] = field(default_factory=list)
    updated_orgs: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    changed: bool = False


class ManifestUpdater:
    """Applies a ReleaseExports mapping to a manifest file.

    Usage:
        updater = ManifestUpdater("get_all_manifests.sh")
        report = updater.apply(exports)
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def apply(self, exports: ReleaseExports) -> UpdateReport:
        """Rewrite ref and org fields for every exported component.

        The file is read once, all substitutions run against the in-memory
        text, and the result is written back once. Nothing is read or
        written when there is nothing to update.

        Raises:
            OSError: If the manifest can't be read or written
        """
        report = UpdateReport()
        if exports.is_empty():
            logger.info("no_updates_to_apply", path=str(self.path))
            return report

        # export names may still carry underscores when handed over in-process
        ref_updates = {
            _dash_name(name): c.final_ref
            for name, c in exports.components.items()
            if c.final_ref
        }
        org_updates = {
            _dash_name(name): c.org for name, c in exports.components.items() if c.org
        }

        # newline="" keeps line endings byte-for-byte
        with self.path.open(encoding="utf-8", newline="") as f:
            original = f.read()
        content = original

        for component, ref in ref_updates.items():
            logger.info("updating_ref", component=component, ref=_short_ref(ref))
            content, key = replace_ref(content, component, ref)
            if key is None:
                logger.warning("component_not_in_manifest", component=component)
                report.missing.append(component)
            else:
                report.updated_refs.append(component)

        for component, org in org_updates.items():
            content, key = replace_org(content, component, org)
            if key is None:
                logger.debug("org_entry_not_found", component=component)
            else:
                logger.info("updated_org", component=component, org=org)
                report.updated_orgs.append(component)

        with self.path.open("w", encoding="utf-8", newline="") as f:
            f.write(content)
        report.changed = content != original
        logger.info(
            "manifest_updated",
            path=str(self.path),
            refs=len(report.updated_refs),
            orgs=len(report.updated_orgs),
            missing=len(report.missing),
        )
        return report


def _short_ref(ref: str) -> str:
    name, sep, sha = ref.partition("@")
    return f"{name}@{sha[:8]}" if sep else ref


def _dash_name(name: str) -> str:
    return name.replace("_", "-")

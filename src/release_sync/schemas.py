"""Pydantic models for the data passed between the two release-sync stages.

The tracker parser produces ComponentRecords while scanning issue comments
and folds them into a ReleaseExports mapping. The manifest updater consumes
that mapping, either directly or after it has been flattened into
``component_*`` string keys (GitHub Actions environment, JSON file).

Key naming:
    component_spec_<name>  branch or tag to pin
    component_org_<name>   GitHub org that hosts the component
    component_sha_<name>   commit the ref resolved to (optional)

``<name>`` is the normalized component name: lowercase, "/" replaced by "-".
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, Field

SPEC_PREFIX = "component_spec_"
ORG_PREFIX = "component_org_"
SHA_PREFIX = "component_sha_"


def normalize_component_name(name: str) -> str:
    """Lowercase a component name and flatten path separators to dashes."""
    return name.lower().replace("/", "-")


# ---------------------------------------------------------------------------
# Parser Output
# ---------------------------------------------------------------------------


class IssueRef(BaseModel):
    """A tracker issue, decomposed from its URL."""

    owner: str = Field(..., min_length=1, description="Owner of the tracker repo")
    repo: str = Field(..., min_length=1, description="Tracker repository name")
    number: int = Field(..., gt=0, description="Issue number")


class ComponentRecord(BaseModel):
    """One component row found under the release marker.

    Attributes:
        name: Component identifier as written in the issue
              (e.g., "workbenches/notebooks")
        org: GitHub org parsed from the branch/tag URL
        repo: GitHub repository parsed from the branch/tag URL
        ref: Branch or tag name; may itself contain slashes
        release_url: Optional second releases URL from the same row
        commit_sha: Commit the ref points at, if the lookup succeeded
    """

    name: str = Field(..., min_length=1, description="Component identifier")
    org: str = Field(..., min_length=1, description="GitHub org")
    repo: str = Field(..., min_length=1, description="GitHub repository")
    ref: str = Field(..., min_length=1, description="Branch or tag")
    release_url: str | None = Field(None, description="Optional releases URL")
    commit_sha: str | None = Field(None, description="Resolved commit SHA")


# ---------------------------------------------------------------------------
# Stage Interface
# ---------------------------------------------------------------------------


class ComponentExport(BaseModel):
    """The exported projection of a component: what the updater needs."""

    spec: str | None = Field(None, description="Branch or tag to pin")
    org: str | None = Field(None, description="GitHub org")
    sha: str | None = Field(None, description="Resolved commit SHA")

    @property
    def final_ref(self) -> str | None:
        """The ref written into the manifest: ``ref@sha`` or just ``ref``."""
        if not self.spec:
            return None
        if self.sha:
            return f"{self.spec}@{self.sha}"
        return self.spec


class ReleaseExports(BaseModel):
    """Typed mapping handed from the tracker parser to the manifest updater.

    Keys of ``components`` are normalized component names in dash form.
    """

    components: dict[str, ComponentExport] = Field(default_factory=dict)

    def add(self, name: str, record: ComponentRecord) -> None:
        """Export a record under an already-normalized name."""
        self.components[name] = ComponentExport(
            spec=record.ref, org=record.org, sha=record.commit_sha
        )

    def is_empty(self) -> bool:
        return not any(c.spec or c.org for c in self.components.values())

    def to_env(self) -> dict[str, str]:
        """Flatten into ``component_*`` keys (SHA key only when present)."""
        env: dict[str, str] = {}
        for name, component in self.components.items():
            if component.spec:
                env[SPEC_PREFIX + name] = component.spec
            if component.org:
                env[ORG_PREFIX + name] = component.org
            if component.sha:
                env[SHA_PREFIX + name] = component.sha
        return env

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> ReleaseExports:
        """Rebuild the mapping from flat ``component_*`` keys.

        Unrelated keys are ignored, so ``os.environ`` can be passed as-is.
        Underscores left in the component part of a key are read back as
        dashes; the SHA is looked up under the raw key suffix.
        """
        exports = cls()
        for key, value in env.items():
            if key.startswith(SPEC_PREFIX):
                raw = key[len(SPEC_PREFIX):]
                component = exports._entry(raw.replace("_", "-"))
                component.spec = value
                component.sha = env.get(SHA_PREFIX + raw) or None
            elif key.startswith(ORG_PREFIX):
                raw = key[len(ORG_PREFIX):]
                exports._entry(raw.replace("_", "-")).org = value
        return exports

    def _entry(self, name: str) -> ComponentExport:
        return self.components.setdefault(name, ComponentExport())

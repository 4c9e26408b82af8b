"""Tests for the manifest updater.

Run with: pytest tests/test_manifest.py -v
"""

from __future__ import annotations

from pathlib import Path

import pytest
from structlog.testing import capture_logs

from release_sync.manifest import (
    ManifestUpdater,
    candidate_keys,
    replace_org,
    replace_ref,
)
from release_sync.schemas import ComponentExport, ReleaseExports

SHA = "abcdef1234567890abcdef1234567890abcdef12"

MANIFEST = """\
#!/usr/bin/env bash
set -e

declare -A ODH_COMPONENT_MANIFESTS=(
    ["dashboard"]="opendatahub-io:odh-dashboard:main:manifests"
    ["workbenches/notebooks"]="org1:notebooks:main:manifests/"
    ["odh-notebook-controller"]="opendatahub-io:kubeflow:main:components/odh-notebook-controller/config"
    ["kf-notebook-controller"]="opendatahub-io:kubeflow:main:components/notebook-controller/config"
    ["model-registry-operator"]="opendatahub-io:model-registry-operator:main:config"
)
"""


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def manifest_path(tmp_path: Path) -> Path:
    path = tmp_path / "get_all_manifests.sh"
    path.write_text(MANIFEST)
    return path


def exports_of(**components: ComponentExport) -> ReleaseExports:
    return ReleaseExports(components=dict(components))


# ---------------------------------------------------------------------------
# Candidate Key Tests
# ---------------------------------------------------------------------------


class TestCandidateKeys:
    """Tests for the ordered manifest key fallbacks."""

    def test_dash_form_then_first_dash_to_slash(self) -> None:
        assert candidate_keys("workbenches-kf-notebook-controller") == [
            "workbenches-kf-notebook-controller",
            "workbenches/kf-notebook-controller",
        ]

    def test_no_dash_has_single_candidate(self) -> None:
        assert candidate_keys("dashboard") == ["dashboard"]


# ---------------------------------------------------------------------------
# Substitution Tests
# ---------------------------------------------------------------------------


class TestReplaceRef:
    """Tests for rewriting the ref field of one entry."""

    def test_only_ref_field_changes(self) -> None:
        content, key = replace_ref(MANIFEST, "dashboard", "v2.30.0")
        assert key == "dashboard"
        assert '["dashboard"]="opendatahub-io:odh-dashboard:v2.30.0:manifests"' in content
        # every other entry still reads main
        assert content.count(":main:") == MANIFEST.count(":main:") - 1

    def test_slash_variant_is_found(self) -> None:
        content, key = replace_ref(MANIFEST, "workbenches-notebooks", "release-2.0")
        assert key == "workbenches/notebooks"
        assert '["workbenches/notebooks"]="org1:notebooks:release-2.0:manifests/"' in content

    def test_dash_key_preferred_over_slash_key(self) -> None:
        text = '["a-b"]="o:r:main:p"\n["a/b"]="o:r:main:p"\n'
        content, key = replace_ref(text, "a-b", "dev")
        assert key == "a-b"
        assert content == '["a-b"]="o:r:dev:p"\n["a/b"]="o:r:main:p"\n'

    def test_prefix_of_another_key_does_not_match(self) -> None:
        content, key = replace_ref(MANIFEST, "model-registry", "v0.2")
        assert key is None
        assert content == MANIFEST

    def test_regex_characters_in_name_are_literal(self) -> None:
        text = '["fooxbar"]="o:r:main:p"\n'
        content, key = replace_ref(text, "foo.bar", "dev")
        assert key is None
        assert content == text

    def test_ref_is_inserted_literally(self) -> None:
        text = '["a"]="o:r:main:p"\n'
        content, _ = replace_ref(text, "a", r"v1\2$3")
        assert content == '["a"]="o:r:v1\\2$3:p"\n'

    def test_current_value_still_counts_as_match(self) -> None:
        content, key = replace_ref(MANIFEST, "dashboard", "main")
        assert key == "dashboard"
        assert content == MANIFEST


class TestReplaceOrg:
    """Tests for rewriting the org field of one entry."""

    def test_only_org_field_changes(self) -> None:
        content, key = replace_org(MANIFEST, "workbenches-notebooks", "org2")
        assert key == "workbenches/notebooks"
        assert '["workbenches/notebooks"]="org2:notebooks:main:manifests/"' in content

    def test_missing_entry(self) -> None:
        content, key = replace_org(MANIFEST, "trustyai", "org2")
        assert key is None
        assert content == MANIFEST


# ---------------------------------------------------------------------------
# Updater Tests
# ---------------------------------------------------------------------------


class TestManifestUpdater:
    """Tests for applying a full set of exports to a file."""

    def test_end_to_end_entry_rewrite(self, manifest_path: Path) -> None:
        exports = exports_of(
            **{"workbenches-notebooks": ComponentExport(spec="release-2.0", sha=SHA, org="org2")}
        )
        report = ManifestUpdater(manifest_path).apply(exports)

        text = manifest_path.read_text()
        assert (
            f'["workbenches/notebooks"]="org2:notebooks:release-2.0@{SHA}:manifests/"'
            in text
        )
        assert report.updated_refs == ["workbenches-notebooks"]
        assert report.updated_orgs == ["workbenches-notebooks"]
        assert report.changed

    def test_ref_without_sha(self, manifest_path: Path) -> None:
        exports = exports_of(dashboard=ComponentExport(spec="v2.30.0", org="opendatahub-io"))
        ManifestUpdater(manifest_path).apply(exports)
        assert (
            '["dashboard"]="opendatahub-io:odh-dashboard:v2.30.0:manifests"'
            in manifest_path.read_text()
        )

    def test_aliased_notebook_controllers(self, manifest_path: Path) -> None:
        shared = ComponentExport(spec="v1.10.0-1", org="opendatahub-io", sha=SHA)
        exports = exports_of(
            **{"odh-notebook-controller": shared, "kf-notebook-controller": shared}
        )
        report = ManifestUpdater(manifest_path).apply(exports)

        text = manifest_path.read_text()
        assert (
            f'["odh-notebook-controller"]="opendatahub-io:kubeflow:v1.10.0-1@{SHA}:'
            'components/odh-notebook-controller/config"' in text
        )
        assert (
            f'["kf-notebook-controller"]="opendatahub-io:kubeflow:v1.10.0-1@{SHA}:'
            'components/notebook-controller/config"' in text
        )
        assert report.missing == []

    def test_rerun_is_idempotent(self, manifest_path: Path) -> None:
        exports = exports_of(
            dashboard=ComponentExport(spec="v2.30.0", sha=SHA, org="opendatahub-io"),
            **{"workbenches-notebooks": ComponentExport(spec="release-2.0", org="org2")},
        )
        ManifestUpdater(manifest_path).apply(exports)
        after_first = manifest_path.read_bytes()

        with capture_logs() as logs:
            report = ManifestUpdater(manifest_path).apply(exports)

        assert manifest_path.read_bytes() == after_first
        assert not report.changed
        assert report.missing == []
        assert not [e for e in logs if e["log_level"] == "warning"]

    def test_missing_component_warns_and_leaves_file(self, manifest_path: Path) -> None:
        before = manifest_path.read_bytes()
        exports = exports_of(trustyai=ComponentExport(spec="v1.0"))

        with capture_logs() as logs:
            report = ManifestUpdater(manifest_path).apply(exports)

        assert manifest_path.read_bytes() == before
        assert report.missing == ["trustyai"]
        warnings = [e for e in logs if e["log_level"] == "warning"]
        assert warnings == [
            {"event": "component_not_in_manifest", "component": "trustyai", "log_level": "warning"}
        ]

    def test_org_updated_when_ref_missing(self, manifest_path: Path) -> None:
        exports = exports_of(dashboard=ComponentExport(org="my-fork"))
        report = ManifestUpdater(manifest_path).apply(exports)
        assert report.updated_refs == []
        assert report.updated_orgs == ["dashboard"]
        assert '["dashboard"]="my-fork:odh-dashboard:main:manifests"' in manifest_path.read_text()

    def test_crlf_file_keeps_line_endings(self, tmp_path: Path) -> None:
        path = tmp_path / "get_all_manifests.sh"
        path.write_bytes(b'(\r\n    ["a"]="o:r:main:p"\r\n    ["b"]="o:r:main:p"\r\n)\r\n')
        ManifestUpdater(path).apply(exports_of(a=ComponentExport(spec="dev")))
        assert path.read_bytes() == (
            b'(\r\n    ["a"]="o:r:dev:p"\r\n    ["b"]="o:r:main:p"\r\n)\r\n'
        )

    def test_no_updates_does_not_touch_file(self, tmp_path: Path) -> None:
        path = tmp_path / "does-not-exist.sh"
        report = ManifestUpdater(path).apply(ReleaseExports())
        assert not path.exists()
        assert not report.changed

    def test_sha_only_exports_do_not_touch_file(self, tmp_path: Path) -> None:
        path = tmp_path / "does-not-exist.sh"
        report = ManifestUpdater(path).apply(exports_of(dashboard=ComponentExport(sha=SHA)))
        assert not path.exists()
        assert report.updated_refs == []

    def test_underscored_names_use_dash_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "get_all_manifests.sh"
        path.write_text('["odh-model-controller"]="opendatahub-io:odh-model-controller:main:config"\n')
        exports = exports_of(
            odh_model_controller=ComponentExport(spec="v1", org="opendatahub-io")
        )
        report = ManifestUpdater(path).apply(exports)

        assert report.missing == []
        assert report.updated_refs == ["odh-model-controller"]
        assert path.read_text() == (
            '["odh-model-controller"]="opendatahub-io:odh-model-controller:v1:config"\n'
        )

    def test_missing_manifest_is_fatal(self, tmp_path: Path) -> None:
        exports = exports_of(dashboard=ComponentExport(spec="main"))
        with pytest.raises(FileNotFoundError):
            ManifestUpdater(tmp_path / "missing.sh").apply(exports)

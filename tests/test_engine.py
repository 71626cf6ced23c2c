"""
Tests for the TuningEngine: preconditions, runs against a fake host,
history and persistence wiring.
"""

import pytest

from hosttune.protocol.artifacts import ArtifactStatus
from hosttune.protocol.errors import NotFound, PrivilegeError, RegistryLoadError
from hosttune.protocol.records import Outcome
from hosttune.runner.engine import TuningEngine

from tests.mocks import read_value


@pytest.fixture
def unprivileged(config, runner, host_paths):
    config.engine.require_root = True
    return TuningEngine(config, runner=runner, geteuid=lambda: 1000)


class TestPreconditions:
    """Checks that stop a run before anything is touched"""

    def test_apply_requires_root(self, unprivileged, host_paths):
        with pytest.raises(PrivilegeError):
            unprivileged.apply()

        assert read_value(host_paths["mem.swappiness"]) == "60"
        assert len(unprivileged.journal) == 0

    def test_status_does_not_require_root(self, unprivileged):
        summary = unprivileged.status()

        assert summary.dry_run
        assert len(summary.records) == len(unprivileged.registry)

    def test_unknown_selection_before_privilege(self, unprivileged):
        with pytest.raises(NotFound):
            unprivileged.apply(ids=["mem.nope"])

    def test_unwritable_journal(self, engine, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        engine.config.journal.path = str(blocker / "journal.jsonl")

        with pytest.raises(PrivilegeError):
            engine.apply()

    def test_bad_override_fails_registry_load(self, config, runner):
        config.desired = {"mem.swappiness": "lots"}

        with pytest.raises(RegistryLoadError):
            TuningEngine(config, runner=runner).status()

    def test_persistence_changes_require_root(self, unprivileged, fake_root):
        with pytest.raises(PrivilegeError):
            unprivileged.install_persistence()
        with pytest.raises(PrivilegeError):
            unprivileged.uninstall_persistence()

        assert not (fake_root / "etc").exists()


class TestRuns:
    """Reconciliation against the fake host"""

    def test_apply(self, engine, host_paths):
        summary = engine.apply()
        counts = summary.counts()

        assert len(summary.records) == 27
        assert counts["applied"] == 19
        assert counts["already-matched"] == 2
        assert counts["unsupported"] == 6
        assert summary.failure_count == 0
        assert summary.finished_at
        assert read_value(host_paths["mem.swappiness"]) == "10"
        assert read_value(host_paths["io.sda.scheduler"]) == "none"
        assert len(engine.journal) == 27

    def test_status_reports_drift_without_journaling(self, engine, host_paths):
        summary = engine.status(categories=["network"])

        assert {r.outcome for r in summary.records} == {Outcome.WOULD_CHANGE}
        assert read_value(host_paths["net.rmem_max"]) == "212992"
        assert len(engine.journal) == 0

    def test_apply_revert_rollback(self, engine, host_paths):
        ids = ["mem.swappiness"]

        engine.apply(ids=ids)
        engine.revert(ids=ids)
        assert read_value(host_paths["mem.swappiness"]) == "60"

        record = engine.rollback(ids=ids).records[0]

        assert record.outcome == Outcome.APPLIED
        assert record.requested_value == "10"
        assert read_value(host_paths["mem.swappiness"]) == "10"

    def test_on_record_callback(self, engine):
        seen = []
        engine.on_record(seen.append)

        summary = engine.apply(categories=["memory"])

        assert seen == summary.records


class TestHistory:
    """Journal queries through the engine"""

    def test_history_for_parameter(self, engine):
        engine.apply(ids=["mem.swappiness", "sched.autogroup"])
        engine.revert(ids=["mem.swappiness"])

        records = engine.history("mem.swappiness")

        assert [r.mode for r in records] == ["apply", "revert-to-default"]
        assert len(engine.history(limit=1)) == 1

    def test_unknown_parameter(self, engine):
        with pytest.raises(NotFound):
            engine.history("mem.nope")


class TestPersistence:
    """Planner wiring"""

    def test_install_under_root(self, engine, fake_root):
        plan, results = engine.install_persistence()

        assert plan.artifact_ids == ["sysctl", "udev", "modprobe", "service"]
        assert all(r.status == ArtifactStatus.INSTALLED for r in results)
        assert (fake_root / "etc" / "systemd" / "system" / "hosttune.service").exists()

        _, status = engine.persistence_status()
        assert {r.status for r in status} == {ArtifactStatus.INSTALLED}

    def test_install_dry_run_writes_nothing(self, engine, fake_root):
        plan, results = engine.install_persistence(dry_run=True)

        assert results == []
        assert plan.artifacts
        assert not (fake_root / "etc").exists()

    def test_uninstall(self, engine):
        engine.install_persistence(categories=["memory"])

        results = {r.artifact_id: r.status for r in engine.uninstall_persistence()}

        assert results["sysctl"] == ArtifactStatus.REMOVED
        assert results["service"] == ArtifactStatus.REMOVED
        assert results["udev"] == ArtifactStatus.ABSENT

    def test_uninstall_by_category(self, engine, fake_root):
        engine.install_persistence()

        results = engine.uninstall_persistence(categories=["io"])

        assert [(r.artifact_id, r.status) for r in results] == [("udev", ArtifactStatus.REMOVED)]
        assert (fake_root / "etc" / "sysctl.d" / "99-hosttune.conf").exists()

    def test_uninstall_selection_narrowed_by_artifact(self, engine):
        engine.install_persistence()

        results = engine.uninstall_persistence(["service", "udev"], categories=["memory"])

        assert [r.artifact_id for r in results] == ["service"]

    def test_uninstall_selection_without_artifacts(self, engine, fake_root):
        engine.install_persistence()

        assert engine.uninstall_persistence(ids=["gpu.clock_lock"]) == []

    def test_uninstall_dry_run_without_root(self, unprivileged, fake_root):
        results = unprivileged.uninstall_persistence(dry_run=True)

        assert {r.status for r in results} == {ArtifactStatus.ABSENT}

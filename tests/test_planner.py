"""
Tests for the PersistencePlanner: planning decisions, merged artifacts,
install idempotence and uninstall of partial installs.
"""

import pytest

from hosttune.protocol.parameter import ArtifactFamily
from hosttune.protocol.artifacts import (
    ArtifactStatus,
    NativelyDurable,
    NoDurableMechanism,
    PersistenceArtifact,
)
from hosttune.protocol.errors import NotFound
from hosttune.persistence.planner import PersistenceConfig, PersistencePlanner

from tests.mocks import FakeCommandRunner


@pytest.fixture
def planner(fake_root):
    return PersistencePlanner(PersistenceConfig(root=str(fake_root)), runner=FakeCommandRunner())


@pytest.fixture
def active_planner(fake_root):
    """Planner that runs activation against a recording runner."""
    runner = FakeCommandRunner()
    planner = PersistencePlanner(PersistenceConfig(root=str(fake_root), activate=True), runner=runner)
    return planner, runner


class TestPlan:
    """One decision per parameter, never None"""

    def test_sysctl_parameter(self, planner, registry):
        decision = planner.plan(registry.get("mem.swappiness"))

        assert isinstance(decision, PersistenceArtifact)
        assert decision.family == ArtifactFamily.SYSCTL
        assert decision.path == "/etc/sysctl.d/99-hosttune.conf"
        assert "vm.swappiness = 10" in decision.content
        assert decision.parameter_ids == ("mem.swappiness",)

    def test_clock_lock_has_no_durable_mechanism(self, planner, registry):
        decision = planner.plan(registry.get("gpu.clock_lock"))

        assert isinstance(decision, NoDurableMechanism)
        assert decision.parameter_id == "gpu.clock_lock"
        assert decision.survives_reboot is False
        assert decision.reason

    def test_self_persistent_parameters(self, planner, registry):
        for pid in ("zfs.tank.autotrim", "gpu.accounting_mode", "gpu.compute_mode"):
            decision = planner.plan(registry.get(pid))
            assert isinstance(decision, NativelyDurable)
            assert decision.survives_reboot is True

    def test_every_parameter_gets_a_decision(self, planner, registry):
        for parameter in registry:
            assert planner.plan(parameter) is not None


class TestPlanAll:
    """One merged artifact per family"""

    def test_families_and_markers(self, planner, registry):
        plan = planner.plan_all(registry.list_parameters())

        assert plan.artifact_ids == ["sysctl", "udev", "modprobe", "service"]
        assert [m.parameter_id for m in plan.no_mechanism] == ["gpu.clock_lock"]
        assert len(plan.natively_durable) == 3

    def test_sysctl_fragment(self, planner, registry):
        content = planner.plan_all(registry.list_parameters()).get("sysctl").content

        assert "vm.swappiness = 10" in content
        assert "net.core.rmem_max = 16777216" in content
        assert "kernel.sched_autogroup_enabled = 0" in content
        assert content.index("vm.swappiness") < content.index("net.core.rmem_max")

    def test_udev_rules(self, planner, registry):
        content = planner.plan_all(registry.list_parameters(categories=["io"])).get("udev").content

        assert 'ACTION=="add|change", KERNEL=="sda", ATTR{queue/scheduler}="none"' in content
        assert 'ATTR{queue/nr_requests}="256"' in content
        assert 'ATTR{queue/read_ahead_kb}="4096"' in content

    def test_modprobe_options_merged_per_module(self, planner, registry):
        content = planner.plan_all(registry.list_parameters()).get("modprobe").content

        assert "options zfs zfs_arc_meta_limit=8589934592 zfs_prefetch_disable=0" in content

    def test_service_unit(self, planner, registry):
        artifact = planner.plan_all(registry.list_parameters()).get("service")

        assert artifact.path == "/etc/systemd/system/hosttune.service"
        assert "Type=oneshot" in artifact.content
        assert "ExecStart=hosttune --quiet apply --parameter mem.thp.enabled" in artifact.content
        assert "--parameter cpu.cpu1.state2.disable" in artifact.content
        assert "gpu.clock_lock" not in artifact.content
        assert "WantedBy=multi-user.target" in artifact.content

    def test_unknown_artifact(self, planner, registry):
        with pytest.raises(KeyError):
            planner.plan_all(registry.list_parameters(categories=["memory"])).get("udev")


class TestInstall:
    """Write, activate, and leave identical content alone"""

    def test_install_writes_under_root(self, planner, registry, fake_root):
        plan = planner.plan_all(registry.list_parameters())

        results = planner.install(plan.artifacts)

        assert [r.status for r in results] == [ArtifactStatus.INSTALLED] * 4
        written = fake_root / "etc" / "sysctl.d" / "99-hosttune.conf"
        assert written.read_text() == plan.get("sysctl").content
        assert all("activation skipped" in r.detail for r in results)

    def test_install_twice_is_unchanged(self, active_planner, registry):
        planner, runner = active_planner
        plan = planner.plan_all(registry.list_parameters())

        planner.install(plan.artifacts)
        calls_after_first = len(runner.calls)
        second = planner.install(plan.artifacts)

        assert [r.status for r in second] == [ArtifactStatus.UNCHANGED] * 4
        assert len(runner.calls) == calls_after_first

    def test_activation_commands(self, active_planner, registry, fake_root):
        planner, runner = active_planner
        plan = planner.plan_all(registry.list_parameters())

        planner.install(plan.artifacts)

        sysctl_path = str(fake_root / "etc" / "sysctl.d" / "99-hosttune.conf")
        assert ["sysctl", "-p", sysctl_path] in runner.calls
        assert ["udevadm", "control", "--reload-rules"] in runner.calls
        assert ["systemctl", "daemon-reload"] in runner.calls
        assert ["systemctl", "enable", "hosttune.service"] in runner.calls

    def test_activation_failure_is_a_warning(self, active_planner, registry):
        planner, runner = active_planner
        runner.respond(("systemctl", "enable"), returncode=1, stderr="Failed to enable unit\n")
        plan = planner.plan_all(registry.list_parameters())

        results = {r.artifact_id: r for r in planner.install(plan.artifacts)}

        assert results["service"].status == ArtifactStatus.INSTALLED
        assert any("Failed to enable unit" in w for w in results["service"].warnings)
        assert results["sysctl"].warnings == []

    def test_changed_content_is_rewritten(self, planner, registry, fake_root):
        plan = planner.plan_all(registry.list_parameters())
        planner.install(plan.artifacts)
        path = fake_root / "etc" / "sysctl.d" / "99-hosttune.conf"
        path.write_text("vm.swappiness = 99\n")

        results = {r.artifact_id: r for r in planner.install(plan.artifacts)}

        assert results["sysctl"].status == ArtifactStatus.INSTALLED
        assert results["udev"].status == ArtifactStatus.UNCHANGED
        assert path.read_text() == plan.get("sysctl").content


class TestUninstall:
    """Removal tolerates partial installs"""

    def test_partial_install(self, planner, registry, fake_root):
        plan = planner.plan_all(registry.list_parameters())
        planner.install([plan.get("sysctl")])

        results = {r.artifact_id: r for r in planner.uninstall()}

        assert results["sysctl"].status == ArtifactStatus.REMOVED
        assert results["udev"].status == ArtifactStatus.ABSENT
        assert results["modprobe"].status == ArtifactStatus.ABSENT
        assert results["service"].status == ArtifactStatus.ABSENT
        assert not (fake_root / "etc" / "sysctl.d" / "99-hosttune.conf").exists()

    def test_uninstall_twice(self, planner, registry):
        planner.install(planner.plan_all(registry.list_parameters()).artifacts)

        planner.uninstall()
        second = planner.uninstall()

        assert all(r.status == ArtifactStatus.ABSENT for r in second)

    def test_service_stopped_and_disabled_before_removal(self, active_planner, registry):
        planner, runner = active_planner
        planner.install(planner.plan_all(registry.list_parameters()).artifacts)
        runner.calls.clear()

        planner.uninstall(["service"])

        assert runner.calls == [
            ["systemctl", "stop", "hosttune.service"],
            ["systemctl", "disable", "hosttune.service"],
            ["systemctl", "daemon-reload"],
        ]

    def test_dry_run_touches_nothing(self, active_planner, registry, fake_root):
        planner, runner = active_planner
        plan = planner.plan_all(registry.list_parameters())
        planner.install([plan.get("sysctl"), plan.get("service")])
        runner.calls.clear()

        results = {r.artifact_id: r.status for r in planner.uninstall(dry_run=True)}

        assert results == {
            "sysctl": ArtifactStatus.WOULD_REMOVE,
            "udev": ArtifactStatus.ABSENT,
            "modprobe": ArtifactStatus.ABSENT,
            "service": ArtifactStatus.WOULD_REMOVE,
        }
        assert runner.calls == []
        assert (fake_root / "etc" / "sysctl.d" / "99-hosttune.conf").exists()

    def test_empty_selection_removes_nothing(self, planner, registry):
        planner.install(planner.plan_all(registry.list_parameters()).artifacts)

        assert planner.uninstall([]) == []

    def test_unknown_artifact_touches_nothing(self, planner, registry, fake_root):
        planner.install(planner.plan_all(registry.list_parameters()).artifacts)

        with pytest.raises(NotFound):
            planner.uninstall(["sysctl", "grub"])

        assert (fake_root / "etc" / "sysctl.d" / "99-hosttune.conf").exists()


class TestStatus:
    """On-disk artifacts compared with the plan"""

    def test_missing_installed_stale(self, planner, registry, fake_root):
        plan = planner.plan_all(registry.list_parameters())
        assert {r.status for r in planner.status(plan.artifacts)} == {ArtifactStatus.MISSING}

        planner.install(plan.artifacts)
        (fake_root / "etc" / "modprobe.d" / "hosttune-zfs.conf").write_text("options zfs\n")

        results = {r.artifact_id: r.status for r in planner.status(plan.artifacts)}
        assert results == {
            "sysctl": ArtifactStatus.INSTALLED,
            "udev": ArtifactStatus.INSTALLED,
            "modprobe": ArtifactStatus.STALE,
            "service": ArtifactStatus.INSTALLED,
        }

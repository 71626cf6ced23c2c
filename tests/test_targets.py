"""
Tests for live targets, the StateReader and bounded access.
"""

import os
import threading

import pytest

from hosttune.protocol.parameter import Encoding
from hosttune.protocol.records import Outcome
from hosttune.protocol.errors import (
    PermissionDenied,
    TargetAbsent,
    TargetTimeout,
    Unreadable,
)
from hosttune.tuning.reader import ABSENT, StateReader
from hosttune.tuning.reconciler import Reconciler
from hosttune.tuning.targets import (
    ClockLockTarget,
    FileTarget,
    NvidiaSmiTarget,
    SysctlTarget,
    VboostTarget,
    ZpoolPropertyTarget,
    bounded,
)

from tests.mocks import FakeCommandRunner, FakeTarget, make_parameter


class TestEncoding:
    """Decoding raw target text"""

    @pytest.mark.parametrize("raw,expected", [
        ("60\n", "60"),
        ("  4096  ", "4096"),
        ("0\t1\n", "0"),
    ])
    def test_integer(self, raw, expected):
        assert Encoding.INTEGER.decode(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("[always] madvise never\n", "always"),
        ("mq-deadline [none]\n", "none"),
        ("Enabled\n", "enabled"),
    ])
    def test_enum(self, raw, expected):
        assert Encoding.ENUM.decode(raw) == expected

    def test_pair(self):
        assert Encoding.PAIR.decode("3003, 3003\n") == "3003,3003"
        assert Encoding.PAIR.decode("Unlocked") == "unlocked"

    @pytest.mark.parametrize("encoding,raw", [
        (Encoding.INTEGER, "abc"),
        (Encoding.INTEGER, ""),
        (Encoding.PAIR, "1,2,3"),
        (Encoding.PAIR, "1,"),
    ])
    def test_invalid(self, encoding, raw):
        with pytest.raises(ValueError):
            encoding.decode(raw)


class TestFileTarget:
    """sysfs/procfs nodes backed by real files"""

    def test_read_write(self, tmp_path):
        node = tmp_path / "nr_requests"
        node.write_text("128\n")
        target = FileTarget(node)

        assert target.read() == "128\n"
        target.write("256")
        assert node.read_text() == "256\n"

    def test_missing_node_is_absent_and_never_created(self, tmp_path):
        target = FileTarget(tmp_path / "nope")

        with pytest.raises(TargetAbsent):
            target.read()
        with pytest.raises(TargetAbsent):
            target.write("1")
        assert not (tmp_path / "nope").exists()

    def test_absent_is_unreadable(self, tmp_path):
        with pytest.raises(Unreadable):
            FileTarget(tmp_path / "nope").read()

    def test_directory_write_is_denied(self, tmp_path):
        with pytest.raises(PermissionDenied):
            FileTarget(tmp_path).write("1")

    def test_sysctl_path(self, tmp_path):
        target = SysctlTarget("net.core.rmem_max", root=tmp_path)

        assert target.path == tmp_path / "proc" / "sys" / "net" / "core" / "rmem_max"
        assert target.location == "net.core.rmem_max"


class TestBounded:
    """Every access completes or times out"""

    def test_returns_value(self):
        assert bounded(lambda: "ok", 1.0, "read") == "ok"

    def test_reraises_worker_error(self):
        def fail():
            raise FileNotFoundError("gone")

        with pytest.raises(FileNotFoundError):
            bounded(fail, 1.0, "read")

    def test_times_out(self):
        release = threading.Event()
        try:
            with pytest.raises(TargetTimeout):
                bounded(lambda: release.wait(5), 0.05, "stuck node")
        finally:
            release.set()


class TestZpoolTarget:
    """Pool properties through zpool get/set"""

    def test_read(self):
        runner = FakeCommandRunner()
        runner.respond(("zpool", "get"), stdout="on\n")
        target = ZpoolPropertyTarget("tank", "autotrim", runner=runner)

        assert target.read() == "on\n"
        assert runner.calls[-1] == ["zpool", "get", "-H", "-o", "value", "autotrim", "tank"]

    def test_write(self):
        runner = FakeCommandRunner()
        ZpoolPropertyTarget("tank", "autotrim", runner=runner).write("on")

        assert runner.calls[-1] == ["zpool", "set", "autotrim=on", "tank"]

    def test_missing_binary_is_absent(self):
        target = ZpoolPropertyTarget("tank", "autotrim", runner=FakeCommandRunner(missing={"zpool"}))

        with pytest.raises(TargetAbsent):
            target.read()

    def test_unknown_pool_is_absent(self):
        runner = FakeCommandRunner()
        runner.respond(("zpool", "get"), returncode=1, stderr="cannot open 'tank': no such pool\n")

        with pytest.raises(TargetAbsent):
            ZpoolPropertyTarget("tank", "autotrim", runner=runner).read()

    def test_failed_write_is_denied(self):
        runner = FakeCommandRunner()
        runner.respond(("zpool", "set"), returncode=1, stderr="cannot set property\n")

        with pytest.raises(PermissionDenied):
            ZpoolPropertyTarget("tank", "autotrim", runner=runner).write("on")

    def test_read_timeout(self):
        target = ZpoolPropertyTarget("tank", "autotrim", runner=FakeCommandRunner(timeouts={"zpool"}))

        with pytest.raises(TargetTimeout):
            target.read()


class TestNvidiaTargets:
    """GPU settings through nvidia-smi"""

    def test_query_and_mapped_write(self):
        runner = FakeCommandRunner()
        runner.respond(("nvidia-smi", "-i", "0", "--query-gpu=persistence_mode"), stdout="Disabled\n")
        target = NvidiaSmiTarget("persistence_mode", write_flag="-pm",
                                 value_map={"enabled": "1", "disabled": "0"}, runner=runner)

        assert target.read() == "Disabled"
        target.write("enabled")
        assert runner.calls[-1] == ["nvidia-smi", "-i", "0", "-pm", "1"]

    def test_no_devices_is_absent(self):
        runner = FakeCommandRunner()
        runner.respond(("nvidia-smi",), returncode=6, stdout="No devices were found\n")

        with pytest.raises(TargetAbsent):
            NvidiaSmiTarget("accounting.mode", runner=runner).read()

    def test_clock_lock_heuristic(self):
        runner = FakeCommandRunner()
        runner.respond(("nvidia-smi", "-i", "0", "--query-gpu=clocks.sm,clocks.max.sm"), stdout="3003, 3003\n")
        target = ClockLockTarget(runner=runner)

        assert target.read() == "3003,3003"

        runner.respond(("nvidia-smi", "-i", "0", "--query-gpu=clocks.sm,clocks.max.sm"), stdout="1200, 3003\n")
        assert target.read() == "unlocked"

    def test_clock_lock_writes(self):
        runner = FakeCommandRunner()
        target = ClockLockTarget(runner=runner)

        target.write("3003,3003")
        target.write("unlocked")

        assert runner.calls == [
            ["nvidia-smi", "-i", "0", "-lgc", "3003,3003"],
            ["nvidia-smi", "-i", "0", "-rgc"],
        ]

    def test_vboost(self):
        runner = FakeCommandRunner()
        runner.respond(("nvidia-smi", "boost-slider", "-l"), stdout=(
            "| GPU  Boost Slider  Current Value  Max Value |\n"
            "|   0  vboost                    1          4 |\n"
        ))
        target = VboostTarget(runner=runner)

        assert target.read() == "1"
        target.write("1")
        assert runner.calls[-1] == ["nvidia-smi", "boost-slider", "--vboost", "1"]

    def test_vboost_missing_value(self):
        runner = FakeCommandRunner()
        runner.respond(("nvidia-smi", "boost-slider", "-l"), stdout="nothing here\n")

        with pytest.raises(Unreadable):
            VboostTarget(runner=runner).read()


class TestStateReader:
    """Decoded reads and the absence sentinel"""

    def test_decodes(self):
        param = make_parameter("mem.thp.enabled", FakeTarget("[always] madvise never"),
                               desired="always", default="madvise", encoding=Encoding.ENUM)
        assert StateReader().read(param) == "always"

    def test_optional_absent(self):
        param = make_parameter("p", FakeTarget(absent=True), optional=True)
        assert StateReader().read(param) is ABSENT

    def test_required_absent(self):
        param = make_parameter("p", FakeTarget(absent=True))
        with pytest.raises(Unreadable) as exc:
            StateReader().read(param)
        assert exc.value.parameter_id == "p"

    def test_denied_propagates(self):
        param = make_parameter("p", FakeTarget(deny_read=True))
        with pytest.raises(PermissionDenied):
            StateReader().read(param)


def release_fifo(path, flags):
    """Open the other end of a FIFO so an abandoned worker can finish."""
    try:
        fd = os.open(path, flags | os.O_NONBLOCK)
    except OSError:
        return
    os.close(fd)


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs named pipes")
class TestHungTargets:
    """A node that never answers is bounded by the timeout"""

    @pytest.fixture
    def fifo(self, tmp_path):
        path = tmp_path / "hung_node"
        os.mkfifo(path)
        return path

    def test_hung_read_times_out(self, fifo):
        try:
            with pytest.raises(TargetTimeout):
                FileTarget(fifo, timeout=0.1).read()
        finally:
            release_fifo(fifo, os.O_WRONLY)

    def test_hung_read_is_unreadable_and_batch_continues(self, fifo):
        healthy = FakeTarget("0")
        params = [
            make_parameter("hung", FileTarget(fifo, timeout=0.1)),
            make_parameter("healthy", healthy),
        ]
        try:
            records = Reconciler().reconcile(params)
        finally:
            release_fifo(fifo, os.O_WRONLY)

        assert [r.outcome for r in records] == [Outcome.UNREADABLE, Outcome.APPLIED]
        assert "timed out" in records[0].detail

    def test_hung_write_is_denied(self, fifo):
        try:
            with pytest.raises(PermissionDenied) as exc:
                FileTarget(fifo, timeout=0.1).write("1")
        finally:
            release_fifo(fifo, os.O_RDONLY)
        assert "timed out" in exc.value.detail


class TestCommandTimeouts:
    """Management commands that exceed the timeout"""

    def test_write_timeout_is_denied(self):
        runner = FakeCommandRunner(timeouts={"zpool"})

        with pytest.raises(PermissionDenied) as exc:
            ZpoolPropertyTarget("tank", "autotrim", runner=runner, timeout=0.5).write("on")
        assert "timed out" in exc.value.detail

    def test_nvidia_write_timeout_is_denied(self):
        runner = FakeCommandRunner(timeouts={"nvidia-smi"})
        target = NvidiaSmiTarget("persistence_mode", write_flag="-pm", runner=runner)

        with pytest.raises(PermissionDenied):
            target.write("enabled")

    def test_read_timeout_becomes_unreadable_record(self):
        runner = FakeCommandRunner(timeouts={"zpool"})
        param = make_parameter(
            "zfs.tank.autotrim",
            ZpoolPropertyTarget("tank", "autotrim", runner=runner),
            desired="on", default="off", encoding=Encoding.ENUM, optional=True,
        )

        record = Reconciler().reconcile([param])[0]

        assert record.outcome == Outcome.UNREADABLE
        assert record.is_failure


class TestUndecodableNode:
    """Binary garbage in a text node"""

    def test_read_is_unreadable(self, tmp_path):
        node = tmp_path / "garbage"
        node.write_bytes(b"\xff\xfe1\n")
        target = FileTarget(node)

        try:
            raw = target.read()
        except Unreadable:
            return
        # a non-UTF-8 locale decodes the bytes; the value still does not parse
        with pytest.raises(ValueError):
            Encoding.INTEGER.decode(raw)

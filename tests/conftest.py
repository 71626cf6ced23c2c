"""
Pytest configuration for hosttune tests.

Fixtures build a small fake host under tmp_path: one block device, two
CPUs with one deep C-state, and no zpool or nvidia-smi binaries.
"""

import pytest

from hosttune.config import Config, HostConfig
from hosttune.journal.log import TransactionLog
from hosttune.registry.registry import ParameterRegistry
from hosttune.runner.engine import TuningEngine

from tests.mocks import FakeCommandRunner, populate_root


@pytest.fixture
def host_config():
    return HostConfig(
        block_devices=["sda"],
        zfs_pool="tank",
        cpu_count=2,
        cstates=[2],
        gpu_clock_mhz=3003,
    )


@pytest.fixture
def fake_root(tmp_path):
    root = tmp_path / "host"
    root.mkdir()
    return root


@pytest.fixture
def runner():
    return FakeCommandRunner(missing={"zpool", "nvidia-smi"})


@pytest.fixture
def registry(host_config, fake_root, runner):
    return ParameterRegistry.load(host=host_config, root=fake_root, timeout=1.0, runner=runner)


@pytest.fixture
def host_paths(registry):
    """Parameter id -> file path of every file-backed target, at defaults."""
    return populate_root(registry)


@pytest.fixture
def journal(tmp_path):
    return TransactionLog(tmp_path / "journal.jsonl")


@pytest.fixture
def config(tmp_path, host_config, fake_root, monkeypatch):
    monkeypatch.delenv("HOSTTUNE_JOURNAL", raising=False)
    config = Config(host=host_config)
    config.engine.require_root = False
    config.engine.root = str(fake_root)
    config.engine.timeout = 1.0
    config.journal.path = str(tmp_path / "journal.jsonl")
    config.persistence.root = str(fake_root)
    return config


@pytest.fixture
def engine(config, runner, host_paths):
    # host_paths only triggers population of the fake root
    return TuningEngine(config, runner=runner)

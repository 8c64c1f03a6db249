"""
Tests for the blockutils command-line interface.
"""

import json

import pytest
from click.testing import CliRunner

from blockutils.cli.main import cli
from blockutils.core.config import BlockUtilsConfig
from blockutils.core.engine import BlockEngine

from conftest import FakeMountResolver, FakePropertyReader, FakeRunner, disk_properties


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner(stdout="mke2fs done")


@pytest.fixture
def engine(runner: FakeRunner) -> BlockEngine:
    reader = FakePropertyReader(
        {
            "/dev/sda": {"DEVTYPE": "disk", "size": "4096", "partitions": "sda1"},
            "/dev/sda1": disk_properties(ID_FS_TYPE="ext4", ID_FS_UUID="1234-abcd", ID_FS_LABEL="root"),
            "/dev/sdb": {"DEVTYPE": "disk", "size": "8192"},
        }
    )
    return BlockEngine(
        reader=reader,
        mount_resolver=FakeMountResolver({"/dev/sda1": "/"}),
        runner=runner,
        config=BlockUtilsConfig(),
    )


def invoke(engine: BlockEngine, args: list[str], input: str | None = None):
    return CliRunner().invoke(
        cli,
        args,
        obj={"engine": engine, "config": engine.config},
        input=input,
    )


class TestReadCommands:
    def test_list_json(self, engine: BlockEngine) -> None:
        result = invoke(engine, ["--json", "list"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["total_devices"] == 3
        assert [d["path"] for d in data["devices"]] == ["/dev/sda", "/dev/sda1", "/dev/sdb"]
        assert data["devices"][1]["mountpoint"] == "/"

    def test_list_table(self, engine: BlockEngine) -> None:
        result = invoke(engine, ["list"])
        assert result.exit_code == 0
        assert "/dev/sdb" in result.output

    def test_info_json(self, engine: BlockEngine) -> None:
        result = invoke(engine, ["--json", "info", "/dev/sda1"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["filesystem"] == "ext4"
        assert data["uuid"] == "1234-abcd"
        assert data["label"] == "root"

    def test_info_missing_device(self, engine: BlockEngine) -> None:
        result = invoke(engine, ["info", "/dev/sdz"])
        assert result.exit_code == 1
        assert "/dev/sdz" in result.output

    def test_classify(self, engine: BlockEngine) -> None:
        result = invoke(engine, ["classify", "/dev/sda1"])
        assert result.exit_code == 0
        assert result.output.strip() == "ext4"

    def test_classify_blank_device(self, engine: BlockEngine) -> None:
        result = invoke(engine, ["--json", "classify", "/dev/sdb"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {"device": "/dev/sdb", "filesystem": "unknown"}


class TestFormatCommand:
    def test_format_with_yes(self, engine: BlockEngine, runner: FakeRunner) -> None:
        result = invoke(engine, ["format", "/dev/sdb", "-f", "ext4", "-l", "data", "--yes"])

        assert result.exit_code == 0, result.output
        assert runner.calls == [("mkfs.ext4", ["-L", "data", "/dev/sdb"])]

    def test_format_confirmation(self, engine: BlockEngine, runner: FakeRunner) -> None:
        result = invoke(engine, ["format", "/dev/sdb", "-f", "xfs"], input="DESTROY-/DEV/SDB\n")

        assert result.exit_code == 0, result.output
        assert runner.calls == [("mkfs.xfs", ["/dev/sdb"])]

    def test_format_wrong_confirmation(self, engine: BlockEngine, runner: FakeRunner) -> None:
        result = invoke(engine, ["format", "/dev/sdb", "-f", "xfs"], input="yes\n")

        assert result.exit_code == 1
        assert runner.calls == []

    def test_format_dry_run_json(self, engine: BlockEngine, runner: FakeRunner) -> None:
        result = invoke(
            engine,
            ["--json", "format", "/dev/sdb", "-f", "btrfs", "--node-size", "16384", "--dry-run"],
        )

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["dry_run"] is True
        assert data["command"] == ["mkfs.btrfs", "-n", "16384", "/dev/sdb"]
        assert runner.calls == []

    def test_format_mounted_device_fails(self, engine: BlockEngine, runner: FakeRunner) -> None:
        result = invoke(engine, ["--json", "format", "/dev/sda1", "-f", "ext4", "--force", "--yes"])

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["success"] is False
        assert data["error"]["kind"] == "UnsafeOperation"
        assert data["error"]["reason"] == "mounted"
        assert runner.calls == []

    def test_unknown_filesystem_rejected_by_cli(self, engine: BlockEngine) -> None:
        result = invoke(engine, ["format", "/dev/sdb", "-f", "unknown", "--yes"])
        assert result.exit_code == 2

    def test_tool_failure_exit_code(self, engine: BlockEngine, runner: FakeRunner) -> None:
        runner.returncode = 1
        runner.stderr = "mkfs.vfat: unable to open /dev/sdb"

        result = invoke(engine, ["format", "/dev/sdb", "-f", "vfat", "--yes"])

        assert result.exit_code == 1
        assert "unable to open /dev/sdb" in result.output

    def test_tool_failure_reports_error_kind(self, engine: BlockEngine, runner: FakeRunner) -> None:
        runner.returncode = 1

        result = invoke(engine, ["format", "/dev/sdb", "-f", "vfat", "--yes"])

        assert result.exit_code == 1
        assert "FormatFailed" in result.output

    def test_format_disk_with_mounted_partition_fails(
        self, engine: BlockEngine, runner: FakeRunner
    ) -> None:
        result = invoke(engine, ["--json", "format", "/dev/sda", "-f", "ext4", "--force", "--yes"])

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["error"]["reason"] == "mounted"
        assert "/dev/sda1" in data["error"]["message"]
        assert runner.calls == []

    def test_format_dry_run_shows_preflight(self, engine: BlockEngine, runner: FakeRunner) -> None:
        result = invoke(engine, ["format", "/dev/sdb", "-f", "ext4", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Preflight" in result.output
        assert "4/4 checks passed" in result.output
        assert "Would run: mkfs.ext4 /dev/sdb" in result.output
        assert runner.calls == []

    def test_format_dry_run_preflight_lists_failures(self, engine: BlockEngine) -> None:
        result = invoke(engine, ["format", "/dev/sda", "-f", "ext4", "--force", "--dry-run"])

        assert result.exit_code == 1
        assert "3/4 checks passed" in result.output
        assert "Mount Status" in result.output

    def test_format_luks_key_file(self, engine: BlockEngine, runner: FakeRunner) -> None:
        result = invoke(
            engine,
            ["format", "/dev/sdb", "-f", "crypto_luks", "--key-file", "/etc/keys/sdb.key", "--yes"],
        )

        assert result.exit_code == 0, result.output
        assert runner.calls == [
            ("cryptsetup", ["luksFormat", "--key-file", "/etc/keys/sdb.key", "/dev/sdb"])
        ]

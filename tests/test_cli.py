# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Tests for the command-line entry point."""

from datetime import timedelta

import pytest
import yaml

from membership_lifecycle import __version__
from membership_lifecycle.cli import main
from membership_lifecycle.grants import Grant, utc_now
from membership_lifecycle.store import JsonGrantStore


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("TOKEN", "GUILD_ID", "CLIENT_ID", "ADMIN_LOG_CHANNEL", "DATA_FILE", "MEMBERSHIP_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "members.json"


@pytest.fixture
def config_file(tmp_path, data_file):
    path = tmp_path / "membership.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "storage": {"path": str(data_file)},
                "groups": {"VIP": {"role_id": "111"}},
            }
        )
    )
    return str(path)


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])

    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out


class TestList:
    def test_empty(self, config_file, capsys):
        assert main(["list", "--config", config_file]) == 0
        assert "No memberships stored." in capsys.readouterr().out

    def test_lists_grants(self, config_file, data_file, capsys):
        now = utc_now()
        store = JsonGrantStore(data_file)
        store.upsert(Grant("1001", "VIP", now + timedelta(days=3, minutes=5)))
        store.upsert(Grant("1002", "VIP", now - timedelta(hours=1), reminded=True))

        assert main(["list", "--config", config_file]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("1002  VIP")
        assert "expired" in lines[0]
        assert "3 days left" in lines[1]
        assert "not reminded" in lines[1]

    def test_corrupt_store(self, config_file, data_file, capsys):
        data_file.write_text("{broken")

        assert main(["list", "--config", config_file]) == 1
        assert "corrupted" in capsys.readouterr().err

    def test_out_of_range_expiry_is_corruption(self, config_file, data_file, capsys):
        data_file.write_text('{"1001": {"expiry": Infinity, "group": "VIP"}}')

        assert main(["list", "--config", config_file]) == 1
        assert "corrupted" in capsys.readouterr().err


class TestSweepPreview:
    def test_nothing_due(self, config_file, data_file, capsys):
        JsonGrantStore(data_file).upsert(Grant.issue("1001", "VIP", 30, utc_now()))

        assert main(["sweep-preview", "--config", config_file]) == 0
        assert "nothing to do" in capsys.readouterr().out

    def test_due_transitions(self, config_file, data_file, capsys):
        now = utc_now()
        store = JsonGrantStore(data_file)
        store.upsert(Grant("1001", "VIP", now + timedelta(hours=5)))
        store.upsert(Grant("1002", "VIP", now - timedelta(hours=1)))
        store.upsert(Grant("1003", "VIP", now + timedelta(days=9)))

        assert main(["sweep-preview", "--config", config_file]) == 0

        out = capsys.readouterr().out
        assert "expire  1002" in out
        assert "remind  1001" in out
        assert "1003" not in out
        # preview never changes the store
        assert JsonGrantStore(data_file).get("1001").reminded is False


class TestRun:
    def test_missing_credentials(self, config_file, capsys):
        assert main(["run", "--config", config_file]) == 1
        assert "Missing required settings" in capsys.readouterr().err

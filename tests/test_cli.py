"""
Tests for the interactive CLI

Run with: pytest tests/test_cli.py -v
"""

import json
from unittest.mock import patch

import pytest

from conftest import (
    IDENTITY_NAME,
    IDENTITY_SHA,
    RUNNING_UDID,
    STOPPED_UDID,
    MockRunner,
    make_app,
    plistbuddy_handler,
    result,
    unzip_handler,
)

from simforge import cli
from simforge.bundle.signer import SigningIdentity
from simforge.config import Preferences
from simforge.device.simulator import DeviceDescriptor


def answers(*values):
    """input() replacement returning canned answers in order."""
    it = iter(values)
    return lambda prompt: next(it)


@pytest.fixture
def simulators():
    return [
        DeviceDescriptor(name="iPhone 15", udid=RUNNING_UDID, runtime="iOS 17.2"),
        DeviceDescriptor(name="iPhone SE", udid=STOPPED_UDID, runtime="iOS 17.2"),
    ]


class TestSelectOption:
    """Tests for the numbered menu."""

    def test_valid_choice(self, capsys):
        index = cli.select_option("apps", "app", ["A.app", "B.ipa"], answers("2"))

        assert index == 1
        assert "[2] B.ipa" in capsys.readouterr().out

    def test_retries_until_valid(self, capsys):
        index = cli.select_option("apps", "app", ["A.app"], answers("x", "5", "1"))

        assert index == 0
        out = capsys.readouterr().out
        assert "Please enter a number." in out
        assert "Invalid selection" in out

    def test_cancel(self):
        assert cli.select_option("apps", "app", ["A.app"], answers("0")) is None


class TestFindPackages:
    """Tests for apps directory scanning."""

    def test_suffix_case_is_ignored(self, tmp_path):
        make_app(tmp_path, "Demo.APP")
        (tmp_path / "Other.IPA").write_bytes(b"PK")
        (tmp_path / "notes.txt").write_text("")

        names = [p.name for p in cli.find_packages(tmp_path)]

        assert names == ["Demo.APP", "Other.IPA"]


class TestChooseSimulator:
    """Tests for saved-preference handling."""

    def test_saved_device_is_used(self, tmp_path, simulators):
        prefs = Preferences(simulator_udid=STOPPED_UDID)

        udid = cli.choose_simulator(simulators, prefs, tmp_path / "prefs", input_fn=answers())

        assert udid == STOPPED_UDID
        assert not (tmp_path / "prefs").exists()

    def test_stale_saved_device_prompts_and_saves(self, tmp_path, simulators):
        """A saved UDID that no longer exists is ignored."""
        prefs = Preferences(simulator_udid="0000-GONE")
        path = tmp_path / "prefs"

        udid = cli.choose_simulator(simulators, prefs, path, input_fn=answers("1"))

        assert udid == RUNNING_UDID
        assert json.loads(path.read_text()) == {"simulatorUDID": RUNNING_UDID}

    def test_requested_device(self, tmp_path, simulators):
        udid = cli.choose_simulator(
            simulators, Preferences(), tmp_path / "prefs", requested=STOPPED_UDID
        )

        assert udid == STOPPED_UDID

    def test_requested_device_missing(self, tmp_path, simulators, capsys):
        udid = cli.choose_simulator(simulators, Preferences(), tmp_path / "prefs", requested="nope")

        assert udid is None
        assert "Simulator not found" in capsys.readouterr().out

    def test_no_simulators(self, tmp_path):
        assert cli.choose_simulator([], Preferences(), tmp_path / "prefs") is None


class TestChooseIdentity:
    """Tests for identity selection."""

    def test_by_name(self):
        identity = SigningIdentity(name=IDENTITY_NAME, identifier=IDENTITY_SHA)

        assert cli.choose_identity([identity], IDENTITY_NAME) == identity
        assert cli.choose_identity([identity], IDENTITY_SHA) == identity

    def test_none_found(self, capsys):
        assert cli.choose_identity([]) is None
        assert "No signing identities found" in capsys.readouterr().out


class TestMain:
    """Tests for the full command."""

    @pytest.fixture
    def project(self, tmp_path, monkeypatch):
        """Working directory with a converter, an app and a fast config."""
        monkeypatch.chdir(tmp_path)
        converter = tmp_path / ".build" / "release" / "simforge"
        converter.parent.mkdir(parents=True)
        converter.write_text("")
        make_app(tmp_path / "apps")
        (tmp_path / "simforge.yaml").write_text(
            f"app_settle_delay: 0\nscratch_root: {tmp_path / 'scratch'}\n"
        )
        return tmp_path

    @pytest.fixture
    def mock_runner(self, simctl):
        return MockRunner({
            "xcrun": simctl,
            "unzip": unzip_handler,
            "/usr/libexec/PlistBuddy": plistbuddy_handler(),
            "security": result(f'  1) {IDENTITY_SHA} "{IDENTITY_NAME}"\n     1 valid identities found\n'),
        })

    def test_missing_converter(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)

        assert cli.main([]) == 1
        assert "swift build -c release" in capsys.readouterr().out

    def test_interactive_deploy(self, project, mock_runner, capsys):
        with patch("simforge.cli.ProcessRunner", return_value=mock_runner):
            code = cli.main([], input_fn=answers("1", "1", "1"))

        assert code == 0
        assert "Launched com.example.Demo" in capsys.readouterr().out
        assert json.loads((project / ".simforge_config").read_text()) == {
            "simulatorUDID": RUNNING_UDID
        }
        assert not any((project / "scratch").iterdir())

    def test_saved_device_skips_prompt(self, project, mock_runner):
        Preferences(simulator_udid=RUNNING_UDID).save(project / ".simforge_config")

        with patch("simforge.cli.ProcessRunner", return_value=mock_runner):
            code = cli.main(["apps/Demo.app", "--identity", IDENTITY_SHA], input_fn=answers())

        assert code == 0

    def test_failed_deploy_exit_code(self, project, mock_runner):
        mock_runner.handlers["codesign"] = result(stderr="no identity found", return_code=1)

        with patch("simforge.cli.ProcessRunner", return_value=mock_runner):
            code = cli.main(
                ["apps/Demo.app", "--identity", IDENTITY_SHA, "--device", RUNNING_UDID]
            )

        assert code == 1

    def test_malformed_config_exit_code(self, project, capsys):
        (project / "simforge.yaml").write_text("boot_timeout: [unclosed\n")

        assert cli.main([], input_fn=answers()) == 1
        assert "Error: Could not read" in capsys.readouterr().out

    def test_no_packages(self, project, capsys):
        code = cli.main(["--apps-dir", str(project / "empty")], input_fn=answers())

        assert code == 1
        assert "No .app or .ipa files found" in capsys.readouterr().out
        assert (project / "empty").is_dir()

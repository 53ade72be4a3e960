"""
Tests for CLI commands — global options, install, diff, clean, maintenance.
"""

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from brewsync.adapters.registry import default_registry
from brewsync.core.config.settings import Settings
from brewsync.core.models.package import Category, ErrorKind
from brewsync.main import cli

SETTINGS = Settings(skip_preflight=True, backoff_seconds=0)


@pytest.fixture
def config(tmp_path: Path) -> Path:
    path = tmp_path / "brewsync.yml"
    path.write_text(textwrap.dedent("""\
        formulae:
          - git
          - wget
        casks:
          - firefox
        npm:
          - typescript
    """))
    return path


def _invoke(args, registry, *, input=None):
    runner = CliRunner()
    return runner.invoke(
        cli, args, obj={"registry": registry, "settings": SETTINGS}, input=input,
    )


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "converge Homebrew and npm packages" in result.output
        for command in ("install", "diff", "clean", "outdated", "doctor", "update", "cleanup"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_missing_config(self, tmp_path: Path, registry):
        result = _invoke(["--config", str(tmp_path / "nope.yml"), "install"], registry)
        assert result.exit_code == 1


class TestInstallCommand:
    def test_dry_run(self, config, registry, brew_mock, npm_mock):
        result = _invoke(["--config", str(config), "install", "--dry-run"], registry)
        assert result.exit_code == 0
        assert "[DRY-RUN]" in result.output
        assert "wget" in result.output
        assert brew_mock.call_count == 0
        assert npm_mock.call_count == 0

    def test_install(self, config, registry, brew_mock, npm_mock):
        brew_mock._installed[Category.FORMULA].add("git")
        result = _invoke(["--config", str(config), "install"], registry)
        assert result.exit_code == 0, result.output
        assert sorted(brew_mock.calls("install")) == ["firefox", "wget"]
        assert npm_mock.calls("batch") == ["typescript"]
        assert "All packages installed" in result.output

    def test_failures_exit_nonzero(self, config, registry, brew_mock):
        brew_mock.set_failure("wget", ErrorKind.NOT_FOUND)
        result = _invoke(["--config", str(config), "install"], registry)
        assert result.exit_code == 1
        assert "wget (package not found)" in result.output

    def test_json(self, config, registry, brew_mock):
        brew_mock.set_failure("wget", ErrorKind.PERMISSION_DENIED)
        result = _invoke(["--quiet", "--config", str(config), "install", "--json"], registry)
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["failed"] == 1
        assert data["failures"]["formula"] == [{"name": "wget", "reason": "permission denied"}]


class TestDiffAndClean:
    def test_diff_clean_system(self, config, registry):
        result = _invoke(["--config", str(config), "diff"], registry)
        assert result.exit_code == 0
        assert "clean" in result.output

    def test_diff_json(self, config, registry, brew_mock):
        brew_mock._installed[Category.FORMULA].update({"git", "htop"})
        result = _invoke(["--quiet", "--config", str(config), "diff", "--json"], registry)
        assert result.exit_code == 0
        assert json.loads(result.output)["extra"]["formula"] == ["htop"]

    def test_clean_dry_run(self, config, registry, brew_mock):
        brew_mock._installed[Category.FORMULA].add("htop")
        result = _invoke(["--config", str(config), "clean", "--dry-run"], registry)
        assert result.exit_code == 0
        assert "htop" in result.output
        assert brew_mock.calls("uninstall") == []

    def test_clean_confirmed(self, config, registry, brew_mock):
        brew_mock._installed[Category.FORMULA].add("htop")
        result = _invoke(["--config", str(config), "clean"], registry, input="y\n")
        assert result.exit_code == 0
        assert brew_mock.calls("uninstall") == ["htop"]

    def test_clean_declined(self, config, registry, brew_mock):
        brew_mock._installed[Category.FORMULA].add("htop")
        result = _invoke(["--config", str(config), "clean"], registry, input="n\n")
        assert result.exit_code == 0
        assert "cancelled" in result.output
        assert brew_mock.calls("uninstall") == []

    def test_clean_json_requires_yes(self, config, registry, brew_mock):
        brew_mock._installed[Category.FORMULA].update({"git", "htop"})
        result = _invoke(["--config", str(config), "clean", "--json"], registry, input="n\n")
        assert result.exit_code == 1
        assert brew_mock.calls("uninstall") == []

    def test_clean_json_with_yes(self, config, registry, brew_mock):
        brew_mock._installed[Category.FORMULA].update({"git", "htop"})
        result = _invoke(["--quiet", "--config", str(config), "clean", "--json", "--yes"], registry)
        assert result.exit_code == 0
        assert brew_mock.calls("uninstall") == ["htop"]
        assert json.loads(result.output)["result"]["removed"]["formula"] == ["htop"]

    def test_clean_failure(self, config, registry, brew_mock):
        brew_mock._installed[Category.CASK].add("slack")
        brew_mock.set_failure("slack", ErrorKind.PERMISSION_DENIED)
        result = _invoke(["--config", str(config), "clean", "--yes"], registry)
        assert result.exit_code == 1
        assert "cask:slack (permission denied)" in result.output


class TestMaintenanceCommands:
    def test_outdated(self, fake_runner):
        fake_runner.on("brew", "outdated", output=json.dumps({
            "formulae": [{"name": "git", "installed_versions": ["2.40"], "current_version": "2.41"}],
        }))
        result = _invoke(["outdated"], default_registry(fake_runner))
        assert result.exit_code == 0
        assert "git" in result.output
        assert "2.41" in result.output

    def test_doctor_healthy(self, fake_runner):
        fake_runner.on("brew", "doctor", output="Your system is ready to brew.")
        result = _invoke(["doctor"], default_registry(fake_runner))
        assert result.exit_code == 0

    def test_doctor_problems(self, fake_runner):
        fake_runner.on("brew", "doctor", returncode=1, output="Warning: broken symlinks found")
        result = _invoke(["doctor"], default_registry(fake_runner))
        assert result.exit_code == 1
        assert "brew cleanup --prune=all" in result.output

    def test_update_dry_run(self, fake_runner):
        result = _invoke(["update", "--dry-run"], default_registry(fake_runner))
        assert result.exit_code == 0
        assert fake_runner.invocations == 0

    def test_cleanup_failure(self, fake_runner):
        fake_runner.on("brew", "cleanup", returncode=1)
        result = _invoke(["cleanup"], default_registry(fake_runner))
        assert result.exit_code == 1

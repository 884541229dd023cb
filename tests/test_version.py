"""Packaging metadata and entry points."""

import tomllib
from importlib.metadata import version
from pathlib import Path

import backupctl
from backupctl import __main__ as module_entry
from backupctl.cli import main

PYPROJECT = Path(__file__).parent.parent / "pyproject.toml"


def _project_table() -> dict:
    with open(PYPROJECT, "rb") as f:
        return tomllib.load(f)["project"]


def test_installed_version_is_reported():
    """__version__ comes from the installed distribution metadata."""
    assert backupctl.__version__ == version("backupctl")
    assert backupctl.__version__ == _project_table()["version"]


def test_console_script_targets_cli_main():
    """The backupctl script and python -m backupctl run the same entry point."""
    assert _project_table()["scripts"]["backupctl"] == "backupctl.cli:main"
    assert module_entry.main is main


def test_runtime_dependencies_declared():
    """Every third-party runtime import is declared."""
    declared = {dep.split(">")[0].split("=")[0].strip() for dep in _project_table()["dependencies"]}
    assert {"loguru", "python-dotenv"} <= declared

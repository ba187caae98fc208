"""Shared fixtures for action runner tests."""

import shutil

import pytest

from action_runner.config import RunnerConfig
from action_runner.workflow.executor import ActionEngine
from helpers import FakeRetriever, RecordingExecutor, write_action as _write_action


@pytest.fixture
def workspace(tmp_path):
    """Repository root for local action references."""
    root = tmp_path / "repo"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def write_action():
    return _write_action


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def config(workspace):
    return RunnerConfig(workspace=workspace)


@pytest.fixture
def engine(config, executor):
    return ActionEngine(config, executor=executor)


@pytest.fixture
def fake_retriever(tmp_path):
    checkouts = tmp_path / "checkouts"
    checkouts.mkdir()
    return FakeRetriever(checkouts)


@pytest.fixture
def bash_available():
    if shutil.which('bash') is None:
        pytest.skip("bash not available")

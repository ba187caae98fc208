"""Tests for runner configuration."""

import pytest

from action_runner.attestation.witness import RUNNER_INPUTS
from action_runner.config import RunnerConfig


def test_from_env(tmp_path):
    environ = {'GITHUB_WORKSPACE': str(tmp_path), 'GITHUB_SERVER_URL': 'https://ghe.example.com'}

    config = RunnerConfig.from_env(environ, default_ref='develop', max_depth=None)

    assert config.workspace == tmp_path.resolve()
    assert config.server_url == 'https://ghe.example.com'
    assert config.default_ref == 'develop'
    assert config.max_depth == 32
    assert config.excluded_inputs == RUNNER_INPUTS


def test_workspace_defaults_to_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert RunnerConfig.from_env({}).workspace == tmp_path.resolve()


def test_depth_must_be_positive(tmp_path):
    with pytest.raises(ValueError, match="max_depth"):
        RunnerConfig(workspace=tmp_path, max_depth=0)

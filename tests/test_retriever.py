"""Tests for hosted action retrieval through git."""

import subprocess
from unittest.mock import patch

import pytest

from action_runner.actions.retriever import GitActionRetriever
from action_runner.exceptions import ActionRetrievalError


def git_failure(*args, **kwargs):
    raise subprocess.CalledProcessError(128, args[0], stderr='fatal: not found')


class TestRetrieve:
    def test_shallow_clone(self, tmp_path):
        retriever = GitActionRetriever(temp_root=tmp_path)

        with patch('action_runner.actions.retriever.subprocess.run') as mock_run:
            target = retriever.retrieve('octo', 'tools', 'v1')

        assert target.is_dir()
        argv = mock_run.call_args[0][0]
        assert argv == ['git', 'clone', '--depth', '1', '--branch', 'v1',
                        'https://github.com/octo/tools.git', str(target)]

    def test_falls_back_to_full_clone_and_checkout(self, tmp_path):
        retriever = GitActionRetriever(server_url='https://git.example.com/', temp_root=tmp_path)
        calls = []

        def fake_run(argv, **kwargs):
            calls.append((argv, kwargs.get('cwd')))
            if '--depth' in argv:
                raise subprocess.CalledProcessError(128, argv, stderr='shallow failed')
            return subprocess.CompletedProcess(argv, 0, '', '')

        with patch('action_runner.actions.retriever.subprocess.run', side_effect=fake_run):
            target = retriever.retrieve('octo', 'tools', 'abc123')

        assert [argv[1] for argv, _ in calls] == ['clone', 'clone', 'checkout']
        assert calls[1][0] == ['git', 'clone', 'https://git.example.com/octo/tools.git', str(target)]
        assert calls[2] == (['git', 'checkout', 'abc123'], str(target))

    def test_both_strategies_fail(self, tmp_path):
        retriever = GitActionRetriever(temp_root=tmp_path)

        with patch('action_runner.actions.retriever.subprocess.run', side_effect=git_failure):
            with pytest.raises(ActionRetrievalError, match="octo/tools@v9"):
                retriever.retrieve('octo', 'tools', 'v9')

        assert list(tmp_path.iterdir()) == []

    def test_git_that_cannot_start(self, tmp_path):
        retriever = GitActionRetriever(temp_root=tmp_path)

        with patch('action_runner.actions.retriever.subprocess.run', side_effect=FileNotFoundError('git')):
            with pytest.raises(ActionRetrievalError, match="octo/tools@main"):
                retriever.retrieve('octo', 'tools', 'main')

        assert list(tmp_path.iterdir()) == []

    def test_empty_ref_is_rejected(self, tmp_path):
        with pytest.raises(ActionRetrievalError, match="owner/repo@ref"):
            GitActionRetriever(temp_root=tmp_path).retrieve('octo', 'tools', '')

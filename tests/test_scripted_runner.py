"""Tests for node action execution."""

import os

import pytest

from action_runner.actions.node import normalize_boolean_inputs
from action_runner.exceptions import ActionNotFound, MalformedDescriptor
from helpers import append_file_command


def node_action(write_action, action_dir, main='dist/index.js', create=True):
    write_action(action_dir, {'name': 'node action', 'runs': {'using': 'node20', 'main': main}})
    if create:
        entry = action_dir / main
        entry.parent.mkdir(parents=True, exist_ok=True)
        entry.write_text("console.log('hi')\n")
    return action_dir.resolve()


class TestScriptedActions:
    def test_runs_entry_point_from_workspace(self, engine, executor, workspace, write_action):
        action_dir = node_action(write_action, workspace / "node")
        executor.responses = ['hi\n']

        output = engine.run_action_dir(action_dir, {'NODE_PATH': '/lib/node', 'INPUT_DEBUG': ' Yes '})

        call = executor.calls[0]
        assert output == 'hi\n'
        assert call['argv'] == ['node', str(action_dir / 'dist' / 'index.js')]
        assert call['work_dir'] == workspace
        assert call['env']['NODE_PATH'].split(os.pathsep) == [str(action_dir), '/lib/node']
        assert call['env']['INPUT_DEBUG'] == 'Yes'

    def test_outputs_and_env_from_command_files(self, engine, executor, workspace, write_action):
        root = workspace / "root"
        node_action(write_action, root / "node")
        write_action(root, {
            'name': 'root',
            'runs': {'using': 'composite', 'steps': [
                {'id': 'n', 'uses': './node'},
                {'run': 'echo ${{ steps.n.outputs.version }}'},
            ]},
        })

        def respond(call):
            append_file_command('GITHUB_OUTPUT', 'version=1.0.0\n')(call)
            return ''

        executor.responses = [respond, '']
        engine.run_action_dir(root, {})

        assert executor.scripts[1] == 'echo 1.0.0'

    def test_missing_main(self, engine, workspace, write_action):
        action_dir = write_action(workspace / "node", {'name': 'x', 'runs': {'using': 'node16'}})

        with pytest.raises(MalformedDescriptor, match="runs.main"):
            engine.run_action_dir(action_dir, {})

    def test_missing_entry_file(self, engine, workspace, write_action):
        action_dir = node_action(write_action, workspace / "node", create=False)

        with pytest.raises(ActionNotFound):
            engine.run_action_dir(action_dir, {})


def test_normalize_boolean_inputs():
    env = {'INPUT_A': ' on ', 'INPUT_B': ' text ', 'OTHER': ' true '}
    normalize_boolean_inputs(env)
    assert env == {'INPUT_A': 'on', 'INPUT_B': ' text ', 'OTHER': ' true '}

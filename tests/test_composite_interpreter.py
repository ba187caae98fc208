"""
Tests for composite step interpretation.

Shell execution is replaced by RecordingExecutor so the tests can inspect the
exact script, environment and working directory each step receives.
"""

import logging
import os

import pytest

from action_runner.exceptions import (
    InvalidCompositeAction,
    MalformedDescriptor,
    PathEscapesRepository,
    ShellCommandError,
    StepExecutionFailed,
    UnsupportedActionType,
)
from action_runner.loader import ActionLoader
from helpers import append_file_command, composite


class TestInputs:
    """Inputs and defaults as seen by scripts."""

    def test_empty_step_list_is_rejected(self, engine, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([]))

        with pytest.raises(InvalidCompositeAction, match="missing or empty steps"):
            engine.run_action_dir(action_dir, {})

    def test_inputs_and_defaults_are_substituted(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite(
            [{'run': 'echo ${{ inputs.greeting }} ${{ inputs.name }}'}],
            inputs={'greeting': {'default': 'hello'}, 'name': {'required': True}},
        ))

        engine.run_action_dir(action_dir, {'INPUT_NAME': 'bob'})

        assert executor.scripts == ['echo hello bob']
        assert executor.calls[0]['env']['INPUT_GREETING'] == 'hello'

    def test_required_input_missing_only_warns(self, engine, executor, workspace, write_action, caplog):
        action_dir = write_action(workspace / "act", composite(
            [{'run': 'echo [${{ inputs.token }}]'}],
            inputs={'token': {'required': True}},
        ))

        with caplog.at_level(logging.WARNING):
            engine.run_action_dir(action_dir, {})

        assert executor.scripts == ['echo []']
        assert caplog.text.count("Required input 'token' was not provided") == 1

    def test_seed_env_is_not_modified(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite(
            [{'run': 'a'}], inputs={'mode': {'default': 'fast'}},
        ))
        executor.responses = [append_file_command('GITHUB_ENV', 'EXPORTED=1\n')]
        seed = {'INPUT_X': '1'}

        engine.run_action_dir(action_dir, seed)

        assert seed == {'INPUT_X': '1'}


class TestStepOutputs:
    """Outputs captured from one step are visible to later steps."""

    def test_set_output_marker(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([
            {'id': 's1', 'run': 'first'},
            {'run': 'echo ${{ steps.s1.outputs.x }}'},
        ]))
        executor.responses = ['::set-output name=x::5\n', '']

        engine.run_action_dir(action_dir, {})

        assert executor.scripts[1] == 'echo 5'
        assert executor.calls[1]['env']['STEPS_S1_OUTPUTS_X'] == '5'

    def test_output_file(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([
            {'id': 's1', 'run': 'echo "x=5" >> "$GITHUB_OUTPUT"'},
            {'run': 'echo ${{ steps.s1.outputs.x }}'},
        ]))
        executor.responses = [append_file_command('GITHUB_OUTPUT', 'x=5\n'), '']

        engine.run_action_dir(action_dir, {})

        assert executor.scripts[1] == 'echo 5'

    def test_file_output_wins_over_marker(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([
            {'id': 's1', 'run': 'first'},
            {'run': 'echo ${{ steps.s1.outputs.x }}'},
        ]))

        def respond(call):
            append_file_command('GITHUB_OUTPUT', 'x=from-file\n')(call)
            return '::set-output name=x::from-log\n'

        executor.responses = [respond, '']
        engine.run_action_dir(action_dir, {})

        assert executor.scripts[1] == 'echo from-file'

    def test_steps_without_id_record_nothing(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([{'run': 'first'}]))
        executor.responses = ['::set-output name=x::5\n']
        descriptor = ActionLoader().load(action_dir)

        result = engine.execute_composite_steps(descriptor, action_dir, {})

        assert result.step_outputs == {}

    def test_declared_outputs_are_resolved(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite(
            [{'id': 's1', 'run': 'first'}],
            outputs={
                'result': {'value': '${{ steps.s1.outputs.x }}'},
                'missing': {'value': '${{ steps.none.outputs.y }}'},
                'bare': {'description': 'has no value'},
            },
        ))
        executor.responses = ['::set-output name=x::5\n']
        descriptor = ActionLoader().load(action_dir)

        result = engine.execute_composite_steps(descriptor, action_dir, {})

        assert result.outputs == {'result': '5', 'missing': '', 'bare': ''}
        assert result.step_outputs == {'steps.s1.outputs.x': '5'}


class TestStepEnvironment:
    """The scoped environment each step runs with."""

    def test_env_and_path_file_commands(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([{'run': 'a'}, {'run': 'b'}]))

        def respond(call):
            append_file_command('GITHUB_ENV', 'MODE=fast\n')(call)
            append_file_command('GITHUB_PATH', '/opt/tool/bin\n')(call)
            return ''

        executor.responses = [respond, '']
        engine.run_action_dir(action_dir, {'PATH': '/usr/bin'})

        second = executor.calls[1]['env']
        assert second['MODE'] == 'fast'
        assert second['PATH'].split(os.pathsep) == [str(action_dir), '/opt/tool/bin', '/usr/bin']

    def test_step_env_is_scoped_to_its_step(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([
            {'run': 'a', 'env': {'FOO': '${{ inputs.x }}', 'COUNT': 3}},
            {'run': 'b'},
        ]))

        engine.run_action_dir(action_dir, {'INPUT_X': 'val'})

        assert executor.calls[0]['env']['FOO'] == 'val'
        assert executor.calls[0]['env']['COUNT'] == '3'
        assert 'FOO' not in executor.calls[1]['env']

    def test_action_path(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([{'run': '${{ github.action_path }}/tool.sh'}]))

        engine.run_action_dir(action_dir, {})

        assert executor.scripts == [f"{action_dir}/tool.sh"]
        assert executor.calls[0]['env']['GITHUB_ACTION_PATH'] == str(action_dir)

    def test_working_directory(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([
            {'run': 'a'},
            {'run': 'b', 'working-directory': 'sub/dir'},
        ]))

        engine.run_action_dir(action_dir, {})

        assert executor.calls[0]['work_dir'] == workspace
        assert executor.calls[1]['work_dir'] == workspace / 'sub' / 'dir'

    def test_working_directory_cannot_escape(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([{'run': 'a', 'working-directory': '../..'}]))

        with pytest.raises(StepExecutionFailed) as exc_info:
            engine.run_action_dir(action_dir, {})

        assert isinstance(exc_info.value.root_cause, PathEscapesRepository)
        assert exc_info.value.exit_code == 2
        assert executor.calls == []


class TestStepDispatch:
    """Step ordering, skipping and failure handling."""

    def test_output_is_concatenated_in_order(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([{'run': 'a'}, {'run': 'b'}]))
        executor.responses = ['first', 'second']

        assert engine.run_action_dir(action_dir, {}) == 'first\nsecond\n'

    def test_non_posix_shell_is_skipped(self, engine, executor, workspace, write_action, caplog):
        action_dir = write_action(workspace / "act", composite([
            {'run': 'Write-Host hi', 'shell': 'pwsh'},
            {'run': 'echo hi', 'shell': 'sh'},
        ]))
        descriptor = ActionLoader().load(action_dir)

        with caplog.at_level(logging.WARNING):
            result = engine.execute_composite_steps(descriptor, action_dir, {})

        assert executor.scripts == ['echo hi']
        assert executor.calls[0]['shell'] == 'sh'
        assert (result.steps_run, result.steps_skipped) == (1, 1)
        assert "shell 'pwsh' is not supported" in caplog.text

    def test_step_without_run_or_uses_is_skipped(self, engine, executor, workspace, write_action, caplog):
        action_dir = write_action(workspace / "act", composite([{'name': 'noop'}, {'run': 'b'}]))

        with caplog.at_level(logging.WARNING):
            engine.run_action_dir(action_dir, {})

        assert executor.scripts == ['b']
        assert "Skipping unsupported step type at index 1" in caplog.text

    def test_failure_stops_remaining_steps(self, engine, executor, workspace, write_action):
        action_dir = write_action(workspace / "act", composite([
            {'run': 'a'},
            {'name': 'Compile', 'run': 'b'},
            {'run': 'c'},
        ]))
        error = ShellCommandError('bash step', 2, 'boom')
        executor.responses = ['', error, '']

        with pytest.raises(StepExecutionFailed) as exc_info:
            engine.run_action_dir(action_dir, {})

        failure = exc_info.value
        assert failure.step_index == 2
        assert failure.step_name == 'Compile'
        assert failure.root_cause is error
        assert "Error executing step 2 (Compile)" in str(failure)
        assert len(executor.calls) == 2


class TestActionKinds:
    def test_unknown_runtime(self, engine, workspace, write_action):
        action_dir = write_action(workspace / "act", {'name': 'py', 'runs': {'using': 'python3'}})

        with pytest.raises(UnsupportedActionType, match="python3"):
            engine.run_action_dir(action_dir, {})

    def test_missing_runs(self, engine, workspace, write_action):
        action_dir = write_action(workspace / "act", {'name': 'nothing'})

        with pytest.raises(MalformedDescriptor):
            engine.run_action_dir(action_dir, {})

"""Test doubles and metadata builders shared by the action runner tests."""

import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


def write_action(action_dir: Path, metadata: Dict[str, Any], filename: str = 'action.yml') -> Path:
    action_dir.mkdir(parents=True, exist_ok=True)
    (action_dir / filename).write_text(yaml.safe_dump(metadata, sort_keys=False))
    return action_dir.resolve()


def composite(steps: List[Dict[str, Any]], **extra) -> Dict[str, Any]:
    metadata = {'name': extra.pop('name', 'test action'), 'runs': {'using': 'composite', 'steps': steps}}
    metadata.update(extra)
    return metadata


class RecordingExecutor:
    """
    Stands in for StepExecutor.

    Each call consumes the next queued response: a string is returned as the
    step output, an exception is raised, and a callable is invoked with the
    call record (so it can write to the step's GITHUB_OUTPUT file).
    """

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.responses: List[Any] = []

    def run(self, script, work_dir, env, shell='bash'):
        call = {'script': script, 'work_dir': Path(work_dir), 'env': dict(env), 'shell': shell}
        self.calls.append(call)
        return self._respond(call)

    def run_command(self, argv, cwd, env, label=None):
        call = {'argv': [str(a) for a in argv], 'work_dir': Path(cwd), 'env': dict(env), 'label': label}
        self.calls.append(call)
        return self._respond(call)

    @property
    def scripts(self) -> List[Optional[str]]:
        return [call.get('script') for call in self.calls]

    def _respond(self, call):
        response = self.responses.pop(0) if self.responses else ''
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(call) or ''
        return response


class FakeRetriever:
    """Hosted retriever that creates checkouts from canned metadata."""

    def __init__(self, root: Path, metadata: Optional[Dict[str, Any]] = None, sub_path: str = ''):
        self.root = root
        self.metadata = metadata
        self.sub_path = sub_path
        self.calls = []
        self.checkouts: List[Path] = []

    def retrieve(self, owner, repo, ref):
        self.calls.append((owner, repo, ref))
        checkout = Path(tempfile.mkdtemp(prefix='checkout-', dir=self.root))
        if self.metadata is not None:
            write_action(checkout / self.sub_path if self.sub_path else checkout, self.metadata)
        self.checkouts.append(checkout)
        return checkout


def append_file_command(variable: str, content: str):
    """Response that appends to one of the step's command files."""
    def respond(call):
        with open(call['env'][variable], 'a') as f:
            f.write(content)
        return ''
    return respond



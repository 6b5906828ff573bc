import pathlib
import shlex
import sys
import typing

import attr
import click.testing
import pytest

import fake_sops
import sopsedit.cli
import sopsedit.session
from sopsedit import bridge
from sopsedit.editor import Editor
from sopsedit.session import SessionController
from sopsedit.sops import Sops

ROOT = pathlib.Path(__file__).parent
FAKE_SOPS = (sys.executable, str(ROOT / 'fake_sops.py'))


@pytest.fixture()
def sops() -> Sops:
    return Sops(executable=FAKE_SOPS)


@pytest.fixture()
def editor() -> Editor:
    return Editor()


@pytest.fixture()
def controller(editor, sops) -> SessionController:
    return SessionController(editor=editor, sops=sops).attach()


@attr.s(frozen=True)
class Invocation:
    command: str = attr.ib()
    arguments: typing.Tuple[str, ...] = attr.ib()
    options: bridge.Options = attr.ib()
    payload: typing.Optional[str] = attr.ib(default=None)


@pytest.fixture()
def calls(monkeypatch) -> typing.List[Invocation]:
    """Record every command run through the bridge, and any plaintext payload."""
    invocations: typing.List[Invocation] = []
    original = bridge.run

    async def spy(command, arguments, options=bridge.Options()):
        source = options.env.get('PLAINTEXT_SOURCE')
        payload = pathlib.Path(source).read_text() if source else None
        invocations.append(Invocation(command, tuple(arguments), options, payload))
        return await original(command, arguments, options)

    monkeypatch.setattr(bridge, 'run', spy)
    return invocations


@pytest.fixture()
def payloads(monkeypatch) -> typing.List[pathlib.Path]:
    """Record the temporary plaintext files created while encrypting."""
    paths: typing.List[pathlib.Path] = []
    original = sopsedit.session.tempfile.mkstemp

    def spy(*args, **kwargs):
        descriptor, name = original(*args, **kwargs)
        paths.append(pathlib.Path(name))
        return descriptor, name

    monkeypatch.setattr(sopsedit.session.tempfile, 'mkstemp', spy)
    return paths


@attr.s(frozen=True)
class ExampleSecret:
    name: str = attr.ib()
    filename: str = attr.ib()
    type: str = attr.ib()
    plaintext: str = attr.ib()

    def __str__(self):
        return self.name

    @property
    def lines(self) -> typing.List[str]:
        return self.plaintext.splitlines()

    def write(self, directory: pathlib.Path) -> pathlib.Path:
        path = directory / self.filename
        path.write_text(fake_sops.encrypt_text(self.plaintext, self.type))
        return path


@pytest.fixture(params=[
    ExampleSecret(
        'yaml',
        'secrets.yaml',
        'yaml',
        'apikey: supersecret123\npassword: hunter2\n',
    ),
    ExampleSecret(
        'helm-values',
        'values.production.yaml',
        'yaml',
        'image:\n  tag: latest\ndatabase:\n  password: hunter2\n',
    ),
    ExampleSecret(
        'json',
        'secrets.json',
        'json',
        '{\n    "apikey": "supersecret123"\n}\n',
    ),
], ids=str)
def secret(request) -> ExampleSecret:
    return request.param


@pytest.fixture()
def encrypted(secret, tmp_path) -> pathlib.Path:
    return secret.write(tmp_path)


@pytest.fixture()
def invoke(tmp_path):
    def invoke_func(arguments: typing.Sequence[str], exit_code: int = 0, **kwargs):
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        result = runner.invoke(
            sopsedit.cli.main,
            ['--path', str(tmp_path), '--sops', shlex.join(FAKE_SOPS), *arguments],
            **kwargs)
        if result.exit_code != exit_code:
            message = f"Command sopsedit {' '.join(arguments)} exited with {result.exit_code}"
            raise Exception(message) from result.exception
        return result.output.splitlines()

    return invoke_func

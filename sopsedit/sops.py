import logging
import pathlib
import typing

import attr

from . import bridge
from .formats import Format
from .handshake import PLAINTEXT_SOURCE

log = logging.getLogger(__name__)

# Exit status of `sops edit` when the editor left the plaintext unchanged.
EXIT_FILE_UNCHANGED = 200


def to_executable(value: typing.Union[str, typing.Sequence[str]]) -> typing.Tuple[str, ...]:
    return (value,) if isinstance(value, str) else tuple(value)


@attr.s(frozen=True)
class Sops:
    executable: typing.Tuple[str, ...] = attr.ib(default=('sops',), converter=to_executable)
    verbose: bool = attr.ib(default=False)
    editor_variables: typing.Tuple[str, ...] = attr.ib(default=('SOPS_EDITOR', 'EDITOR'))

    def command(self, arguments: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        command = self.executable
        if self.verbose:
            command = (*command, '--verbose')
        return (*command, *arguments)

    async def run(
            self,
            arguments: typing.Sequence[str],
            options: bridge.Options) -> bridge.ProcessResult:
        command = self.command(arguments)
        result = await bridge.run(command[0], command[1:], options)
        if not result.ok:
            for line in result.stderr.splitlines():
                log.debug(line)
        return result

    async def decrypt(self, path: pathlib.Path, fmt: Format) -> bridge.ProcessResult:
        log.debug(f"Decrypting {path} as {fmt.type}")
        return await self.run([
            '--decrypt',
            '--input-type', fmt.type,
            '--output-type', fmt.type,
            str(path),
        ], bridge.Options(cwd=path.parent))

    async def edit(
            self,
            path: pathlib.Path,
            fmt: Format,
            plaintext: pathlib.Path,
            editor: str) -> bridge.ProcessResult:
        """Replace the contents of an encrypted file with a plaintext file."""
        log.debug(f"Encrypting {path} as {fmt.type} from {plaintext}")
        env = {variable: editor for variable in self.editor_variables}
        env[PLAINTEXT_SOURCE] = str(plaintext)
        return await self.run([
            'edit',
            '--input-type', fmt.type,
            '--output-type', fmt.type,
            str(path),
        ], bridge.Options(cwd=path.parent, env=env))

    @staticmethod
    def unchanged(result: bridge.ProcessResult) -> bool:
        return result.returncode == EXIT_FILE_UNCHANGED

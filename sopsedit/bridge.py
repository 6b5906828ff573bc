"""
Run external commands without blocking the event loop.

Results are returned rather than raised: a non-zero exit code is reported
verbatim alongside stderr and the caller decides what it means.
"""

import asyncio
import logging
import os
import pathlib
import typing

import attr

log = logging.getLogger(__name__)

# Exit status used by shells when a command can't be found or executed.
EXIT_NOT_FOUND = 127

# Reported when a command succeeded but its output could not be decoded.
EXIT_UNDECODABLE = 1


@attr.s(frozen=True, kw_only=True)
class Options:
    cwd: typing.Optional[pathlib.Path] = attr.ib(default=None)
    env: typing.Mapping[str, str] = attr.ib(factory=dict)
    text: bool = attr.ib(default=True)

    def environment(self) -> typing.Dict[str, str]:
        return {**os.environ, **self.env}


@attr.s(frozen=True)
class ProcessResult:
    stdout: typing.Union[str, bytes] = attr.ib()
    stderr: typing.Union[str, bytes] = attr.ib()
    returncode: int = attr.ib()

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run(
        command: str,
        arguments: typing.Sequence[str],
        options: Options = Options()) -> ProcessResult:
    log.debug(f"Running {command} {' '.join(arguments)}")

    try:
        process = await asyncio.create_subprocess_exec(
            command,
            *arguments,
            cwd=options.cwd,
            env=options.environment(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE)
    except OSError as error:
        log.debug(f"Could not start {command}: {error}")
        message = f"{command}: {error.strerror or error}\n"
        return ProcessResult(
            stdout='' if options.text else b'',
            stderr=message if options.text else message.encode('utf-8'),
            returncode=EXIT_NOT_FOUND)

    stdout, stderr = await process.communicate()
    log.debug(f"{command} exited with status {process.returncode}")

    if options.text:
        text = stderr.decode('utf-8', errors='replace')
        try:
            return ProcessResult(
                stdout=stdout.decode('utf-8'),
                stderr=text,
                returncode=process.returncode)
        except UnicodeDecodeError as error:
            log.debug(f"Could not decode output of {command}: {error}")
            return ProcessResult(
                stdout='',
                stderr=f"{text}{command}: output is not valid UTF-8: {error}\n",
                returncode=process.returncode or EXIT_UNDECODABLE)

    return ProcessResult(stdout=stdout, stderr=stderr, returncode=process.returncode)

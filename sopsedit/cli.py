import asyncio
import functools
import logging
import os.path
import pathlib
import shlex
import typing

import attr
import click

from . import __doc__, __version__
from .editor import Document, Editor, split_lines
from .formats import FORMATS, FileTypes, is_encrypted_file
from .session import SessionController
from .sops import Sops
from .utils import DecryptError, EncryptError, find_files, find_git_directory

log = logging.getLogger(__name__)


@functools.lru_cache()
def rel(path: pathlib.Path) -> str:
    """
    Convert a path to a relative Path.

    Returns a string as these should only be used for presentation.
    """
    return os.path.relpath(path.as_posix(), pathlib.Path.cwd().as_posix())


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


class FileTypeAssociation(click.ParamType):
    """A 'PATTERN=FILETYPE' pair, e.g. '*.sops=yaml'."""

    name = 'association'

    def convert(self, value, param, ctx):
        if isinstance(value, tuple):
            return value

        pattern, sep, filetype = value.partition('=')
        if not sep or not pattern:
            self.fail(f"{value!r} should be in the form PATTERN=FILETYPE", param, ctx)
        if filetype not in FORMATS:
            self.fail(f"{filetype!r} should be one of {', '.join(sorted(FORMATS))}", param, ctx)
        return pattern, filetype


@attr.s(frozen=True)
class Workspace:
    directory: pathlib.Path = attr.ib()
    controller: SessionController = attr.ib()

    @property
    def editor(self) -> Editor:
        return self.controller.editor

    def open(self, path: pathlib.Path) -> Document:
        """Open and decrypt an encrypted file."""
        seen = len(self.editor.messages)
        document = asyncio.run(self.editor.open(path))
        if document.write_intercepted:
            return document

        asyncio.run(self.editor.close(document))
        if len(self.editor.messages) > seen:
            raise DecryptError(self.editor.messages[-1][1])
        raise DecryptError(f"{rel(path)} is not a sops encrypted file")

    def save(self, document: Document) -> None:
        seen = len(self.editor.messages)
        asyncio.run(self.editor.save(document))
        if document.modified:
            message = self.editor.messages[-1][1] if len(self.editor.messages) > seen else None
            raise EncryptError(message or f"Could not encrypt {rel(document.path)}")

    def close(self, document: Document) -> None:
        asyncio.run(self.editor.close(document))


@click.group(help=__doc__)
@click.option(
    '-p', '--path',
    type=PathType(
        file_okay=False,
        dir_okay=True,
        exists=True),
    default=lambda: find_git_directory() or pathlib.Path.cwd(),
    required=True,
    help="Defaults to the current git repository.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.option(
    '-v', '--verbose', 'sops_verbose',
    default=False,
    is_flag=True,
    help="Run sops with --verbose.")
@click.option(
    '--sops', 'sops_executable',
    metavar='COMMAND',
    envvar='SOPSEDIT_SOPS',
    default='sops',
    help="The sops executable.")
@click.option(
    '-f', '--filetype', 'associations',
    envvar='SOPSEDIT_FILETYPES',
    multiple=True,
    type=FileTypeAssociation(),
    help="Treat files matching PATTERN as FILETYPE.")
@click.pass_context
def main(
        ctx,
        path: pathlib.Path,
        debug: bool,
        sops_verbose: bool,
        sops_executable: str,
        associations: typing.Sequence[typing.Tuple[str, str]]):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))

    filetypes = FileTypes()
    for pattern, filetype in reversed(associations):
        filetypes = filetypes.extend(pattern, filetype)

    ctx.obj = Workspace(path, SessionController(
        editor=Editor(filetypes=filetypes),
        sops=Sops(executable=shlex.split(sops_executable), verbose=sops_verbose)).attach())


@main.command()
def version():
    """Show the application version."""
    click.echo(f"sopsedit {__version__}")


@main.command()
@click.pass_obj
def ls(workspace: Workspace):
    """List all sops encrypted files."""
    for path in find_files(workspace.directory):
        if is_encrypted_file(path, workspace.editor.filetypes):
            click.echo(click.style(rel(path), fg='green'))


@main.command()
@click.argument(
    'paths',
    type=PathType(exists=True, dir_okay=False),
    required=True,
    nargs=-1)
@click.pass_obj
def cat(workspace: Workspace, paths: typing.Sequence[pathlib.Path]):
    """Print the decrypted contents of encrypted files."""
    for path in paths:
        document = workspace.open(path)
        click.echo(document.text(), nl=False)
        workspace.close(document)


@main.command()
@click.argument(
    'path',
    type=PathType(exists=True, dir_okay=False),
    required=True)
@click.pass_obj
def edit(workspace: Workspace, path: pathlib.Path):
    """
    Edit an encrypted file in your $EDITOR.

    The file is decrypted in memory and re-encrypted with sops, so no decrypted
    plaintext is written next to it.
    """
    document = workspace.open(path)

    try:
        old_text = document.text()
        new_text = click.edit(text=old_text, extension=path.suffix)

        if not new_text:
            raise click.ClickException("File is empty")

        if new_text == old_text:
            raise click.ClickException("No changes were made to the file")

        workspace.editor.set_lines(document, split_lines(new_text))
        workspace.save(document)
    finally:
        workspace.close(document)

    click.echo(f"Encrypted {click.style(rel(path), fg='green')}")

"""
Stand in for an interactive editor when re-encrypting with `sops edit`.

sops writes the current plaintext to a temporary file and runs $EDITOR on it.
This command replaces that file with the plaintext in $PLAINTEXT_SOURCE and
exits straight away, which sops then encrypts.

This module is also run directly as a script, so it must not import anything
from the rest of the package.
"""

import os
import pathlib
import shlex
import shutil
import sys

import click

PLAINTEXT_SOURCE = 'PLAINTEXT_SOURCE'


def handshake_command() -> str:
    """The command line to put in the editor environment variable."""
    return shlex.join([sys.executable, str(pathlib.Path(__file__).resolve())])


@click.command()
@click.argument(
    'target',
    type=click.Path(dir_okay=False, writable=True),
    required=True)
def main(target: str):
    """Copy $PLAINTEXT_SOURCE over TARGET."""
    source = os.environ.get(PLAINTEXT_SOURCE)
    if not source:
        raise click.ClickException(f"${PLAINTEXT_SOURCE} is not set")

    try:
        shutil.copyfile(source, target)
    except OSError as error:
        raise click.ClickException(
            f"Could not copy {source} to {target}: {error.strerror or error}")


if __name__ == '__main__':
    main()

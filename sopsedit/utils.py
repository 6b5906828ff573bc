import pathlib
import typing

import click
import git


def find_git_directory() -> typing.Optional[pathlib.Path]:
    try:
        repo = git.Repo(search_parent_directories=True)
    except git.exc.InvalidGitRepositoryError:
        return None
    return pathlib.Path(repo.working_dir)


def find_files(directory: pathlib.Path) -> typing.Sequence[pathlib.Path]:
    """
    List the files in a directory.

    Uses the files tracked by git when the directory is inside a repository,
    otherwise walks the directory.
    """
    try:
        repo = git.Repo(directory, search_parent_directories=True)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        return tuple(sorted(p for p in directory.glob('**/*')
                            if p.is_file() and '.git' not in p.parts))

    root = pathlib.Path(repo.working_dir)
    tracked = (root / name for name in repo.git.ls_files().splitlines())
    return tuple(sorted(p for p in tracked if p.is_file() and in_directory(p, directory)))


def in_directory(
        file: pathlib.Path,
        directory: pathlib.Path) -> bool:
    """Check if a path is a subpath of a directory."""
    try:
        file.resolve().relative_to(directory.resolve())
    except ValueError:
        return False
    else:
        return True


class SopsEditException(click.ClickException):
    pass


class DecryptError(SopsEditException):
    pass


class EncryptError(SopsEditException):
    pass


class WriteInterceptedError(SopsEditException):
    pass

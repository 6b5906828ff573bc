"""
Formats that sops can encrypt in place, and how to recognise their ciphertext.

sops appends its metadata to the end of a document, including a MAC wrapped in
the ENC[...] envelope. Finding that MAC near the end of a document is enough to
know it is encrypted without running sops.
"""

import fnmatch
import logging
import pathlib
import typing

import attr

if typing.TYPE_CHECKING:
    from .editor import Document

log = logging.getLogger(__name__)

SCAN_WINDOW = 20


@attr.s(frozen=True)
class Format:
    name: str = attr.ib()
    marker: str = attr.ib()
    type: str = attr.ib()


FORMATS: typing.Dict[str, Format] = {f.name: f for f in (
    Format('yaml', marker='mac: ENC[', type='yaml'),
    Format('yaml.helm-values', marker='mac: ENC[', type='yaml'),
    Format('json', marker='"mac": "ENC[', type='json'),
)}


def lookup(name: typing.Optional[str]) -> typing.Optional[Format]:
    if name is None:
        return None
    return FORMATS.get(name)


def contains_marker(lines: typing.Sequence[str], fmt: Format) -> bool:
    """Check the last SCAN_WINDOW lines for the format's marker."""
    return any(fmt.marker in line for line in lines[-SCAN_WINDOW:])


def is_encrypted(document: 'Document') -> bool:
    fmt = lookup(document.format)
    if fmt is None:
        return False
    return contains_marker(document.lines, fmt)


Association = typing.Tuple[str, str]

DEFAULT_ASSOCIATIONS: typing.Tuple[Association, ...] = (
    ('values*.yaml', 'yaml.helm-values'),
    ('values*.yml', 'yaml.helm-values'),
    ('*.yaml', 'yaml'),
    ('*.yml', 'yaml'),
    ('*.json', 'json'),
)


@attr.s(frozen=True)
class FileTypes:
    """Glob patterns matched against file names, first match wins."""

    associations: typing.Tuple[Association, ...] = attr.ib(
        default=DEFAULT_ASSOCIATIONS,
        converter=tuple)

    def extend(self, pattern: str, filetype: str) -> 'FileTypes':
        return FileTypes(((pattern, filetype), *self.associations))

    def detect(self, path: pathlib.Path) -> typing.Optional[str]:
        for pattern, filetype in self.associations:
            if fnmatch.fnmatch(path.name, pattern):
                return filetype
        return None


def is_encrypted_file(path: pathlib.Path, filetypes: FileTypes = FileTypes()) -> bool:
    fmt = lookup(filetypes.detect(path))
    if fmt is None:
        return False

    try:
        lines = path.read_text(encoding='utf-8').splitlines()
    except (OSError, UnicodeDecodeError) as error:
        log.debug(f"Could not read {path}: {error}")
        return False

    return contains_marker(lines, fmt)

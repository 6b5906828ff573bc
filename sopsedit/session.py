"""
Decrypt sops files when they are opened and re-encrypt them when they are saved.

A document that has been decrypted is "write-intercepted": its save hook runs
`sops edit` with the handshake as the editor, so only sops ever writes to the
encrypted file.
"""

import enum
import logging
import os
import pathlib
import tempfile
import typing

import attr

from . import formats
from .editor import CLOSED, LOADED, SAVE, Document, Editor, Hook, join_lines, split_lines
from .handshake import handshake_command
from .sops import Sops
from .utils import SopsEditException

log = logging.getLogger(__name__)


class State(enum.Enum):
    PLAIN = 'plain'
    DECRYPTING = 'decrypting'
    PLAINTEXT = 'plaintext'
    ENCRYPTING = 'encrypting'


@attr.s(frozen=True)
class Session:
    document_id: int = attr.ib()
    hooks: typing.Tuple[Hook, ...] = attr.ib(converter=tuple)

    def cancel(self) -> None:
        for hook in self.hooks:
            hook.cancel()


@attr.s(eq=False)
class SessionController:
    editor: Editor = attr.ib()
    sops: Sops = attr.ib(factory=Sops)
    handshake: str = attr.ib(factory=handshake_command)
    sessions: typing.Dict[int, Session] = attr.ib(factory=dict)
    states: typing.Dict[int, State] = attr.ib(factory=dict)
    hook: typing.Optional[Hook] = attr.ib(default=None)

    def attach(self) -> 'SessionController':
        """Start decrypting documents as they are opened."""
        if self.hook is None:
            self.hook = self.editor.subscribe(LOADED, self.open)
        return self

    def detach(self) -> None:
        if self.hook is not None:
            self.hook.cancel()
            self.hook = None

    def state(self, document: Document) -> State:
        return self.states.get(document.id, State.PLAIN)

    def register(self, document: Document) -> Session:
        if document.id in self.sessions:
            raise SopsEditException(f"{document} already has a session")

        session = Session(document.id, (
            self.editor.subscribe(SAVE, self.save, document),
            self.editor.subscribe(CLOSED, self.close, document),
        ))
        self.sessions[document.id] = session
        return session

    def alive(self, document: Document) -> bool:
        return self.editor.get(document.id) is document

    async def open(self, document: Document) -> typing.Optional[Session]:
        """Decrypt a newly loaded document, returning its session."""
        if document.write_intercepted or document.id in self.sessions:
            return self.sessions.get(document.id)

        if self.state(document) is not State.PLAIN:
            return None

        if not formats.is_encrypted(document):
            return None

        fmt = formats.lookup(document.format)
        assert fmt is not None

        self.states[document.id] = State.DECRYPTING
        try:
            result = await self.sops.decrypt(document.path, fmt)
        finally:
            self.states.pop(document.id, None)

        if not self.alive(document):
            log.info(f"{document} was closed while it was being decrypted")
            return None

        if not result.ok:
            self.editor.notify(f"Could not decrypt {document}: {result.stderr.strip()}")
            return None

        self.editor.set_lines(document, split_lines(result.stdout))
        document.write_intercepted = True
        self.editor.clear_history(document)
        document.modified = False
        self.states[document.id] = State.PLAINTEXT

        try:
            await self.editor.emit(LOADED, document)
        except Exception:
            log.exception(f"Error while reloading {document} after decrypting it")

        log.info(f"Decrypted {document}")
        return self.register(document)

    async def save(self, document: Document) -> bool:
        """Re-encrypt a document if it has been modified."""
        if not document.modified:
            log.debug(f"Not encrypting {document} as it has not been modified")
            return True

        if self.state(document) is State.ENCRYPTING:
            log.info(f"Already encrypting {document}")
            return False

        fmt = formats.lookup(document.format)
        if fmt is None:
            self.editor.notify(
                f"Could not encrypt {document}: unsupported format {document.format}")
            return False

        self.states[document.id] = State.ENCRYPTING
        tick = document.tick
        plaintext: typing.Optional[pathlib.Path] = None
        try:
            plaintext = self.write_plaintext(document)
            result = await self.sops.edit(document.path, fmt, plaintext, self.handshake)
        except OSError as error:
            self.editor.notify(f"Could not encrypt {document}: {error}")
            return False
        finally:
            if plaintext is not None:
                plaintext.unlink(missing_ok=True)
            if self.alive(document):
                self.states[document.id] = State.PLAINTEXT

        if not (result.ok or self.sops.unchanged(result)):
            self.editor.notify(f"Could not encrypt {document}: {result.stderr.strip()}")
            return False

        if document.tick == tick:
            document.modified = False
        log.info(f"Encrypted {document}")
        return True

    @staticmethod
    def write_plaintext(document: Document) -> pathlib.Path:
        descriptor, name = tempfile.mkstemp(prefix='sopsedit-', suffix=document.path.suffix)
        path = pathlib.Path(name)
        try:
            with os.fdopen(descriptor, 'w', encoding='utf-8') as file:
                file.write(join_lines(document.lines))
        except BaseException:
            path.unlink(missing_ok=True)
            raise
        return path

    def close(self, document: Document) -> None:
        session = self.sessions.pop(document.id, None)
        self.states.pop(document.id, None)
        if session is not None:
            session.cancel()
            log.info(f"Closed session for {document}")

"""
A minimal editing environment: documents, their history, and event hooks.

Documents are only ever read or changed from the event loop. Hooks may be plain
functions or coroutine functions; `emit` awaits coroutines in the order the
hooks were registered.
"""

import inspect
import itertools
import logging
import pathlib
import typing

import attr

from .formats import FileTypes
from .utils import WriteInterceptedError

log = logging.getLogger(__name__)

LOADED = 'loaded'
SAVE = 'save'
CLOSED = 'closed'
EVENTS = (LOADED, SAVE, CLOSED)

Callback = typing.Callable[['Document'], typing.Any]


def split_lines(text: str) -> typing.List[str]:
    """Split text into lines, dropping the newline that ends the last line."""
    if text.endswith('\n'):
        text = text[:-1]
    return text.split('\n')


def join_lines(lines: typing.Sequence[str]) -> str:
    return '\n'.join(lines) + '\n'


@attr.s(kw_only=True, eq=False)
class Document:
    id: int = attr.ib()
    path: pathlib.Path = attr.ib()
    format: typing.Optional[str] = attr.ib(default=None)
    lines: typing.List[str] = attr.ib(factory=lambda: [''])
    modified: bool = attr.ib(default=False)
    write_intercepted: bool = attr.ib(default=False)
    history: typing.List[typing.List[str]] = attr.ib(factory=list)
    tick: int = attr.ib(default=0)

    def __str__(self):
        return self.path.name

    def text(self) -> str:
        return join_lines(self.lines)


@attr.s(eq=False)
class Hook:
    event: str = attr.ib()
    callback: Callback = attr.ib()
    document_id: typing.Optional[int] = attr.ib(default=None)
    editor: typing.Optional['Editor'] = attr.ib(default=None, repr=False)

    def matches(self, event: str, document: Document) -> bool:
        return self.event == event and self.document_id in (None, document.id)

    def cancel(self) -> None:
        if self.editor is not None:
            self.editor.hooks.remove(self)
            self.editor = None


@attr.s(eq=False)
class Editor:
    filetypes: FileTypes = attr.ib(factory=FileTypes)
    documents: typing.Dict[int, Document] = attr.ib(factory=dict)
    hooks: typing.List[Hook] = attr.ib(factory=list)
    messages: typing.List[typing.Tuple[int, str]] = attr.ib(factory=list)
    ids: typing.Iterator[int] = attr.ib(factory=lambda: itertools.count(1), repr=False)

    def subscribe(
            self,
            event: str,
            callback: Callback,
            document: typing.Optional[Document] = None) -> Hook:
        if event not in EVENTS:
            raise ValueError(f"Unknown event {event!r}")
        hook = Hook(event, callback, document.id if document else None, self)
        self.hooks.append(hook)
        return hook

    def hooked(self, event: str, document: Document) -> typing.List[Hook]:
        return [hook for hook in self.hooks if hook.matches(event, document)]

    async def emit(self, event: str, document: Document) -> None:
        log.debug(f"Event {event} for {document}")
        for hook in self.hooked(event, document):
            result = hook.callback(document)
            if inspect.isawaitable(result):
                await result

    def get(self, document_id: int) -> typing.Optional[Document]:
        return self.documents.get(document_id)

    def notify(self, message: str, level: int = logging.ERROR) -> None:
        """Show a message to the user."""
        log.log(level, message)
        self.messages.append((level, message))

    async def open(self, path: pathlib.Path) -> Document:
        document = Document(
            id=next(self.ids),
            path=path.resolve(),
            format=self.filetypes.detect(path),
            lines=split_lines(path.read_text(encoding='utf-8')) if path.exists() else [''])
        self.documents[document.id] = document
        log.info(f"Opened {document.path} as {document.format}")
        await self.emit(LOADED, document)
        return document

    def set_lines(self, document: Document, lines: typing.Sequence[str]) -> None:
        document.history.append(document.lines)
        document.lines = list(lines) or ['']
        document.modified = True
        document.tick += 1

    def undo(self, document: Document) -> bool:
        if not document.history:
            return False
        document.lines = document.history.pop()
        document.modified = True
        document.tick += 1
        return True

    def clear_history(self, document: Document) -> None:
        document.history.clear()

    async def save(self, document: Document) -> None:
        """
        Save a document.

        Hooks registered for the document's save event replace the default write
        entirely. Otherwise hooks registered for every document run before the
        write. A write-intercepted document is never written directly.
        """
        hooks = [hook for hook in self.hooked(SAVE, document) if hook.document_id is not None]
        if hooks:
            await self.emit(SAVE, document)
            return

        if document.write_intercepted:
            raise WriteInterceptedError(
                f"Refusing to write decrypted plaintext to {document.path}")

        await self.emit(SAVE, document)

        log.info(f"Writing {document.path}")
        document.path.write_text(document.text(), encoding='utf-8')
        document.modified = False

    async def close(self, document: Document) -> None:
        await self.emit(CLOSED, document)
        self.documents.pop(document.id, None)
        log.info(f"Closed {document.path}")

"""
Upload -> preview -> generate -> display workflow.

Two layers:
- `transition(state, event) -> (state', commands)` : pure reducer, no I/O, unit-testable headlessly.
- `CaptionWorkflow` : asyncio driver that runs the commands (encode, caption, save, notify)
  and feeds their outcomes back in as events.

Phases:
    IDLE -> PREVIEWING -> READY -> GENERATING -> SUCCEEDED | FAILED
    any phase --FileSelected--> PREVIEWING (or FAILED if the gate rejects the file)

Attempt tokens:
- every FileSelected bumps `state.attempt`
- encode/caption commands carry the token they were issued under
- outcome events with a different token are dropped, so a late answer for a
  replaced image can never overwrite the newer attempt
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Set, Tuple, Union

from pydantic import ValidationError

from ..core.errors import CaptionatorError, ErrorKind, PersistenceError, ReadError, TooLargeError
from ..history.schema import NewImage
from ..vlm.schema import CaptionRequest, CaptionStyle
from .encoder import encode_data_url
from .validation import validate

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    PREVIEWING = "previewing"
    READY = "ready"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class CaptionOptions:
    style: Optional[CaptionStyle] = None
    language: Optional[str] = None
    context: Optional[str] = None
    include_hashtags: Optional[bool] = None
    include_emoji: Optional[bool] = None


@dataclass(frozen=True)
class WorkflowState:
    phase: Phase = Phase.IDLE
    attempt: int = 0
    preview: Optional[str] = None        # encoded data URL of the current attempt
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    caption: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    options: CaptionOptions = field(default_factory=CaptionOptions)
    resume_phase: Optional[Phase] = None  # where to go back to if the file chooser is dismissed

    @property
    def can_generate(self) -> bool:
        if self.preview is None:
            return False
        return self.phase in (Phase.READY, Phase.SUCCEEDED, Phase.FAILED)


# --- events ------------------------------------------------------------------

@dataclass(frozen=True)
class FileSelected:
    file: Any  # content_type / size / async read()


@dataclass(frozen=True)
class FileEncoded:
    attempt: int
    data_url: str


@dataclass(frozen=True)
class EncodeFailed:
    attempt: int
    message: str
    kind: ErrorKind = ErrorKind.READ_ERROR


@dataclass(frozen=True)
class GenerateRequested:
    options: CaptionOptions = field(default_factory=CaptionOptions)


@dataclass(frozen=True)
class CaptionReceived:
    attempt: int
    result: Any  # whatever the client resolved with; shape is checked here


@dataclass(frozen=True)
class CaptionFailed:
    attempt: int
    message: str


@dataclass(frozen=True)
class ChangeImageRequested:
    pass


@dataclass(frozen=True)
class FileChooserDismissed:
    pass


Event = Union[
    FileSelected, FileEncoded, EncodeFailed, GenerateRequested,
    CaptionReceived, CaptionFailed, ChangeImageRequested, FileChooserDismissed,
]


# --- commands ----------------------------------------------------------------

@dataclass(frozen=True)
class Notification:
    level: str          # "info" | "error"
    title: str
    message: str
    kind: Optional[ErrorKind] = None


@dataclass(frozen=True)
class Notify:
    notification: Notification


@dataclass(frozen=True)
class EncodeFile:
    attempt: int
    file: Any


@dataclass(frozen=True)
class RequestCaption:
    attempt: int
    request: CaptionRequest


@dataclass(frozen=True)
class SaveHistory:
    attempt: int
    image: NewImage


@dataclass(frozen=True)
class OpenFileChooser:
    pass


Command = Union[Notify, EncodeFile, RequestCaption, SaveHistory, OpenFileChooser]
Transition = Tuple[WorkflowState, List[Command]]


def _failed(state: WorkflowState, kind: ErrorKind, message: str, title: str, **changes: Any) -> Transition:
    new = replace(state, phase=Phase.FAILED, error=message, error_kind=kind, resume_phase=None, **changes)
    return new, [Notify(Notification("error", title, message, kind))]


def _extract_caption(result: Any) -> Optional[str]:
    caption = result.get("caption") if isinstance(result, dict) else getattr(result, "caption", None)
    if isinstance(caption, str) and caption.strip():
        return caption
    return None


def _on_file_selected(state: WorkflowState, ev: FileSelected, max_bytes: Optional[int]) -> Transition:
    # a new attempt always starts from a clean outcome, whatever was in flight
    attempt = state.attempt + 1
    fresh = WorkflowState(phase=Phase.PREVIEWING, attempt=attempt, options=state.options)

    verdict = validate(ev.file, max_bytes=max_bytes)
    if not verdict.ok:
        return _failed(fresh, verdict.reason, verdict.message, "Upload Error")

    fresh = replace(fresh, mime_type=ev.file.content_type, size_bytes=ev.file.size)
    return fresh, [EncodeFile(attempt, ev.file)]


def _on_file_encoded(state: WorkflowState, ev: FileEncoded) -> Transition:
    if ev.attempt != state.attempt or state.phase is not Phase.PREVIEWING:
        return state, []
    return replace(state, phase=Phase.READY, preview=ev.data_url, resume_phase=None), []


def _on_encode_failed(state: WorkflowState, ev: EncodeFailed) -> Transition:
    if ev.attempt != state.attempt or state.phase is not Phase.PREVIEWING:
        return state, []
    return _failed(state, ev.kind, ev.message, "Upload Error", preview=None)


def _on_generate(state: WorkflowState, ev: GenerateRequested) -> Transition:
    if not state.can_generate or state.resume_phase is not None:
        return state, []
    opts = ev.options
    try:
        request = CaptionRequest(
            photo_data=state.preview,
            style=opts.style,
            language=opts.language,
            context=opts.context,
            include_hashtags=opts.include_hashtags,
            include_emoji=opts.include_emoji,
        )
    except ValidationError as e:
        msg = f"Invalid caption options: {e.errors()[0].get('msg', 'rejected')}"
        return _failed(state, ErrorKind.INVALID_OPTIONS, msg, "Generation Error")

    # normalised: blank strings dropped
    opts = CaptionOptions(
        style=request.style,
        language=request.language,
        context=request.context,
        include_hashtags=request.include_hashtags,
        include_emoji=request.include_emoji,
    )
    new = replace(state, phase=Phase.GENERATING, caption=None, error=None, error_kind=None, options=opts)
    return new, [RequestCaption(state.attempt, request)]


def _on_caption_received(state: WorkflowState, ev: CaptionReceived) -> Transition:
    if ev.attempt != state.attempt or state.phase is not Phase.GENERATING:
        return state, []
    caption = _extract_caption(ev.result)
    if caption is None:
        return _failed(
            state, ErrorKind.INVALID_RESPONSE_SHAPE,
            "Failed to generate caption.", "Generation Error",
        )
    new = replace(state, phase=Phase.SUCCEEDED, caption=caption, error=None, error_kind=None)
    opts = state.options
    image = NewImage(
        image_data=state.preview,
        caption=caption,
        style=opts.style.value if opts.style else None,
        context=opts.context,
    )
    return new, [
        Notify(Notification("info", "Caption ready", caption)),
        SaveHistory(state.attempt, image),
    ]


def _on_caption_failed(state: WorkflowState, ev: CaptionFailed) -> Transition:
    if ev.attempt != state.attempt or state.phase is not Phase.GENERATING:
        return state, []
    # preview stays so the user can retry without re-uploading
    return _failed(state, ErrorKind.GENERATION_ERROR, ev.message, "Generation Error")


def _on_change_image(state: WorkflowState, ev: ChangeImageRequested) -> Transition:
    if state.phase not in (Phase.SUCCEEDED, Phase.FAILED):
        return state, []
    return replace(state, phase=Phase.PREVIEWING, resume_phase=state.phase), [OpenFileChooser()]


def _on_chooser_dismissed(state: WorkflowState, ev: FileChooserDismissed) -> Transition:
    if state.resume_phase is None:
        return state, []
    return replace(state, phase=state.resume_phase, resume_phase=None), []


def transition(state: WorkflowState, event: Event, *, max_bytes: Optional[int] = None) -> Transition:
    if isinstance(event, FileSelected):
        return _on_file_selected(state, event, max_bytes)
    if isinstance(event, FileEncoded):
        return _on_file_encoded(state, event)
    if isinstance(event, EncodeFailed):
        return _on_encode_failed(state, event)
    if isinstance(event, GenerateRequested):
        return _on_generate(state, event)
    if isinstance(event, CaptionReceived):
        return _on_caption_received(state, event)
    if isinstance(event, CaptionFailed):
        return _on_caption_failed(state, event)
    if isinstance(event, ChangeImageRequested):
        return _on_change_image(state, event)
    if isinstance(event, FileChooserDismissed):
        return _on_chooser_dismissed(state, event)
    raise TypeError(f"unknown workflow event: {event!r}")


# --- driver ------------------------------------------------------------------

class WorkflowObserver(Protocol):
    def notify(self, notification: Notification) -> None: ...


class CollectingObserver:
    """Keeps every notification in order; used by the HTTP upload route and tests."""

    def __init__(self) -> None:
        self.notifications: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)


class CaptionWorkflow:
    def __init__(
        self,
        captioner,
        observer: Optional[WorkflowObserver] = None,
        history=None,
        encoder: Callable[..., Awaitable[str]] = encode_data_url,
        on_open_chooser: Optional[Callable[[], None]] = None,
        max_bytes: Optional[int] = None,
    ):
        self.state = WorkflowState()
        self._captioner = captioner
        self._observer = observer
        self._history = history
        self._encoder = encoder
        self._on_open_chooser = on_open_chooser
        self._max_bytes = max_bytes
        self._tasks: Set[asyncio.Task] = set()
        self.saved_id: Optional[str] = None

    def dispatch(self, event: Event) -> WorkflowState:
        before = self.state
        self.state, commands = transition(before, event, max_bytes=self._max_bytes)
        if self.state is not before:
            logger.debug("workflow %s -> %s (attempt %d) on %s",
                         before.phase.value, self.state.phase.value, self.state.attempt,
                         type(event).__name__)
        for cmd in commands:
            self._run(cmd)
        return self.state

    # convenience wrappers for callers that don't want to build events
    def select_file(self, file: Any) -> WorkflowState:
        return self.dispatch(FileSelected(file))

    def generate(self, options: Optional[CaptionOptions] = None) -> WorkflowState:
        return self.dispatch(GenerateRequested(options or CaptionOptions()))

    def change_image(self) -> WorkflowState:
        return self.dispatch(ChangeImageRequested())

    async def settle(self) -> WorkflowState:
        """Wait until every command spawned so far (and any they spawn) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
        return self.state

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _run(self, cmd: Command) -> None:
        if isinstance(cmd, Notify):
            if self._observer is not None:
                self._observer.notify(cmd.notification)
        elif isinstance(cmd, EncodeFile):
            self._spawn(self._encode(cmd))
        elif isinstance(cmd, RequestCaption):
            self._spawn(self._caption(cmd))
        elif isinstance(cmd, SaveHistory):
            if self._history is not None:
                self._spawn(self._save(cmd))
        elif isinstance(cmd, OpenFileChooser):
            if self._on_open_chooser is not None:
                self._on_open_chooser()

    async def _encode(self, cmd: EncodeFile) -> None:
        try:
            data_url = await self._encoder(cmd.file, max_bytes=self._max_bytes)
        except (ReadError, TooLargeError) as e:
            logger.info("attempt %d: read failed: %s", cmd.attempt, e.message)
            self.dispatch(EncodeFailed(cmd.attempt, e.message, e.kind))
            return
        self.dispatch(FileEncoded(cmd.attempt, data_url))

    async def _caption(self, cmd: RequestCaption) -> None:
        try:
            result = await self._captioner.generate_caption(cmd.request)
        except CaptionatorError as e:
            logger.info("attempt %d: caption failed: %s", cmd.attempt, e.message)
            self.dispatch(CaptionFailed(cmd.attempt, e.message))
            return
        except Exception as e:
            # opaque collaborator; surface its message instead of crashing the loop
            logger.exception("attempt %d: caption client raised", cmd.attempt)
            self.dispatch(CaptionFailed(cmd.attempt, str(e) or e.__class__.__name__))
            return
        self.dispatch(CaptionReceived(cmd.attempt, result))

    async def _save(self, cmd: SaveHistory) -> None:
        try:
            record_id = await self._history.save(cmd.image)
        except PersistenceError as e:
            self._emit(Notification("error", "History Error", e.message, ErrorKind.PERSISTENCE_ERROR))
            return
        if cmd.attempt == self.state.attempt:
            self.saved_id = record_id
        self._emit(Notification("info", "Saved", "Image and caption saved to history."))

    def _emit(self, notification: Notification) -> None:
        if self._observer is not None:
            self._observer.notify(notification)

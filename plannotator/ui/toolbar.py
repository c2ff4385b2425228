"""Annotation toolbar state machine for highlighted plan spans.

The toolbar opens in MENU when a highlight is selected. Choosing a destructive
type emits an annotation straight away; other types move to INPUT, where the
user composes text and submits with Cmd/Ctrl+Enter or the Save button. The
toolbar follows its anchor on scroll and resize, and while still in MENU it
closes once the anchor leaves the viewport.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Callable, Hashable, Optional, Union

TOOLBAR_OFFSET = 48
SUBMIT_KEY = "Enter"
ESCAPE_KEY = "Escape"


class AnnotationType(str, enum.Enum):
    DELETION = "DELETION"
    INSERTION = "INSERTION"
    REPLACEMENT = "REPLACEMENT"
    COMMENT = "COMMENT"
    GLOBAL_COMMENT = "GLOBAL_COMMENT"

    @property
    def is_destructive(self) -> bool:
        return self is AnnotationType.DELETION


class ToolbarStep(str, enum.Enum):
    CLOSED = "closed"
    MENU = "menu"
    INPUT = "input"


@dataclass(frozen=True)
class Rect:
    """Viewport-relative bounding box of the highlighted element."""

    top: float
    left: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(frozen=True)
class Position:
    top: float
    left: float


@dataclass(frozen=True)
class Annotation:
    type: AnnotationType
    text: Optional[str] = None


@dataclass(frozen=True)
class ToolbarState:
    step: ToolbarStep = ToolbarStep.CLOSED
    anchor: Optional[Hashable] = None
    active_type: Optional[AnnotationType] = None
    text: str = ""
    position: Optional[Position] = None

    def __post_init__(self) -> None:
        if self.step is ToolbarStep.INPUT:
            if self.active_type is None or self.active_type.is_destructive:
                raise ValueError("INPUT step requires a non-destructive annotation type")
        elif self.active_type is not None or self.text:
            raise ValueError(f"{self.step.value} step cannot carry a draft")
        if self.step is not ToolbarStep.CLOSED and self.anchor is None:
            raise ValueError("open toolbar requires an anchor")

    @property
    def is_open(self) -> bool:
        return self.step is not ToolbarStep.CLOSED

    @property
    def can_submit(self) -> bool:
        return self.step is ToolbarStep.INPUT and bool(self.text.strip())


CLOSED = ToolbarState()


@dataclass(frozen=True)
class HighlightChanged:
    anchor: Optional[Hashable]
    rect: Optional[Rect] = None
    viewport_height: float = 0.0


@dataclass(frozen=True)
class TypeSelected:
    type: AnnotationType


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class TextChanged:
    text: str


@dataclass(frozen=True)
class KeyPressed:
    key: str
    meta: bool = False
    ctrl: bool = False


@dataclass(frozen=True)
class Submit:
    pass


@dataclass(frozen=True)
class ViewportChanged:
    rect: Rect
    viewport_height: float


ToolbarEvent = Union[HighlightChanged, TypeSelected, Cancel, TextChanged, KeyPressed, Submit, ViewportChanged]
Transition = tuple[ToolbarState, Optional[Annotation]]


def toolbar_position(rect: Rect) -> Position:
    """Just above the anchor, horizontally centred."""
    return Position(top=rect.top - TOOLBAR_OFFSET, left=rect.left + rect.width / 2)


def is_out_of_viewport(rect: Rect, viewport_height: float) -> bool:
    return rect.bottom < 0 or rect.top > viewport_height


def _follow_anchor(state: ToolbarState, rect: Rect, viewport_height: float) -> ToolbarState:
    if state.step is ToolbarStep.MENU and is_out_of_viewport(rect, viewport_height):
        return CLOSED
    return replace(state, position=toolbar_position(rect))


def _emit(state: ToolbarState) -> Transition:
    if state.active_type is None:
        raise ValueError("cannot emit without an annotation type")
    return CLOSED, Annotation(type=state.active_type, text=state.text)


def _back_to_menu(state: ToolbarState) -> ToolbarState:
    return replace(state, step=ToolbarStep.MENU, active_type=None, text="")


def transition(state: ToolbarState, event: ToolbarEvent) -> Transition:
    """Apply one UI event; returns the next state and any emitted annotation."""
    if isinstance(event, HighlightChanged):
        if event.anchor is None:
            return CLOSED, None
        opened = ToolbarState(step=ToolbarStep.MENU, anchor=event.anchor)
        if event.rect is None:
            return opened, None
        return _follow_anchor(opened, event.rect, event.viewport_height), None

    if isinstance(event, ViewportChanged):
        if not state.is_open:
            return state, None
        return _follow_anchor(state, event.rect, event.viewport_height), None

    if state.step is ToolbarStep.MENU:
        if isinstance(event, TypeSelected):
            if event.type.is_destructive:
                return CLOSED, Annotation(type=event.type)
            return replace(state, step=ToolbarStep.INPUT, active_type=event.type, text=""), None
        if isinstance(event, Cancel):
            return CLOSED, None
        return state, None

    if state.step is ToolbarStep.INPUT:
        if isinstance(event, TextChanged):
            return replace(state, text=event.text), None
        if isinstance(event, KeyPressed):
            if event.key == ESCAPE_KEY:
                return _back_to_menu(state), None
            if event.key == SUBMIT_KEY and (event.meta or event.ctrl) and state.can_submit:
                return _emit(state)
            return state, None
        if isinstance(event, Submit):
            if state.can_submit:
                return _emit(state)
            return state, None
        if isinstance(event, Cancel):
            return _back_to_menu(state), None

    return state, None


class AnnotationToolbar:
    """Stateful wrapper that forwards emitted annotations to callbacks."""

    def __init__(
        self,
        on_annotate: Callable[[AnnotationType, Optional[str]], None],
        on_close: Callable[[], None] | None = None,
    ):
        self.on_annotate = on_annotate
        self.on_close = on_close
        self.state = CLOSED

    def dispatch(self, event: ToolbarEvent) -> Optional[Annotation]:
        was_open = self.state.is_open
        self.state, annotation = transition(self.state, event)
        if annotation is not None:
            self.on_annotate(annotation.type, annotation.text)
        elif was_open and not self.state.is_open and not isinstance(event, HighlightChanged):
            if self.on_close is not None:
                self.on_close()
        return annotation

    def highlight(self, anchor: Optional[Hashable], rect: Rect | None = None, viewport_height: float = 0.0) -> None:
        self.dispatch(HighlightChanged(anchor, rect, viewport_height))

    def select(self, annotation_type: AnnotationType) -> Optional[Annotation]:
        return self.dispatch(TypeSelected(annotation_type))

    def type_text(self, text: str) -> None:
        self.dispatch(TextChanged(text))

    def press(self, key: str, *, meta: bool = False, ctrl: bool = False) -> Optional[Annotation]:
        return self.dispatch(KeyPressed(key, meta=meta, ctrl=ctrl))

    def submit(self) -> Optional[Annotation]:
        return self.dispatch(Submit())

    def cancel(self) -> None:
        self.dispatch(Cancel())

    def on_viewport_change(self, rect: Rect, viewport_height: float) -> None:
        self.dispatch(ViewportChanged(rect, viewport_height))

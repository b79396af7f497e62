"""Change notifications emitted by a SessionState."""

from dataclasses import dataclass

from .models import UiMessage


@dataclass(frozen=True)
class MessageAdded:
    index: int
    message: UiMessage


@dataclass(frozen=True)
class AppendedToLast:
    text: str


@dataclass(frozen=True)
class LastContentReplaced:
    index: int
    content: str


@dataclass(frozen=True)
class LoadingChanged:
    index: int
    is_loading: bool


@dataclass(frozen=True)
class GeneratingChanged:
    is_generating: bool


@dataclass(frozen=True)
class MessageRemoved:
    index: int
    message: UiMessage


UiEvent = MessageAdded | AppendedToLast | LastContentReplaced | LoadingChanged | GeneratingChanged | MessageRemoved

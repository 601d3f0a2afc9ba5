"""
Playback Reveal Controller

Drives progressive disclosure on a rendering surface from a playback clock.
One controller belongs to one slide instance and owns its PlaybackState.

States:
    LOADING  -> surface not ready, ticks are dropped
    READY    -> heading shown, every tick reconciles reveals with the clock
    UNLOADED -> terminal, ticks are dropped

Seeking backward resets the surface and replays every due reveal in one
batch; moving forward reveals newly due ids one at a time.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Protocol, Sequence

from ..models import TimelineEntry

logger = logging.getLogger(__name__)


class RevealCommandType(str, Enum):
    RESET = "RESET"
    REVEAL_IMMEDIATE = "REVEAL_IMMEDIATE"
    REVEAL = "REVEAL"
    REVEAL_MULTIPLE = "REVEAL_MULTIPLE"


@dataclass(frozen=True)
class RevealCommand:
    """One instruction sent to the rendering surface"""
    type: RevealCommandType
    ids: tuple = ()

    def to_message(self) -> Dict[str, Any]:
        if self.type == RevealCommandType.RESET:
            return {"type": self.type.value}
        if self.type == RevealCommandType.REVEAL_MULTIPLE:
            return {"type": self.type.value, "ids": list(self.ids)}
        return {"type": self.type.value, "id": self.ids[0]}


class RevealSink(Protocol):
    """Anything that can show and hide reveal ids"""

    def reset(self) -> None: ...

    def reveal_immediate(self, reveal_id: str) -> None: ...

    def reveal(self, reveal_id: str) -> None: ...

    def reveal_many(self, reveal_ids: Sequence[str]) -> None: ...


class MessageRevealSink:
    """
    Posts reveal commands as messages through a channel.

    The channel is any callable taking one dict, such as a wrapper around a
    sandboxed document's postMessage or a websocket send.
    """

    def __init__(self, post: Callable[[Dict[str, Any]], None]):
        self._post = post

    def _send(self, command: RevealCommand) -> None:
        self._post(command.to_message())

    def reset(self) -> None:
        self._send(RevealCommand(RevealCommandType.RESET))

    def reveal_immediate(self, reveal_id: str) -> None:
        self._send(RevealCommand(RevealCommandType.REVEAL_IMMEDIATE, (reveal_id,)))

    def reveal(self, reveal_id: str) -> None:
        self._send(RevealCommand(RevealCommandType.REVEAL, (reveal_id,)))

    def reveal_many(self, reveal_ids: Sequence[str]) -> None:
        self._send(RevealCommand(RevealCommandType.REVEAL_MULTIPLE, tuple(reveal_ids)))


class RecordingRevealSink:
    """
    In-memory surface that tracks which ids are visible.

    Deduplicates by id like the real runtime does. Useful for previews,
    terminal playback and tests.
    """

    def __init__(self):
        self.visible: List[str] = []
        self.commands: List[RevealCommand] = []

    def _show(self, reveal_id: str) -> None:
        if reveal_id not in self.visible:
            self.visible.append(reveal_id)

    def reset(self) -> None:
        self.commands.append(RevealCommand(RevealCommandType.RESET))
        self.visible = []

    def reveal_immediate(self, reveal_id: str) -> None:
        self.commands.append(RevealCommand(RevealCommandType.REVEAL_IMMEDIATE, (reveal_id,)))
        self._show(reveal_id)

    def reveal(self, reveal_id: str) -> None:
        self.commands.append(RevealCommand(RevealCommandType.REVEAL, (reveal_id,)))
        self._show(reveal_id)

    def reveal_many(self, reveal_ids: Sequence[str]) -> None:
        self.commands.append(RevealCommand(RevealCommandType.REVEAL_MULTIPLE, tuple(reveal_ids)))
        for reveal_id in reveal_ids:
            self._show(reveal_id)


class ControllerState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    UNLOADED = "unloaded"


@dataclass
class PlaybackState:
    current_time: float = 0.0
    last_activated_index: int = -1


class PlaybackRevealController:
    """
    Reconciles a slide's reveal timeline with the playback clock.

    Usage:
        controller = PlaybackRevealController(timeline, MessageRevealSink(post))
        controller.surface_ready()
        for t in clock:
            controller.tick(t)
    """

    def __init__(self, timeline: Sequence[TimelineEntry], sink: RevealSink):
        self.timeline = list(timeline)
        self.sink = sink
        self.state = ControllerState.LOADING
        self.playback = PlaybackState()

    @property
    def first_id(self) -> str:
        return self.timeline[0].reveal_id

    def surface_ready(self) -> None:
        """Rendering surface finished loading: show the heading, start following the clock."""
        if self.state == ControllerState.UNLOADED:
            logger.debug("surface_ready after unload ignored")
            return

        self.playback = PlaybackState()
        self.state = ControllerState.READY
        if self.timeline:
            self.sink.reset()
            self.sink.reveal_immediate(self.first_id)

    def tick(self, t: float) -> List[str]:
        """
        Apply the clock value t.

        Returns:
            Ids whose activation was requested by this tick (empty for a no-op
            or a dropped tick)
        """
        if self.state != ControllerState.READY:
            return []

        self.playback.current_time = t
        if not self.timeline:
            return []

        due = self._highest_due_index(t)
        last = self.playback.last_activated_index

        if due < last:
            self.sink.reset()
            self.sink.reveal_immediate(self.first_id)
            replay = [entry.reveal_id for entry in self.timeline[1:due + 1]]
            if replay:
                self.sink.reveal_many(replay)
            self.playback.last_activated_index = due
            return [self.first_id] + replay

        if due > last:
            activated = []
            for index in range(last + 1, due + 1):
                if index == 0:
                    continue
                reveal_id = self.timeline[index].reveal_id
                self.sink.reveal(reveal_id)
                activated.append(reveal_id)
            self.playback.last_activated_index = due
            return activated

        return []

    def reload(self) -> None:
        """Slide document is being reloaded; wait for surface_ready again."""
        if self.state != ControllerState.UNLOADED:
            self.state = ControllerState.LOADING

    def unload(self) -> None:
        self.state = ControllerState.UNLOADED

    def _highest_due_index(self, t: float) -> int:
        due = -1
        for index, entry in enumerate(self.timeline):
            if entry.activation_time <= t:
                due = index
        return due

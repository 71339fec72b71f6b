"""
Event log stages and steps.

A Stage groups named Steps; each Step moves through
started -> finished | failed | skipped. Transitions are printed to the
console and logged with stage/event extras for the structured log file.
"""

import logging
import time
from enum import Enum
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from bosh_micro.utils import console as default_console
from bosh_micro.utils import format_duration

logger = logging.getLogger(__name__)


class EventState(str, Enum):
    STARTED = "started"
    FINISHED = "finished"
    FAILED = "failed"
    SKIPPED = "skipped"


class Step:
    """A single tracked step inside a stage."""

    def __init__(self, stage: "Stage", name: str):
        self.stage = stage
        self.name = name
        self.states: List[EventState] = []
        self.fail_message: Optional[str] = None
        self._started_at: Optional[float] = None

    def start(self) -> None:
        self._started_at = time.monotonic()
        self._transition(EventState.STARTED)
        self.stage.console.print(f"Started {escape(self.stage.name)} > {escape(self.name)}.", end="")

    def finish(self) -> None:
        self._transition(EventState.FINISHED)
        self.stage.console.print(f" [green]Done[/green] ({self._elapsed()})")

    def fail(self, message: str) -> None:
        self.fail_message = message
        self._transition(EventState.FAILED)
        self.stage.console.print(f" [red]Failed[/red] '{escape(message)}' ({self._elapsed()})")

    def skip(self, message: str) -> None:
        self._transition(EventState.SKIPPED)
        self.stage.console.print(f" [yellow]Skipped[/yellow] '{escape(message)}'")

    def _elapsed(self) -> str:
        if self._started_at is None:
            return format_duration(0)
        return format_duration(time.monotonic() - self._started_at)

    def _transition(self, state: EventState) -> None:
        self.states.append(state)
        logger.info(
            f"{self.stage.name} > {self.name}: {state.value}",
            extra={
                "stage": self.stage.name,
                "event": f"step_{state.value}",
                "metadata": {"step": self.name, "message": self.fail_message},
            },
        )

    def __repr__(self) -> str:
        return f"Step(name={self.name}, states={[s.value for s in self.states]})"


class Stage:
    """A named group of steps."""

    def __init__(self, name: str, console: Console):
        self.name = name
        self.console = console
        self.steps: List[Step] = []
        self.started = False
        self.finished = False

    def start(self) -> None:
        self.started = True
        logger.info(f"Starting stage: {self.name}", extra={"stage": self.name, "event": "stage_started"})
        self.console.print(f"Started {escape(self.name)}")

    def new_step(self, name: str) -> Step:
        step = Step(self, name)
        self.steps.append(step)
        return step

    def finish(self) -> None:
        self.finished = True
        logger.info(f"Stage {self.name} finished", extra={"stage": self.name, "event": "stage_finished"})
        self.console.print(f"Done {escape(self.name)}\n")


class EventLogger:
    """Creates stages bound to a console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or default_console

    def new_stage(self, name: str) -> Stage:
        return Stage(name, self.console)

"""turtle_graphics.py

Turtle interpretation of L-system instructions.

``+`` turns left and ``-`` turns right by ``delta_ang``. Every other symbol
is looked up in the configured step classes; a match moves the turtle and
the drawing kinds also emit a line segment to the graphics sink. A branch
runs on a copy of the turtle, so leaving it restores the state it was
entered with.
"""

from __future__ import annotations

import enum
import logging
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from typing import Protocol

from lsystem import Branch, Instruction

logger = logging.getLogger(__name__)

Point = tuple[float, float]

_TAU = 2.0 * math.pi


# -------------------------
# Errors
# -------------------------


class ConfigError(ValueError):
    pass


class DrawError(RuntimeError):
    """Raised by a graphics sink that cannot record a segment."""


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigError(msg)


# -------------------------
# Graphics sinks
# -------------------------


class Graphics(Protocol):
    def draw_line(self, start: Point, end: Point) -> None: ...


@dataclass
class SegmentRecorder:
    """Keeps every segment in memory, optionally forwarding to another sink.

    With ``limit`` set, the segment past the limit raises :class:`DrawError`
    before anything is recorded or forwarded.
    """

    limit: int | None = None
    target: Graphics | None = None
    segments: list[tuple[Point, Point]] = field(default_factory=list)

    def draw_line(self, start: Point, end: Point) -> None:
        if self.limit is not None and len(self.segments) >= self.limit:
            raise DrawError(f"segment limit of {self.limit} exceeded")
        self.segments.append((start, end))
        if self.target is not None:
            self.target.draw_line(start, end)


# -------------------------
# Configuration
# -------------------------


class Step(enum.Enum):
    DRAW_FORWARD = "draw_forward"
    DRAW_BACKWARD = "draw_backward"
    FORWARD = "forward"
    BACKWARD = "backward"

    @property
    def draws(self) -> bool:
        return self in (Step.DRAW_FORWARD, Step.DRAW_BACKWARD)

    @property
    def sign(self) -> float:
        return 1.0 if self in (Step.DRAW_FORWARD, Step.FORWARD) else -1.0


@dataclass(frozen=True)
class TurtleConfig:
    """Turn increment (radians), step length and the step classes.

    A character may sit in several classes; :meth:`classify` resolves it in
    the order draw_forward, draw_backward, forward, backward.
    """

    delta_ang: float = math.pi / 4.0
    stepsize: float = 1.0
    draw_forward: str = "F"
    draw_backward: str = "f"
    forward: str = ""
    backward: str = ""

    def __post_init__(self) -> None:
        _require(self.stepsize > 0, "stepsize must be > 0")

    def classify(self, symbol: str) -> Step | None:
        if symbol in self.draw_forward:
            return Step.DRAW_FORWARD
        if symbol in self.draw_backward:
            return Step.DRAW_BACKWARD
        if symbol in self.forward:
            return Step.FORWARD
        if symbol in self.backward:
            return Step.BACKWARD
        return None

    def create_turtle(self) -> Turtle:
        return Turtle.with_config(self)


# -------------------------
# Turtle
# -------------------------


@dataclass
class Turtle:
    x: float
    y: float
    angle: float
    config: TurtleConfig

    @classmethod
    def with_config(cls, config: TurtleConfig) -> Turtle:
        return cls(0.0, 0.0, 0.0, config)

    @property
    def pos(self) -> Point:
        return (self.x, self.y)

    def copy(self) -> Turtle:
        # The config is shared, never copied.
        return replace(self)

    def turn_left(self) -> None:
        self.angle = (self.angle - self.config.delta_ang) % _TAU

    def turn_right(self) -> None:
        self.angle = (self.angle + self.config.delta_ang) % _TAU

    def move(self, step: Step) -> None:
        dist = step.sign * self.config.stepsize
        self.x += math.cos(self.angle) * dist
        self.y += math.sin(self.angle) * dist

    def _execute(self, symbol: str, graphics: Graphics) -> None:
        if symbol == "+":
            self.turn_left()
            return
        if symbol == "-":
            self.turn_right()
            return

        step = self.config.classify(symbol)
        if step is None:
            return

        before = self.pos
        self.move(step)
        if step.draws:
            graphics.draw_line(before, self.pos)

    def draw(self, graphics: Graphics, instructions: Iterable[Instruction]) -> None:
        """Interpret ``instructions``, sending drawn segments to ``graphics``.

        This turtle ends in the state left by the top-level instructions.
        Each branch runs on a copy that is dropped when the branch ends.
        Branches are walked with an explicit stack of suspended frames, so
        nesting depth is not limited by recursion. Errors raised by
        ``graphics`` abort the whole traversal.
        """
        turtle = self
        frame: Iterator[Instruction] = iter(instructions)
        suspended: list[tuple[Iterator[Instruction], Turtle]] = []

        while True:
            instruction = next(frame, None)
            if instruction is None:
                if not suspended:
                    return
                frame, turtle = suspended.pop()
                continue

            if isinstance(instruction, Branch):
                suspended.append((frame, turtle))
                frame, turtle = iter(instruction.instructions), turtle.copy()
                continue

            turtle._execute(instruction.char, graphics)


def draw(
    config: TurtleConfig, instructions: Iterable[Instruction], graphics: Graphics
) -> Turtle:
    """Draw ``instructions`` with a fresh turtle at the origin and return it."""
    turtle = config.create_turtle()
    turtle.draw(graphics, instructions)
    logger.debug("Turtle finished at (%.3f, %.3f)", turtle.x, turtle.y)
    return turtle

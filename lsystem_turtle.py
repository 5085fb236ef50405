#!/usr/bin/env python3
"""lsystem_turtle.py

Command-line front end: parse a bracketed L-system grammar, rewrite it and
render the chosen generation with a turtle to SVG.

Run:
  lsystem-turtle render config.json output.svg
  lsystem-turtle validate config.json
  lsystem-turtle expand "F;F->GF;G->F;" -n 5
  lsystem-turtle --help
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from dataclasses import dataclass
from typing import Any, cast

import structlog

from lsystem import LSystem, ParseError, format_instructions, parse_lsystem
from svg_graphics import SvgGraphics, SvgStyle
from turtle_graphics import (
    ConfigError,
    DrawError,
    Graphics,
    SegmentRecorder,
    TurtleConfig,
    draw,
)

logger = logging.getLogger("lsystem_turtle")


# -------------------------
# Logging
# -------------------------


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Route stdlib and structlog records through one stderr handler.

    Args:
        verbose: Enable DEBUG-level output for this package's modules.
        log_json: Emit JSON lines instead of the console renderer.
    """
    level = logging.DEBUG if verbose else logging.WARNING

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    for name in ("lsystem", "turtle_graphics", "svg_graphics", "lsystem_turtle"):
        logging.getLogger(name).setLevel(level)


# -------------------------
# Config parsing
# -------------------------


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigError(msg)


def _as_float(x: Any, path: str) -> float:
    _require(
        isinstance(x, (int, float)) and not isinstance(x, bool),
        f"{path} must be a number",
    )
    return float(x)


def _as_int(x: Any, path: str) -> int:
    _require(
        isinstance(x, int) and not isinstance(x, bool), f"{path} must be an integer"
    )
    return int(x)


def _as_str(x: Any, path: str) -> str:
    _require(isinstance(x, str), f"{path} must be a string")
    return cast(str, x)


def _as_bool(x: Any, path: str) -> bool:
    _require(isinstance(x, bool), f"{path} must be a boolean")
    return cast(bool, x)


def _as_dict(x: Any, path: str) -> dict[str, Any]:
    _require(isinstance(x, dict), f"{path} must be an object")
    return cast(dict[str, Any], x)


@dataclass(frozen=True)
class RenderConfig:
    name: str
    grammar: str
    iterations: int
    strict: bool
    lsystem: LSystem
    turtle: TurtleConfig

    # svg
    margin: float
    precision: int
    flip_y: bool
    width: float | None
    height: float | None
    style: SvgStyle
    background: str | None


def parse_turtle(obj: dict[str, Any]) -> TurtleConfig:
    """Build a TurtleConfig from the ``turtle`` section (angle in degrees)."""
    angle = _as_float(obj.get("angle", 45), "turtle.angle")
    step = _as_float(obj.get("step", 10), "turtle.step")
    _require(step > 0, "turtle.step must be > 0")

    classes = {
        key: _as_str(obj.get(key, default), f"turtle.{key}")
        for key, default in (
            ("draw_forward", "F"),
            ("draw_backward", "f"),
            ("forward", ""),
            ("backward", ""),
        )
    }
    return TurtleConfig(delta_ang=math.radians(angle), stepsize=step, **classes)


def parse_config(obj: dict[str, Any]) -> RenderConfig:
    obj = _as_dict(obj, "root")

    name = _as_str(obj.get("name", "L-System"), "name")
    _require("grammar" in obj, "grammar is required")
    grammar = _as_str(obj["grammar"], "grammar")

    iterations = _as_int(obj.get("iterations", 0), "iterations")
    _require(iterations >= 0, "iterations must be >= 0")
    strict = _as_bool(obj.get("strict", False), "strict")

    lsystem = parse_lsystem(grammar, strict=strict)
    turtle = parse_turtle(_as_dict(obj.get("turtle", {}), "turtle"))

    svg = _as_dict(obj.get("svg", {}), "svg")
    margin = _as_float(svg.get("margin", 10), "svg.margin")
    precision = _as_int(svg.get("precision", 3), "svg.precision")
    _require(0 <= precision <= 10, "svg.precision must be between 0 and 10")
    flip_y = _as_bool(svg.get("flip_y", True), "svg.flip_y")

    width = svg.get("width")
    height = svg.get("height")
    if width is not None:
        width = _as_float(width, "svg.width")
        _require(width > 0, "svg.width must be > 0")
    if height is not None:
        height = _as_float(height, "svg.height")
        _require(height > 0, "svg.height must be > 0")

    style_obj = _as_dict(svg.get("style", {}), "svg.style")
    style = SvgStyle(
        stroke=_as_str(style_obj.get("stroke", "#000"), "svg.style.stroke"),
        stroke_width=_as_float(
            style_obj.get("stroke_width", 1.0), "svg.style.stroke_width"
        ),
        fill=_as_str(style_obj.get("fill", "none"), "svg.style.fill"),
        stroke_linecap=_as_str(
            style_obj.get("stroke_linecap", "round"), "svg.style.stroke_linecap"
        ),
        stroke_linejoin=_as_str(
            style_obj.get("stroke_linejoin", "round"), "svg.style.stroke_linejoin"
        ),
    )

    background = svg.get("background")
    if background is not None:
        background = _as_str(background, "svg.background")

    return RenderConfig(
        name=name,
        grammar=grammar,
        iterations=iterations,
        strict=strict,
        lsystem=lsystem,
        turtle=turtle,
        margin=margin,
        precision=precision,
        flip_y=flip_y,
        width=width,
        height=height,
        style=style,
        background=background,
    )


def load_json(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        try:
            return cast(dict[str, Any], json.load(f))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e


# -------------------------
# CLI / Help
# -------------------------

HELP_EPILOG = r"""
GRAMMAR SYNTAX

  <axiom>; <symbol> -> <replacement>; <symbol> -> <replacement>; ...

  Every character except '[', ']', ';' and whitespace is a symbol.
  '[' ... ']' encloses a branch: the turtle state is restored when it ends.
  Whitespace between tokens is ignored. Symbols without a rule rewrite to
  themselves; when several rules share a symbol the first one wins.
  Text after the last well-formed rule is ignored unless "strict" is set.

  Example (fractal plant):  X; X -> F+[[X]-X]-F[-FX]+X; F -> FF;

TURTLE

  '+' turns left and '-' turns right by turtle.angle degrees.
  Symbols listed in turtle.draw_forward / turtle.draw_backward move the
  turtle and draw a line; turtle.forward / turtle.backward move without
  drawing. Everything else is ignored by the turtle.

INPUT JSON SYNTAX (render, validate)

  {
    "name": "Koch curve",
    "grammar": "F; F -> F+F--F+F;",
    "iterations": 4,
    "strict": false,
    "turtle": {"angle": 60, "step": 10,
               "draw_forward": "F", "draw_backward": "f",
               "forward": "", "backward": ""},
    "svg": {"margin": 10, "precision": 3, "flip_y": true,
            "width": null, "height": null, "background": null,
            "style": {"stroke": "#000", "stroke_width": 1.0}}
  }
"""


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lsystem-turtle",
        description="Bracketed L-system rewriter with a turtle SVG renderer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_EPILOG,
    )
    p.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )
    p.add_argument(
        "--log-json", action="store_true", help="Emit log records as JSON lines."
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    pr = sub.add_parser("render", help="Render a JSON config to an SVG file.")
    pr.add_argument("config", help="Path to the input JSON config.")
    pr.add_argument("output", help="Path to write the SVG output.")
    pr.add_argument(
        "--max-segments",
        type=int,
        default=None,
        help="Abort when the drawing needs more line segments than this.",
    )

    pv = sub.add_parser(
        "validate", help="Validate a JSON config and print a brief summary."
    )
    pv.add_argument("config", help="Path to the input JSON config.")

    pe = sub.add_parser("expand", help="Print successive generations of a grammar.")
    pe.add_argument("grammar", help="Grammar text, e.g. 'F;F->GF;G->F;'.")
    pe.add_argument(
        "-n",
        "--generations",
        type=int,
        default=5,
        help="Number of generations to print, axiom included (default: 5).",
    )
    pe.add_argument(
        "--strict",
        action="store_true",
        help="Reject trailing text that is not a well-formed rule.",
    )

    return p


# -------------------------
# Commands
# -------------------------


def cmd_render(config_path: str, output_path: str, max_segments: int | None) -> None:
    cfg = parse_config(load_json(config_path))

    svg = SvgGraphics()
    sink: Graphics = svg
    if max_segments is not None:
        sink = SegmentRecorder(limit=max_segments, target=svg)

    word = cfg.lsystem.nth(cfg.iterations)
    draw(cfg.turtle, word, sink)
    logger.info(
        "Rendered %s generation %d: %d segments",
        cfg.name,
        cfg.iterations,
        svg.segment_count,
    )

    svg.write(
        output_path,
        margin=cfg.margin,
        precision=cfg.precision,
        flip_y=cfg.flip_y,
        width=cfg.width,
        height=cfg.height,
        style=cfg.style,
        background=cfg.background,
        title=cfg.name,
    )


_VALIDATE_SEGMENT_LIMIT = 10_000


def cmd_validate(config_path: str) -> None:
    cfg = parse_config(load_json(config_path))
    turtle = cfg.turtle

    print(f"name: {cfg.name}")
    print(f"axiom length: {len(cfg.lsystem.axiom)}")
    print(f"iterations: {cfg.iterations}")
    print(f"rules: {len(cfg.lsystem.rules)}")
    print(
        "turtle: "
        f"angle={math.degrees(turtle.delta_ang):g} step={turtle.stepsize:g} "
        f"draw_forward={turtle.draw_forward!r} draw_backward={turtle.draw_backward!r}"
    )
    print(f"svg: margin={cfg.margin} precision={cfg.precision} flip_y={cfg.flip_y}")

    word = cfg.lsystem.nth(cfg.iterations)
    print(f"top-level instructions: {len(word)}")

    # Bounded draw: catches empty output without paying for huge generations.
    recorder = SegmentRecorder(limit=_VALIDATE_SEGMENT_LIMIT)
    try:
        draw(turtle, word, recorder)
    except DrawError:
        print(
            f"warning: drawing exceeds {_VALIDATE_SEGMENT_LIMIT} segments; "
            "only the first portion was checked"
        )
    print(f"segments (sampled): {len(recorder.segments)}")
    if not recorder.segments:
        raise ConfigError("Config produces no drawable geometry")


def cmd_expand(grammar: str, generations: int, strict: bool) -> None:
    _require(generations >= 0, "generations must be >= 0")
    lsystem = LSystem.from_str(grammar, strict=strict)
    for _ in range(generations):
        print(format_instructions(next(lsystem)))


def main(argv: list[str] | None = None) -> int:
    ap = build_argparser()
    args = ap.parse_args(argv)
    configure_logging(verbose=args.verbose, log_json=args.log_json)

    try:
        if args.cmd == "render":
            cmd_render(args.config, args.output, args.max_segments)
        elif args.cmd == "validate":
            cmd_validate(args.config)
        elif args.cmd == "expand":
            cmd_expand(args.grammar, args.generations, args.strict)
        else:
            raise AssertionError("unreachable")
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2
    except ParseError as e:
        print(f"Grammar error: {e}", file=sys.stderr)
        return 2
    except DrawError as e:
        print(f"Draw error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"File error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

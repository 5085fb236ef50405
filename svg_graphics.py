"""svg_graphics.py

Graphics sink that collects turtle segments into polylines and writes them
out as a standalone SVG document.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field

from turtle_graphics import ConfigError, Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SvgStyle:
    stroke: str = "#000"
    stroke_width: float = 1.0
    fill: str = "none"
    stroke_linecap: str = "round"
    stroke_linejoin: str = "round"


@dataclass
class SvgGraphics:
    """Collects segments; a segment starting where the last one ended
    extends the current polyline, anything else starts a new one."""

    polylines: list[list[Point]] = field(default_factory=list)

    def draw_line(self, start: Point, end: Point) -> None:
        if self.polylines and self.polylines[-1][-1] == start:
            self.polylines[-1].append(end)
        else:
            self.polylines.append([start, end])

    @property
    def segment_count(self) -> int:
        return sum(len(pl) - 1 for pl in self.polylines)

    def write(
        self,
        out_path: str,
        *,
        margin: float = 10.0,
        precision: int = 3,
        flip_y: bool = True,
        width: float | None = None,
        height: float | None = None,
        style: SvgStyle | None = None,
        background: str | None = None,
        title: str | None = None,
    ) -> None:
        write_svg(
            self.polylines,
            out_path=out_path,
            margin=margin,
            precision=precision,
            flip_y=flip_y,
            width=width,
            height=height,
            style=style or SvgStyle(),
            background=background,
            title=title,
        )


def _ensure_parent_dir(path: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)) or ".", exist_ok=True)


def compute_bounds(polylines: list[list[Point]]) -> tuple[float, float, float, float]:
    if not polylines:
        raise ConfigError("No drawable geometry produced.")
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for pl in polylines:
        for x, y in pl:
            min_x = min(min_x, x)
            max_x = max(max_x, x)
            min_y = min(min_y, y)
            max_y = max(max_y, y)
    return (min_x, min_y, max_x, max_y)


def _fmt(x: float, precision: int) -> str:
    # Avoid "-0" in the output.
    if not x:
        x = 0.0
    s = f"{x:.{precision}f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    if s in ("", "-0"):
        return "0"
    return s


def _escape(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def write_svg(
    polylines: list[list[Point]],
    *,
    out_path: str,
    margin: float,
    precision: int,
    flip_y: bool,
    width: float | None,
    height: float | None,
    style: SvgStyle,
    background: str | None,
    title: str | None = None,
) -> None:
    minx, miny, maxx, maxy = compute_bounds(polylines)

    # Margin first, so a single straight line can still get a nonzero box.
    minx -= margin
    miny -= margin
    maxx += margin
    maxy += margin
    w = maxx - minx
    h = maxy - miny
    if not (w > 0 and h > 0):
        raise ConfigError(
            "Degenerate bounds after margin (width or height is zero). "
            "Set svg.margin > 0 to render collinear geometry."
        )

    svg_w_attr = f' width="{_fmt(float(width), precision)}"' if width else ""
    svg_h_attr = f' height="{_fmt(float(height), precision)}"' if height else ""

    view_box = (
        f"{_fmt(minx, precision)} {_fmt(miny, precision)} {_fmt(w, precision)} "
        f"{_fmt(h, precision)}"
    )

    lines: list[str] = []
    lines.append('<?xml version="1.0" encoding="UTF-8"?>')
    lines.append(
        "<svg xmlns=\"http://www.w3.org/2000/svg\" version=\"1.1\" "
        f"viewBox=\"{view_box}\"{svg_w_attr}{svg_h_attr}>"
    )

    if title:
        lines.append(f"  <title>{_escape(title)}</title>")

    if background and background.lower() != "none":
        lines.append(
            f'  <rect x="{_fmt(minx, precision)}" y="{_fmt(miny, precision)}" '
            f'width="{_fmt(w, precision)}" height="{_fmt(h, precision)}" '
            f'fill="{_escape(background)}" />'
        )

    style_attr = (
        f'stroke="{_escape(style.stroke)}" '
        f'stroke-width="{_fmt(style.stroke_width, precision)}" '
        f'fill="{_escape(style.fill)}" stroke-linecap="{style.stroke_linecap}" '
        f'stroke-linejoin="{style.stroke_linejoin}"'
    )

    if flip_y:
        # Mirror about y = (miny + maxy) / 2 so the turtle's +y points up.
        flip_y_line = _fmt(miny + maxy, precision)
        lines.append(f'  <g transform="translate(0,{flip_y_line}) scale(1,-1)">')
        indent = "    "
    else:
        indent = "  "

    for pl in polylines:
        pts = " ".join(f"{_fmt(x, precision)},{_fmt(y, precision)}" for x, y in pl)
        lines.append(f'{indent}<polyline points="{pts}" {style_attr} />')

    if flip_y:
        lines.append("  </g>")

    lines.append("</svg>")

    _ensure_parent_dir(out_path)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))
        f.write("\n")

    logger.debug("Wrote %d polylines to %s", len(polylines), out_path)

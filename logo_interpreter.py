#!/usr/bin/env python3
"""logo_interpreter.py

A small Logo-dialect turtle-graphics interpreter that renders to SVG.

Key features:
- Whitespace tokenizer with standalone brackets.
- TO ... END procedures with parameters (recursion bounded by call depth).
- Prefix arithmetic / comparison expressions, RANDOM and constants.
- Several named turtles sharing one ordered segment trace.
- Deterministic result model (segments, bounds, per-turtle states).
- SVG output, JSON traces and a random script generator.

Run:
  python logo_interpreter.py render script.logo output.svg
  python logo_interpreter.py check script.logo
  python logo_interpreter.py trace script.logo trace.json
  python logo_interpreter.py random out.logo --seed 123
  python logo_interpreter.py --help
"""

from __future__ import annotations

import argparse
import json
import math
import os
import random
import re
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Callable, cast

Point = tuple[float, float]
Color = tuple[float, float, float]

MAIN_TURTLE = "MAIN"
MAX_CALL_DEPTH = 32
EQUALITY_TOLERANCE = 0.0001
DEFAULT_COLOR: Color = (0.0, 0.0, 1.0)
DEFAULT_LINE_WIDTH = 2.0


# -------------------------
# Errors / Validation
# -------------------------


class LogoError(ValueError):
    """Base class for script failures. A failing run raises exactly one."""


class UnexpectedEndOfInput(LogoError):
    def __init__(self) -> None:
        super().__init__("Unexpected end of input.")


class UnexpectedToken(LogoError):
    def __init__(self, token: str, *, numeric: bool = False) -> None:
        self.token = token
        self.numeric = numeric
        if numeric:
            super().__init__(f"Unexpected number: {token} (expected a command).")
        else:
            super().__init__(f"Unexpected token: {token}.")


class InvalidNumber(LogoError):
    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Invalid number: {token}.")


class InvalidRepeatCount(LogoError):
    def __init__(self, value: float) -> None:
        self.value = value
        super().__init__(f"Invalid repeat count: {_fmt_value(value)}.")


class MissingBlock(LogoError):
    def __init__(self, keyword: str = "REPEAT") -> None:
        self.keyword = keyword
        super().__init__(f"Missing block after {keyword}.")


class MissingEnd(LogoError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Missing END for procedure {name}.")


class MissingIdentifier(LogoError):
    def __init__(self, keyword: str) -> None:
        self.keyword = keyword
        super().__init__(f"Missing identifier after {keyword}.")


class RecursionLimitReached(LogoError):
    def __init__(self, limit: int = MAX_CALL_DEPTH) -> None:
        self.limit = limit
        super().__init__(
            f"Recursion limit reached (more than {limit} nested procedure calls)."
        )


class UndefinedVariable(LogoError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Undefined variable: :{name}.")


class InvalidExpression(LogoError):
    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Invalid expression: {token}.")


class ConfigError(ValueError):
    pass


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


def _fmt_value(x: float) -> str:
    if float(x).is_integer():
        return str(int(x))
    return repr(float(x))


# -------------------------
# Data model
# -------------------------


@dataclass(frozen=True)
class TurtleState:
    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0  # degrees; 0 points up (+Y), RIGHT decreases it
    pen_down: bool = True
    pen_color: Color = DEFAULT_COLOR
    line_width: float = DEFAULT_LINE_WIDTH

    @property
    def position(self) -> Point:
        return (self.x, self.y)


@dataclass(frozen=True)
class Segment:
    start: Point
    end: Point
    heading: float
    color: Color
    line_width: float
    turtle_id: str

    @property
    def length(self) -> float:
        return math.hypot(self.end[0] - self.start[0], self.end[1] - self.start[1])


@dataclass(frozen=True)
class Procedure:
    name: str
    params: tuple[str, ...]
    body: tuple[str, ...]


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def contains(self, p: Point, tol: float = 1e-9) -> bool:
        return (
            self.x - tol <= p[0] <= self.max_x + tol
            and self.y - tol <= p[1] <= self.max_y + tol
        )


DEFAULT_RECT = Rect(-50.0, -50.0, 100.0, 100.0)


@dataclass
class BoundsTracker:
    min_x: float = 0.0
    max_x: float = 0.0
    min_y: float = 0.0
    max_y: float = 0.0
    initialized: bool = False

    def register(self, p: Point) -> None:
        x, y = p
        if not self.initialized:
            self.min_x = self.max_x = x
            self.min_y = self.max_y = y
            self.initialized = True
            return
        if x < self.min_x:
            self.min_x = x
        if x > self.max_x:
            self.max_x = x
        if y < self.min_y:
            self.min_y = y
        if y > self.max_y:
            self.max_y = y

    def reset(self) -> None:
        self.min_x = self.max_x = self.min_y = self.max_y = 0.0
        self.initialized = False

    @property
    def rect(self) -> Rect:
        if not self.initialized:
            return DEFAULT_RECT
        # Width/height floored at 1 so downstream scale factors stay finite.
        return Rect(
            self.min_x,
            self.min_y,
            max(1.0, self.max_x - self.min_x),
            max(1.0, self.max_y - self.min_y),
        )


@dataclass(frozen=True)
class ExecutionResult:
    segments: tuple[Segment, ...]
    bounds: Rect
    initial_states: dict[str, TurtleState]
    final_states: dict[str, TurtleState]
    turtle_order: tuple[str, ...]


# -------------------------
# Tokenizer / procedure extraction
# -------------------------


def tokenize(text: str) -> list[str]:
    return text.replace("[", " [ ").replace("]", " ] ").split()


def extract_procedures(
    tokens: Sequence[str],
) -> tuple[list[str], dict[str, Procedure]]:
    """Lift ``TO name :p ... END`` definitions out of the token stream.

    Returns the residual executable tokens and a name -> Procedure table.
    Brackets are not depth-tracked: the first bare END closes the
    definition, even inside a nested block.
    """
    residual: list[str] = []
    procedures: dict[str, Procedure] = {}
    i = 0
    n = len(tokens)

    while i < n:
        tok = tokens[i]
        i += 1
        if tok.upper() != "TO":
            residual.append(tok)
            continue

        if i >= n:
            raise UnexpectedEndOfInput()
        name = tokens[i].upper()
        i += 1

        params: list[str] = []
        while i < n and tokens[i].startswith(":"):
            params.append(tokens[i][1:].upper())
            i += 1

        body_start = i
        while i < n and tokens[i].upper() != "END":
            i += 1
        if i >= n:
            raise MissingEnd(name)

        # Later definitions with the same name win.
        procedures[name] = Procedure(
            name=name, params=tuple(params), body=tuple(tokens[body_start:i])
        )
        i += 1

    return residual, procedures


@dataclass
class TokenCursor:
    tokens: Sequence[str]
    pos: int = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def peek(self) -> str | None:
        if self.at_end():
            return None
        return self.tokens[self.pos]

    def next(self) -> str:
        if self.at_end():
            raise UnexpectedEndOfInput()
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok


# -------------------------
# Variables
# -------------------------


def lookup_variable(scopes: Sequence[dict[str, float]], name: str) -> float:
    for scope in reversed(scopes):
        if name in scope:
            return scope[name]
    raise UndefinedVariable(name)


def assign_variable(scopes: list[dict[str, float]], name: str, value: float) -> None:
    """Write to the innermost scope already holding ``name``, else the global one."""
    for scope in reversed(scopes):
        if name in scope:
            scope[name] = value
            return
    scopes[0][name] = value


# -------------------------
# Expression evaluator
# -------------------------

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def _is_number(token: str) -> bool:
    return _NUMBER_RE.match(token) is not None


def _quotient(a: float, b: float) -> float:
    return a / b if b != 0 else 0.0


def _remainder(a: float, b: float) -> float:
    return math.fmod(a, b) if b != 0 else 0.0


def _power(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except (ValueError, OverflowError) as e:
        raise InvalidExpression("POWER") from e


def _flag(cond: bool) -> float:
    return 1.0 if cond else 0.0


def _finite(value: float, token: str) -> float:
    if not math.isfinite(value):
        raise InvalidExpression(token)
    return value


_BINARY_OPS: dict[str, Callable[[float, float], float]] = {
    "SUM": lambda a, b: a + b,
    "DIFFERENCE": lambda a, b: a - b,
    "PRODUCT": lambda a, b: a * b,
    "QUOTIENT": _quotient,
    "REMAINDER": _remainder,
    "MIN": min,
    "MAX": max,
    "POWER": _power,
    "LESS": lambda a, b: _flag(a < b),
    "GREATER": lambda a, b: _flag(a > b),
    "EQUAL": lambda a, b: _flag(abs(a - b) < EQUALITY_TOLERANCE),
    "NOTEQUAL": lambda a, b: _flag(abs(a - b) >= EQUALITY_TOLERANCE),
}

_UNARY_OPS: dict[str, Callable[[float], float]] = {
    "ABS": abs,
    "NEG": lambda a: -a,
}

_CONSTANTS = {"PI": math.pi, "E": math.e}

_COMMAND_WORDS = frozenset(
    {
        "FORWARD", "FD", "BACK", "BK", "RIGHT", "RT", "LEFT", "LT",
        "PENUP", "PU", "PENDOWN", "PD", "HOME", "CLEAR", "COLOR", "SETXY",
        "SETHEADING", "REPEAT", "TURTLE", "MAKE", "IF", "IFELSE", "TO", "END",
    }
)  # fmt: skip


def read_number(
    cursor: TokenCursor,
    scopes: Sequence[dict[str, float]],
    rng: random.Random | None = None,
) -> float:
    """Consume one fully reduced expression and return its value."""
    token = cursor.next()
    word = token.upper()

    if token.startswith(":"):
        return lookup_variable(scopes, word[1:])

    op2 = _BINARY_OPS.get(word)
    if op2 is not None:
        left = read_number(cursor, scopes, rng)
        right = read_number(cursor, scopes, rng)
        return _finite(op2(left, right), token)

    op1 = _UNARY_OPS.get(word)
    if op1 is not None:
        return _finite(op1(read_number(cursor, scopes, rng)), token)

    if word == "RANDOM":
        upper = read_number(cursor, scopes, rng)
        if upper <= 0:
            return 0.0
        return (rng or random.Random()).random() * upper

    if word in _CONSTANTS:
        return _CONSTANTS[word]

    if token in ("[", "]") or word in _COMMAND_WORDS:
        raise InvalidExpression(token)
    value = float(token) if _is_number(token) else math.nan
    if not math.isfinite(value):
        raise InvalidNumber(token)
    return value


# -------------------------
# Statement executor
# -------------------------


@dataclass
class ExecutionContext:
    """Everything one run mutates. Built fresh per run and then discarded."""

    procedures: dict[str, Procedure] = field(default_factory=dict)
    rng: random.Random = field(default_factory=random.Random)
    turtles: dict[str, TurtleState] = field(default_factory=dict)
    initial_states: dict[str, TurtleState] = field(default_factory=dict)
    turtle_order: list[str] = field(default_factory=list)
    active_id: str = MAIN_TURTLE
    segments: list[Segment] = field(default_factory=list)
    bounds: BoundsTracker = field(default_factory=BoundsTracker)
    scopes: list[dict[str, float]] = field(default_factory=lambda: [{}])

    def __post_init__(self) -> None:
        if self.active_id not in self.turtles:
            self.add_turtle(self.active_id, register=False)

    def add_turtle(self, turtle_id: str, *, register: bool = True) -> None:
        if turtle_id in self.turtles:
            return
        state = TurtleState()
        self.turtles[turtle_id] = state
        self.initial_states[turtle_id] = state
        self.turtle_order.append(turtle_id)
        if register:
            self.bounds.register(state.position)

    @property
    def active(self) -> TurtleState:
        return self.turtles[self.active_id]

    def update(self, **changes: Any) -> None:
        self.turtles[self.active_id] = replace(self.active, **changes)

    def result(self) -> ExecutionResult:
        if self.bounds.initialized:
            for state in self.turtles.values():
                self.bounds.register(state.position)
        return ExecutionResult(
            segments=tuple(self.segments),
            bounds=self.bounds.rect,
            initial_states=dict(self.initial_states),
            final_states=dict(self.turtles),
            turtle_order=tuple(self.turtle_order),
        )


def _round_half_away(x: float) -> int:
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def _clamp_channel(v: float) -> float:
    return max(0.0, min(255.0, v)) / 255.0


def _read_identifier(cursor: TokenCursor, keyword: str) -> str:
    token = cursor.peek()
    if token is None or token in ("[", "]"):
        raise MissingIdentifier(keyword)
    cursor.next()
    name = token[1:] if token[:1] in ('"', ":") else token
    if not name:
        raise MissingIdentifier(keyword)
    return name.upper()


def _read_block(cursor: TokenCursor, keyword: str) -> list[str]:
    if cursor.peek() != "[":
        raise MissingBlock(keyword)
    cursor.next()
    depth = 1
    block: list[str] = []
    while not cursor.at_end():
        tok = cursor.next()
        if tok == "[":
            depth += 1
        elif tok == "]":
            depth -= 1
            if depth == 0:
                return block
        block.append(tok)
    raise MissingBlock(keyword)


def _move(ctx: ExecutionContext, distance: float, word: str) -> None:
    turtle = ctx.active
    rad = turtle.heading * math.pi / 180
    # sin for x, cos for y: heading 0 points along +Y.
    start = turtle.position
    end = (start[0] + math.sin(rad) * distance, start[1] + math.cos(rad) * distance)
    if not (math.isfinite(end[0]) and math.isfinite(end[1])):
        raise InvalidExpression(word)
    if turtle.pen_down:
        ctx.segments.append(
            Segment(
                start=start,
                end=end,
                heading=turtle.heading,
                color=turtle.pen_color,
                line_width=turtle.line_width,
                turtle_id=ctx.active_id,
            )
        )
    ctx.bounds.register(start)
    ctx.bounds.register(end)
    ctx.update(x=end[0], y=end[1])


def _call_procedure(
    proc: Procedure, cursor: TokenCursor, ctx: ExecutionContext, call_depth: int
) -> None:
    # Arguments are evaluated in the caller's scope before the new frame exists.
    args = [read_number(cursor, ctx.scopes, ctx.rng) for _ in proc.params]
    ctx.scopes.append(dict(zip(proc.params, args)))
    try:
        execute(TokenCursor(proc.body), ctx, call_depth + 1)
    finally:
        ctx.scopes.pop()


def execute(cursor: TokenCursor, ctx: ExecutionContext, call_depth: int = 0) -> None:
    """Run statements until the cursor is exhausted, mutating ``ctx``."""
    if call_depth > MAX_CALL_DEPTH:
        raise RecursionLimitReached(MAX_CALL_DEPTH)

    def number() -> float:
        return read_number(cursor, ctx.scopes, ctx.rng)

    while not cursor.at_end():
        token = cursor.next()
        word = token.upper()

        if word in ("FORWARD", "FD"):
            _move(ctx, number(), word)
            continue

        if word in ("BACK", "BK"):
            _move(ctx, -number(), word)
            continue

        if word in ("RIGHT", "RT"):
            angle = number()
            ctx.update(heading=_finite(ctx.active.heading - angle, word))
            continue

        if word in ("LEFT", "LT"):
            angle = number()
            ctx.update(heading=_finite(ctx.active.heading + angle, word))
            continue

        if word in ("PENUP", "PU"):
            ctx.update(pen_down=False)
            continue

        if word in ("PENDOWN", "PD"):
            ctx.update(pen_down=True)
            continue

        if word == "HOME":
            ctx.update(x=0.0, y=0.0, heading=0.0)
            ctx.bounds.register(ctx.active.position)
            continue

        if word == "CLEAR":
            ctx.segments.clear()
            ctx.bounds.reset()
            for tid, state in list(ctx.turtles.items()):
                reset = replace(state, x=0.0, y=0.0, heading=0.0)
                ctx.turtles[tid] = reset
                ctx.initial_states[tid] = reset
            continue

        if word == "COLOR":
            r = number()
            g = number()
            b = number()
            ctx.update(
                pen_color=(_clamp_channel(r), _clamp_channel(g), _clamp_channel(b))
            )
            continue

        if word == "SETXY":
            x = number()
            y = number()
            # Teleports never draw, whatever the pen state.
            ctx.update(x=x, y=y)
            ctx.bounds.register((x, y))
            continue

        if word == "SETHEADING":
            ctx.update(heading=number())
            continue

        if word == "REPEAT":
            raw = number()
            count = _round_half_away(raw)
            if count < 0:
                raise InvalidRepeatCount(raw)
            block = _read_block(cursor, word)
            for _ in range(count):
                execute(TokenCursor(block), ctx, call_depth)
            continue

        if word == "TURTLE":
            tid = _read_identifier(cursor, word)
            ctx.add_turtle(tid)
            ctx.active_id = tid
            continue

        if word == "MAKE":
            name = _read_identifier(cursor, word)
            assign_variable(ctx.scopes, name, number())
            continue

        if word == "IF":
            cond = number()
            then_block = _read_block(cursor, word)
            else_block = _read_block(cursor, word) if cursor.peek() == "[" else None
            if cond != 0:
                execute(TokenCursor(then_block), ctx, call_depth)
            elif else_block is not None:
                execute(TokenCursor(else_block), ctx, call_depth)
            continue

        if word == "IFELSE":
            cond = number()
            then_block = _read_block(cursor, word)
            else_block = _read_block(cursor, word)
            chosen = then_block if cond != 0 else else_block
            execute(TokenCursor(chosen), ctx, call_depth)
            continue

        if token in ("[", "]"):
            raise UnexpectedToken(token)

        proc = ctx.procedures.get(word)
        if proc is not None:
            _call_procedure(proc, cursor, ctx, call_depth)
            continue

        if _is_number(token):
            raise UnexpectedToken(repr(float(token)), numeric=True)
        raise UnexpectedToken(token)


def run(script: str, *, seed: int | None = None) -> ExecutionResult:
    """Evaluate ``script`` from a clean slate.

    Returns the full result or raises one LogoError; nothing partial escapes.
    """
    residual, procedures = extract_procedures(tokenize(script))
    ctx = ExecutionContext(procedures=procedures, rng=random.Random(seed))
    execute(TokenCursor(residual), ctx)
    return ctx.result()


# -------------------------
# Polylines
# -------------------------


def _same_point(a: Point, b: Point) -> bool:
    return math.isclose(a[0], b[0], abs_tol=1e-9) and math.isclose(
        a[1], b[1], abs_tol=1e-9
    )


@dataclass
class StyledPolyline:
    points: list[Point]
    color: Color
    line_width: float
    turtle_id: str

    def continues_with(self, seg: Segment) -> bool:
        return (
            seg.turtle_id == self.turtle_id
            and seg.color == self.color
            and seg.line_width == self.line_width
            and _same_point(self.points[-1], seg.start)
        )


@dataclass
class PolylineBuffer:
    polylines: list[StyledPolyline]

    def add_segment(self, seg: Segment) -> None:
        if self.polylines and self.polylines[-1].continues_with(seg):
            self.polylines[-1].points.append(seg.end)
            return
        self.polylines.append(
            StyledPolyline(
                points=[seg.start, seg.end],
                color=seg.color,
                line_width=seg.line_width,
                turtle_id=seg.turtle_id,
            )
        )


def segments_to_polylines(segments: Sequence[Segment]) -> list[StyledPolyline]:
    """Join runs of connected, identically styled segments; order is kept."""
    buf = PolylineBuffer(polylines=[])
    for seg in segments:
        buf.add_segment(seg)
    return buf.polylines


# -------------------------
# SVG writing
# -------------------------


@dataclass(frozen=True)
class SvgOptions:
    margin: float = 10.0
    precision: int = 3
    flip_y: bool = True
    width: float | None = None
    height: float | None = None
    background: str | None = None
    show_turtles: bool = False
    title: str | None = None
    line_scale: float = 1.0


def _ensure_parent_dir(path: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)) or ".", exist_ok=True)


def _fmt(x: float, precision: int) -> str:
    # Normalise -0.0 so it never produces "-0" in SVG output.
    if not x:
        x = 0.0
    s = f"{x:.{precision}f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    if s in ("-0", ""):
        s = "0"
    return s


def _hex_color(c: Color) -> str:
    r, g, b = (max(0, min(255, round(v * 255))) for v in c)
    return f"#{r:02x}{g:02x}{b:02x}"


def _turtle_marker(state: TurtleState, size: float) -> list[Point]:
    rad = state.heading * math.pi / 180
    fx, fy = math.sin(rad), math.cos(rad)
    # Perpendicular to the heading, pointing to the turtle's side.
    px, py = fy, -fx
    x, y = state.x, state.y
    tip = (x + fx * size, y + fy * size)
    bx, by = x - fx * size * 0.6, y - fy * size * 0.6
    back_a = (bx + px * size * 0.6, by + py * size * 0.6)
    back_b = (bx - px * size * 0.6, by - py * size * 0.6)
    return [tip, back_a, back_b]


def write_svg(result: ExecutionResult, *, out_path: str, options: SvgOptions) -> None:
    precision = options.precision
    bounds = result.bounds

    minx = bounds.x - options.margin
    miny = bounds.y - options.margin
    maxx = bounds.max_x + options.margin
    maxy = bounds.max_y + options.margin
    w = maxx - minx
    h = maxy - miny
    _require(
        w > 0 and h > 0,
        "Degenerate bounds after margin (width or height is not positive). "
        "Use a margin >= 0.",
    )

    svg_w_attr = (
        f' width="{_fmt(float(options.width), precision)}"' if options.width else ""
    )
    svg_h_attr = (
        f' height="{_fmt(float(options.height), precision)}"' if options.height else ""
    )
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

    if options.title:
        safe_title = (
            options.title.replace("&", "&amp;")
            .replace("<", "&lt;")
            .replace(">", "&gt;")
        )
        lines.append(f"  <title>{safe_title}</title>")

    if options.background and options.background.lower() != "none":
        lines.append(
            f'  <rect x="{_fmt(minx, precision)}" y="{_fmt(miny, precision)}" '
            f'width="{_fmt(w, precision)}" height="{_fmt(h, precision)}" '
            f'fill="{options.background}" />'
        )

    if options.flip_y:
        # Logo's +Y is up; SVG's is down. Mirror about the middle of the viewBox.
        flip_y_line = _fmt(miny + maxy, precision)
        lines.append(f'  <g transform="translate(0,{flip_y_line}) scale(1,-1)">')
        indent = "    "
    else:
        indent = "  "

    for pl in segments_to_polylines(result.segments):
        pts = " ".join(
            f"{_fmt(x, precision)},{_fmt(y, precision)}" for x, y in pl.points
        )
        stroke_width = _fmt(pl.line_width * options.line_scale, precision)
        lines.append(
            f'{indent}<polyline points="{pts}" stroke="{_hex_color(pl.color)}" '
            f'stroke-width="{stroke_width}" fill="none" '
            'stroke-linecap="round" stroke-linejoin="round" />'
        )

    if options.show_turtles:
        size = max(bounds.width, bounds.height) * 0.03
        for tid in result.turtle_order:
            state = result.final_states[tid]
            pts = " ".join(
                f"{_fmt(x, precision)},{_fmt(y, precision)}"
                for x, y in _turtle_marker(state, size)
            )
            lines.append(
                f'{indent}<polygon class="turtle" data-turtle="{tid}" '
                f'points="{pts}" fill="{_hex_color(state.pen_color)}" />'
            )

    if options.flip_y:
        lines.append("  </g>")

    lines.append("</svg>")

    _ensure_parent_dir(out_path)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))
        f.write("\n")


# -------------------------
# Options / IO
# -------------------------


def parse_svg_options(obj: dict[str, Any]) -> SvgOptions:
    obj = _as_dict(obj, "root")
    svg = _as_dict(obj.get("svg", obj), "svg")

    margin = _as_float(svg.get("margin", 10), "svg.margin")
    _require(margin >= 0, "svg.margin must be >= 0")
    precision = _as_int(svg.get("precision", 3), "svg.precision")
    _require(0 <= precision <= 10, "svg.precision must be between 0 and 10")
    flip_y = _as_bool(svg.get("flip_y", True), "svg.flip_y")
    show_turtles = _as_bool(svg.get("show_turtles", False), "svg.show_turtles")
    line_scale = _as_float(svg.get("line_scale", 1.0), "svg.line_scale")
    _require(line_scale > 0, "svg.line_scale must be > 0")

    width = svg.get("width")
    height = svg.get("height")
    if width is not None:
        width = _as_float(width, "svg.width")
        _require(width > 0, "svg.width must be > 0")
    if height is not None:
        height = _as_float(height, "svg.height")
        _require(height > 0, "svg.height must be > 0")

    background = svg.get("background")
    if background is not None:
        background = _as_str(background, "svg.background")

    title = svg.get("title")
    if title is not None:
        title = _as_str(title, "svg.title")

    return SvgOptions(
        margin=margin,
        precision=precision,
        flip_y=flip_y,
        width=width,
        height=height,
        background=background,
        show_turtles=show_turtles,
        title=title,
        line_scale=line_scale,
    )


def load_json(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        try:
            return cast(dict[str, Any], json.load(f))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e


def load_script(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


def dump_json(obj: dict[str, Any], path: str) -> None:
    _ensure_parent_dir(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)
        f.write("\n")


def _state_to_dict(state: TurtleState) -> dict[str, Any]:
    return {
        "x": state.x,
        "y": state.y,
        "heading": state.heading,
        "pen_down": state.pen_down,
        "pen_color": list(state.pen_color),
        "line_width": state.line_width,
    }


def result_to_dict(result: ExecutionResult) -> dict[str, Any]:
    b = result.bounds
    return {
        "segments": [
            {
                "start": list(s.start),
                "end": list(s.end),
                "heading": s.heading,
                "color": list(s.color),
                "line_width": s.line_width,
                "turtle": s.turtle_id,
            }
            for s in result.segments
        ],
        "bounds": {"x": b.x, "y": b.y, "width": b.width, "height": b.height},
        "initial_states": {
            tid: _state_to_dict(st) for tid, st in result.initial_states.items()
        },
        "final_states": {
            tid: _state_to_dict(st) for tid, st in result.final_states.items()
        },
        "turtle_order": list(result.turtle_order),
    }


# -------------------------
# Random script generator
# -------------------------


def _random_color(rng: random.Random) -> str:
    return " ".join(str(rng.randint(0, 255)) for _ in range(3))


def generate_random_script(seed: int | None = None) -> str:
    rng = random.Random(seed)

    sides = rng.choice([3, 4, 5, 6, 8])
    turn = rng.choice([5, 9, 10, 12, 15, 20])
    rounds = rng.randint(6, 24)
    step = rng.choice([20, 30, 40, 60])

    lines = ["CLEAR"]
    use_procedure = rng.random() < 0.5
    if use_procedure:
        lines += [
            "TO POLYGON :SIDES :SIZE",
            "    IFELSE LESS :SIDES 3 [ ] [",
            '        MAKE "TURN QUOTIENT 360 :SIDES',
            "        REPEAT :SIDES [",
            "            FORWARD :SIZE",
            "            RIGHT :TURN",
            "        ]",
            "    ]",
            "END",
        ]

    lines.append(f'MAKE "STEP {step}')
    lines.append(f"REPEAT {rounds} [")
    for _ in range(rng.randint(1, 3)):
        lines.append(f"    COLOR {_random_color(rng)}")
        if use_procedure:
            lines.append(f"    POLYGON {sides} :STEP")
        else:
            lines.append(f"    REPEAT {sides} [ FORWARD :STEP RIGHT {360 / sides:g} ]")
        lines.append(f"    RIGHT {turn}")
        if rng.random() < 0.5:
            lines.append(f'    MAKE "STEP SUM :STEP {rng.choice([0.5, 1, 2])}')
    lines.append("]")

    script = "\n".join(lines) + "\n"
    # Internal sanity check: a generated script must always run cleanly.
    run(script, seed=seed)
    return script


# -------------------------
# CLI / Help
# -------------------------

HELP_EPILOG = r"""
LANGUAGE

Scripts are whitespace-separated words; "[" and "]" always stand alone.
Keywords are case-insensitive. Numbers may be literals, :VARIABLES or prefix
expressions, e.g.  FORWARD SUM :LEN PRODUCT 2 3

Commands

  FORWARD/FD n, BACK/BK n      move; draws a segment while the pen is down
  RIGHT/RT a, LEFT/LT a        turn (RIGHT decreases the heading)
  SETHEADING a                 absolute heading; 0 points up (+Y)
  PENUP/PU, PENDOWN/PD         lift / lower the pen
  HOME                         back to (0,0) heading 0
  SETXY x y                    jump without drawing
  COLOR r g b                  pen colour, each channel 0..255
  CLEAR                        erase the drawing, send every turtle home
  TURTLE id                    switch to (and create) turtle id
  MAKE "name value             assign a variable
  REPEAT n [ ... ]             run the block n times
  IF c [ ... ] [ ... ]         else-block optional; c is true when non-zero
  IFELSE c [ ... ] [ ... ]
  TO NAME :a :b ... END        define a procedure, call as  NAME 1 2

Operators

  SUM DIFFERENCE PRODUCT QUOTIENT REMAINDER MIN MAX POWER   (two operands)
  LESS GREATER EQUAL NOTEQUAL                               (1 or 0)
  ABS NEG                                                   (one operand)
  RANDOM n                                                  [0, n)
  PI E                                                      constants

  QUOTIENT and REMAINDER return 0 when dividing by zero.
  EQUAL / NOTEQUAL compare with a tolerance of 0.0001.

Scoping

  Each procedure call gets its own scope holding its parameters. Reads look
  from the innermost scope outwards. MAKE writes to the innermost scope that
  already has the name, otherwise to the global scope.
  Procedure calls may nest at most 32 deep.

RENDER OPTIONS (render --options file.json)

  {"svg": {"margin": 10, "precision": 3, "flip_y": true,
           "width": 800, "height": 800, "background": "white",
           "show_turtles": false, "title": "My drawing", "line_scale": 1}}

  Command-line flags override values from the file.

RANDOM SCRIPT GENERATION (random)

  python logo_interpreter.py random out.logo --seed 123
"""


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="logo_interpreter.py",
        description="Logo turtle-graphics interpreter that outputs SVG.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_EPILOG,
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    pr = sub.add_parser(
        "render",
        help="Run a Logo script and write the drawing to an SVG file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pr.add_argument("script", help="Path to the Logo script.")
    pr.add_argument("output", help="Path to write the SVG output.")
    pr.add_argument("--options", default=None, help="JSON file with render options.")
    pr.add_argument("--margin", type=float, default=None, help="Margin around bounds.")
    pr.add_argument(
        "--precision", type=int, default=None, help="Coordinate decimals (0..10)."
    )
    pr.add_argument(
        "--no-flip-y",
        action="store_true",
        help="Keep SVG's downward Y axis instead of Logo's upward one.",
    )
    pr.add_argument("--background", default=None, help="Background colour.")
    pr.add_argument(
        "--show-turtles",
        action="store_true",
        help="Draw a marker at each turtle's final position.",
    )
    pr.add_argument(
        "--seed", type=int, default=None, help="Seed for repeatable RANDOM."
    )

    pc = sub.add_parser(
        "check",
        help="Run a Logo script and print a brief summary.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pc.add_argument("script", help="Path to the Logo script.")
    pc.add_argument(
        "--seed", type=int, default=None, help="Seed for repeatable RANDOM."
    )

    pt = sub.add_parser(
        "trace",
        help="Run a Logo script and dump the full result as JSON.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pt.add_argument("script", help="Path to the Logo script.")
    pt.add_argument("output", help="Path to write the JSON trace.")
    pt.add_argument(
        "--seed", type=int, default=None, help="Seed for repeatable RANDOM."
    )

    pg = sub.add_parser(
        "random",
        help="Generate a random Logo script for experimentation.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pg.add_argument("output", help="Where to write the generated script.")
    pg.add_argument(
        "--seed", type=int, default=None, help="Seed for repeatable randomness."
    )

    return p


# -------------------------
# Commands
# -------------------------


def cmd_render(args: argparse.Namespace) -> None:
    options = (
        parse_svg_options(load_json(args.options)) if args.options else SvgOptions()
    )
    overrides: dict[str, Any] = {}
    if args.margin is not None:
        _require(args.margin >= 0, "--margin must be >= 0")
        overrides["margin"] = args.margin
    if args.precision is not None:
        _require(0 <= args.precision <= 10, "--precision must be between 0 and 10")
        overrides["precision"] = args.precision
    if args.no_flip_y:
        overrides["flip_y"] = False
    if args.background is not None:
        overrides["background"] = args.background
    if args.show_turtles:
        overrides["show_turtles"] = True
    if options.title is None:
        overrides["title"] = os.path.splitext(os.path.basename(args.script))[0]
    options = replace(options, **overrides)

    result = run(load_script(args.script), seed=args.seed)
    write_svg(result, out_path=args.output, options=options)


def cmd_check(script_path: str, seed: int | None) -> None:
    script = load_script(script_path)
    tokens = tokenize(script)
    residual, procedures = extract_procedures(tokens)
    result = run(script, seed=seed)
    b = result.bounds

    print(f"tokens: {len(tokens)} ({len(residual)} outside procedures)")
    print(f"procedures: {', '.join(sorted(procedures)) or '-'}")
    print(f"segments: {len(result.segments)}")
    print(f"turtles: {' '.join(result.turtle_order)}")
    print(
        f"bounds: x={_fmt(b.x, 3)} y={_fmt(b.y, 3)} "
        f"w={_fmt(b.width, 3)} h={_fmt(b.height, 3)}"
    )


def cmd_trace(script_path: str, output_path: str, seed: int | None) -> None:
    result = run(load_script(script_path), seed=seed)
    dump_json(result_to_dict(result), output_path)


def cmd_random(output_path: str, seed: int | None) -> None:
    script = generate_random_script(seed)
    _ensure_parent_dir(output_path)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(script)


def main(argv: list[str] | None = None) -> int:
    ap = build_argparser()
    args = ap.parse_args(argv)

    try:
        if args.cmd == "render":
            cmd_render(args)
        elif args.cmd == "check":
            cmd_check(args.script, args.seed)
        elif args.cmd == "trace":
            cmd_trace(args.script, args.output, args.seed)
        elif args.cmd == "random":
            cmd_random(args.output, args.seed)
        else:
            raise AssertionError("unreachable")
    except LogoError as e:
        print(f"Script error: {e}", file=sys.stderr)
        return 1
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"File error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

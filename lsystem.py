"""lsystem.py

Bracketed L-systems: the instruction model, the grammar parser and the
rewriting engine.

Grammar text looks like::

    F;              <- axiom, terminated by ';'
    F -> G[+F]F;    <- rules, each terminated by ';'
    G -> GG;

Every character other than ``[``, ``]``, whitespace and ``;`` is a literal
symbol. Whitespace between tokens is ignored and never reaches the
instruction tree.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Separators the grammar skips between tokens.
_WHITESPACE = " \n\t"
_RESERVED = "[];"


# -------------------------
# Errors
# -------------------------


class ParseError(ValueError):
    """Grammar text could not be matched at ``offset``."""

    def __init__(self, message: str, text: str, offset: int) -> None:
        self.message = message
        self.text = text
        self.offset = offset
        rest = text[offset : offset + 20]
        where = repr(rest) if rest else "end of input"
        super().__init__(f"{message} at offset {offset} ({where})")


# -------------------------
# Instruction model
# -------------------------


@dataclass(frozen=True)
class Symbol:
    char: str

    def __post_init__(self) -> None:
        if len(self.char) != 1:
            raise ValueError(f"symbol must be a single character, got {self.char!r}")

    def __str__(self) -> str:
        return self.char


@dataclass(frozen=True)
class Branch:
    """A bracketed sub-path. Accepts any iterable, stores a tuple."""

    instructions: tuple[Instruction, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "instructions", tuple(self.instructions))

    def __str__(self) -> str:
        return f"[{format_instructions(self.instructions)}]"


Instruction = Symbol | Branch
Instructions = list[Instruction]


@dataclass(frozen=True)
class Rule:
    predecessor: Symbol
    successor: tuple[Instruction, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "successor", tuple(self.successor))

    def __str__(self) -> str:
        return f"{self.predecessor}->{format_instructions(self.successor)}"


def format_instructions(instructions: Iterable[Instruction]) -> str:
    """Render instructions back to grammar text, without whitespace."""
    return "".join(str(instr) for instr in instructions)


# -------------------------
# Grammar parser
# -------------------------


def _is_symbol(ch: str) -> bool:
    return ch not in _RESERVED and not ch.isspace()


def _skip_ws(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in _WHITESPACE:
        pos += 1
    return pos


def _simple_run(text: str, pos: int) -> tuple[Instructions, int]:
    end = pos
    while end < len(text) and _is_symbol(text[end]):
        end += 1
    return [Symbol(ch) for ch in text[pos:end]], end


def _branch(text: str, pos: int) -> tuple[Branch, int] | None:
    """Match ``[ instructions ]`` at ``pos``; None if the bracket never closes."""
    if pos >= len(text) or text[pos] != "[":
        return None
    inner, end = _instructions(text, pos + 1)
    if end >= len(text) or text[end] != "]":
        return None
    return Branch(inner), end + 1


def _instructions(text: str, pos: int) -> tuple[Instructions, int]:
    parsed: Instructions = []
    pos = _skip_ws(text, pos)

    while pos < len(text):
        ch = text[pos]
        if _is_symbol(ch):
            run, pos = _simple_run(text, pos)
            parsed.extend(run)
        elif ch == "[":
            matched = _branch(text, pos)
            if matched is None:
                # Unbalanced: leave the stray bracket for the caller.
                break
            branch, pos = matched
            parsed.append(branch)
        elif ch in _WHITESPACE:
            pos = _skip_ws(text, pos)
        else:
            break

    return parsed, pos


def _rule(text: str, pos: int) -> tuple[Rule, int]:
    pos = _skip_ws(text, pos)
    if pos >= len(text) or not _is_symbol(text[pos]):
        raise ParseError("rule must start with a single symbol", text, pos)
    predecessor = Symbol(text[pos])

    pos = _skip_ws(text, pos + 1)
    if not text.startswith("->", pos):
        raise ParseError(f"expected '->' after rule symbol {predecessor}", text, pos)

    successor, pos = _instructions(text, pos + 2)
    return Rule(predecessor, tuple(successor)), pos


def _terminator(text: str, pos: int, what: str) -> int:
    pos = _skip_ws(text, pos)
    if pos >= len(text) or text[pos] != ";":
        raise ParseError(f"unterminated {what}, expected ';'", text, pos)
    return pos + 1


def parse_instructions(text: str) -> tuple[Instructions, str]:
    """Parse as many instructions as possible; return them and the remainder.

    Never fails. Parsing stops at a ``;``, at a stray ``]`` or at a ``[``
    that is never balanced, which is left at the start of the remainder.
    """
    parsed, pos = _instructions(text, 0)
    return parsed, text[pos:]


def parse_rule(text: str) -> tuple[Rule, str]:
    """Parse ``symbol -> instructions`` (without the ``;``)."""
    rule, pos = _rule(text, 0)
    return rule, text[pos:]


def parse_lsystem(text: str, *, strict: bool = False) -> LSystem:
    """Parse ``axiom; rule; rule; ...`` into an :class:`LSystem`.

    Rule collection stops at the first chunk that is not a well-formed,
    ``;``-terminated rule and the rest of the text is discarded. Pass
    ``strict=True`` to raise :class:`ParseError` for such trailing text
    instead.
    """
    axiom, pos = _instructions(text, 0)
    pos = _terminator(text, pos, "axiom")

    rules: list[Rule] = []
    while True:
        try:
            rule, end = _rule(text, pos)
            end = _terminator(text, end, f"rule for {rule.predecessor}")
        except ParseError:
            if _skip_ws(text, pos) == len(text):
                break
            if strict:
                raise
            logger.debug(
                "Discarding unparsed grammar text at offset %d: %r",
                pos,
                text[pos : pos + 40],
            )
            break
        rules.append(rule)
        pos = end

    logger.debug("Parsed axiom of %d instructions and %d rules", len(axiom), len(rules))
    return LSystem.from_axiom(axiom, rules)


# -------------------------
# Rewriting engine
# -------------------------


def apply_rules(instruction: Instruction, rules: Sequence[Rule]) -> Instructions:
    """Rewrite one instruction.

    The first rule whose predecessor equals the symbol wins. Symbols with no
    rule map to themselves. Branches are never matched; their children are
    rewritten and stay inside the same branch.
    """
    if isinstance(instruction, Branch):
        inner = [
            out for child in instruction.instructions for out in apply_rules(child, rules)
        ]
        return [Branch(inner)]

    for rule in rules:
        if rule.predecessor == instruction:
            return list(rule.successor)
    return [instruction]


def _rewrite(word: Iterable[Instruction], rules: Sequence[Rule]) -> Instructions:
    return [out for instr in word for out in apply_rules(instr, rules)]


class LSystem:
    """An axiom, its rules and the current word.

    An LSystem is an infinite iterator over its generations: every ``next()``
    returns a copy of the current word and then rewrites it. Bound it with
    ``itertools.islice``; call :meth:`reset` to start over from the axiom.
    """

    def __init__(self, axiom: Iterable[Instruction], rules: Iterable[Rule]) -> None:
        self._axiom: tuple[Instruction, ...] = tuple(axiom)
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._word: Instructions = list(self._axiom)
        self.generation = 0

    @classmethod
    def from_axiom(cls, axiom: Iterable[Instruction], rules: Iterable[Rule]) -> LSystem:
        return cls(axiom, rules)

    @classmethod
    def from_str(cls, text: str, *, strict: bool = False) -> LSystem:
        return parse_lsystem(text, strict=strict)

    @property
    def axiom(self) -> tuple[Instruction, ...]:
        return self._axiom

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def word(self) -> Instructions:
        return list(self._word)

    def step(self) -> None:
        self._word = _rewrite(self._word, self._rules)
        self.generation += 1
        logger.debug(
            "Generation %d has %d top-level instructions",
            self.generation,
            len(self._word),
        )

    def reset(self) -> None:
        self._word = list(self._axiom)
        self.generation = 0

    def nth(self, n: int) -> Instructions:
        """Generation ``n`` computed from the axiom; the current word is untouched."""
        if n < 0:
            raise ValueError("generation must be >= 0")
        word: Instructions = list(self._axiom)
        for _ in range(n):
            word = _rewrite(word, self._rules)
        return word

    def __iter__(self) -> Iterator[Instructions]:
        return self

    def __next__(self) -> Instructions:
        current = list(self._word)
        self.step()
        return current

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LSystem):
            return NotImplemented
        return (
            self._axiom == other._axiom
            and self._word == other._word
            and self._rules == other._rules
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        rules = "; ".join(str(rule) for rule in self._rules)
        return (
            f"LSystem(axiom={format_instructions(self._axiom)!r}, "
            f"rules={rules!r}, generation={self.generation})"
        )

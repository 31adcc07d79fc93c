"""
Template rendering for steam-library-export.

A template is plain text with ``${ expression }`` slots. Each slot is an
expression in Jinja2 syntax, evaluated on its own in a sandbox that sees only
the bindings passed in the render context:

    title: "[[${ game.title }]]"
    developers:
    ${ store.developers | map('wikilink') | join('\\n') }
    status: ${ 'Playing' if playtime > 2 else 'Backlog' }

Rules:
- ``None`` and undefined values render as the empty string.
- Attribute access on a missing value stays undefined, so
  ``store.metacritic.score`` is empty for a game without store data.
- Unknown top-level names, calls to anything but a context callable, and
  private attribute access are errors.
- A slot that fails is left in the output exactly as written and reported
  as a ``SlotError``; the rest of the template still renders.
- Slots are evaluated once, in order; substituted text is never rescanned.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from jinja2 import ChainableUndefined, Undefined, meta, nodes
from jinja2.exceptions import SecurityError, UndefinedError
from jinja2.sandbox import ImmutableSandboxedEnvironment

logger = logging.getLogger(__name__)

SLOT_OPEN = "${"
SLOT_CLOSE = "}"


@dataclass(frozen=True)
class Literal:
    """Literal text between slots."""

    text: str


@dataclass(frozen=True)
class Slot:
    """An expression slot."""

    raw: str  # including delimiters, as written
    expression: str
    position: int  # offset of the opening delimiter in the template


@dataclass(frozen=True)
class CompiledTemplate:
    """A template split into literal and slot segments."""

    source: str
    segments: tuple[Literal | Slot, ...]

    @property
    def slots(self) -> list[Slot]:
        return [s for s in self.segments if isinstance(s, Slot)]


@dataclass
class SlotError:
    """Diagnostic for a slot that could not be evaluated."""

    expression: str
    message: str
    position: int
    line: int

    def __str__(self) -> str:
        return f"line {self.line}: ${{{self.expression}}}: {self.message}"


@dataclass
class RenderResult:
    """Rendered text plus diagnostics for any failed slots."""

    text: str
    errors: list[SlotError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _find_slot_end(text: str, start: int) -> int:
    """
    Return the index of the ``}`` closing the slot whose body starts at ``start``.

    Nested braces and braces inside quoted strings do not close the slot.
    Returns -1 when the slot is never closed.
    """
    depth = 0
    quote = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 1
            elif ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            if depth == 0:
                return i
            depth -= 1
        i += 1
    return -1


def parse_template(text: str) -> CompiledTemplate:
    """Split template text into literal and slot segments, left to right."""
    segments: list[Literal | Slot] = []
    pos = 0

    while True:
        start = text.find(SLOT_OPEN, pos)
        if start == -1:
            break
        body_start = start + len(SLOT_OPEN)
        end = _find_slot_end(text, body_start)
        if end == -1:
            # Unterminated slot: keep the rest as literal text
            break

        if start > pos:
            segments.append(Literal(text[pos:start]))
        segments.append(
            Slot(
                raw=text[start : end + len(SLOT_CLOSE)],
                expression=text[body_start:end],
                position=start,
            )
        )
        pos = end + len(SLOT_CLOSE)

    if pos < len(text):
        segments.append(Literal(text[pos:]))

    return CompiledTemplate(source=text, segments=tuple(segments))


def to_text(value: Any) -> str:
    """Convert a slot value to its textual form."""
    if value is None or isinstance(value, Undefined):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(v) for v in value)
    return str(value)


@dataclass(frozen=True)
class _Expression:
    evaluate: Callable[..., Any]
    names: frozenset[str]


class TemplateEngine:
    """
    Evaluates template slots in a Jinja2 sandbox.

    The environment has no globals: every name an expression can see comes
    from the context passed to ``render``. Collections in the context cannot
    be mutated from a template.
    """

    def __init__(self, filters: Mapping[str, Callable[..., Any]] | None = None):
        """
        Initialize the engine.

        Args:
            filters: Extra filters available as ``value | name`` in slots
        """
        self.env = ImmutableSandboxedEnvironment(
            undefined=ChainableUndefined,
            autoescape=False,
        )
        self.env.globals.clear()
        if filters:
            self.env.filters.update(filters)
        self._compiled: dict[str, _Expression] = {}

    def compile_expression(self, expression: str) -> _Expression:
        """Compile one slot expression, raising on syntax or policy errors."""
        source = expression.strip()
        cached = self._compiled.get(source)
        if cached is not None:
            return cached

        if not source:
            raise SecurityError("empty expression")

        evaluate = self.env.compile_expression(source, undefined_to_none=False)
        tree = self.env.parse(f"{{{{ {source} }}}}")
        _check_policy(tree)

        compiled = _Expression(
            evaluate=evaluate,
            names=frozenset(meta.find_undeclared_variables(tree)),
        )
        self._compiled[source] = compiled
        return compiled

    def validate(self, template: str | CompiledTemplate) -> list[SlotError]:
        """
        Compile every slot without evaluating it.

        Catches syntax and policy errors up front; unknown names only show
        up at render time because they depend on the context.
        """
        if isinstance(template, str):
            template = parse_template(template)

        errors = []
        for slot in template.slots:
            try:
                self.compile_expression(slot.expression)
            except Exception as e:
                errors.append(
                    SlotError(
                        expression=slot.expression,
                        message=f"{type(e).__name__}: {e}",
                        position=slot.position,
                        line=template.source.count("\n", 0, slot.position) + 1,
                    )
                )
        return errors

    def evaluate(self, expression: str, context: Mapping[str, Any]) -> Any:
        """Evaluate one expression against ``context``."""
        compiled = self.compile_expression(expression)
        missing = sorted(compiled.names - set(context))
        if missing:
            raise UndefinedError(f"'{missing[0]}' is undefined")
        return compiled.evaluate(**context)

    def render(
        self,
        template: str | CompiledTemplate,
        context: Mapping[str, Any],
    ) -> RenderResult:
        """
        Render a template against a context.

        Args:
            template: Template text or a template from ``parse_template``
            context: Names visible to slot expressions

        Returns:
            RenderResult with the text and any slot errors
        """
        if isinstance(template, str):
            template = parse_template(template)

        parts: list[str] = []
        errors: list[SlotError] = []

        for segment in template.segments:
            if isinstance(segment, Literal):
                parts.append(segment.text)
                continue

            try:
                value = self.evaluate(segment.expression, context)
                parts.append(to_text(value))
            except Exception as e:
                line = template.source.count("\n", 0, segment.position) + 1
                error = SlotError(
                    expression=segment.expression,
                    message=f"{type(e).__name__}: {e}",
                    position=segment.position,
                    line=line,
                )
                logger.warning(f"Template error evaluating {segment.raw!r}: {error.message}")
                errors.append(error)
                parts.append(segment.raw)

        return RenderResult(text="".join(parts), errors=errors)


def _check_policy(tree: nodes.Template) -> None:
    """
    Reject constructs the sandbox would otherwise allow.

    Only context callables may be called (no method calls), and private
    attributes are off limits.
    """
    for node in tree.find_all(nodes.Call):
        if not isinstance(node.node, nodes.Name):
            raise SecurityError("only helper functions from the context may be called")

    for node in tree.find_all(nodes.Getattr):
        if node.attr.startswith("_"):
            raise SecurityError(f"access to private attribute {node.attr!r} is not allowed")

    for node in tree.find_all(nodes.Getitem):
        arg = node.arg
        if isinstance(arg, nodes.Const) and isinstance(arg.value, str) and arg.value.startswith("_"):
            raise SecurityError(f"access to private key {arg.value!r} is not allowed")

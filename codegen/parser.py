"""
codegen/parser.py

Turns a raw model response into a validated, canonical program.

Steps:
    1. Extract the code section (``---CODE---`` ... ``---EXPLANATION---``
       or the bare response, depending on the protocol).
    2. Parse it as Python and reject disallowed constructs.
    3. Rewrite it into a single ``render`` function taking the fixed
       parameter list and ending with ``surface.render_all()``.
"""

from __future__ import annotations

import ast
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

from errors import MalformedResponse, UnsafeOrEmptyProgram
from settings import get_settings
from utils import strip_markdown_fences

log = logging.getLogger(__name__)

CODE_MARKER = "---CODE---"
EXPLANATION_MARKER = "---EXPLANATION---"

PROTOCOL_MARKERS = "markers"
PROTOCOL_BARE = "bare"
PROTOCOLS = (PROTOCOL_MARKERS, PROTOCOL_BARE)

ENTRY_POINT = "render"
CANONICAL_PARAMETERS: Tuple[str, ...] = (
    "surface", "width", "height", "draw", "schedule_frame", "cancel_frame",
)
FLUSH_METHOD = "render_all"

# Names a generated program may not reference at all
FORBIDDEN_NAMES = frozenset([
    "eval", "exec", "compile", "open", "getattr", "setattr", "delattr",
    "globals", "locals", "vars", "input", "breakpoint", "help", "__import__",
    "memoryview", "exit", "quit",
])

_SECTION_RE = re.compile(
    re.escape(CODE_MARKER) + r"(.*?)" + re.escape(EXPLANATION_MARKER) + r"(.*)",
    re.DOTALL,
)


@dataclass(frozen=True)
class GeneratedProgram:
    """Canonical executable form of a model response.

    ``source`` defines exactly one function, ``entry_point``, whose
    parameters are ``parameters`` in that order.
    """
    source: str
    parameters: Tuple[str, ...] = CANONICAL_PARAMETERS
    entry_point: str = ENTRY_POINT
    explanation: str = ""


def extract_code_section(raw: str, protocol: str = PROTOCOL_MARKERS) -> Tuple[str, str]:
    """Pull the program text (and explanation) out of a raw response.

    Returns:
        (code, explanation)

    Raises:
        MalformedResponse: If the markers are missing or the code is blank.
    """
    text = raw or ""
    if protocol == PROTOCOL_MARKERS:
        match = _SECTION_RE.search(text)
        if match is None:
            raise MalformedResponse(
                f"Response is missing the {CODE_MARKER} / {EXPLANATION_MARKER} section")
        code, explanation = match.group(1), match.group(2).strip()
    elif protocol == PROTOCOL_BARE:
        code, explanation = text, ""
    else:
        raise ValueError(f"Unknown response protocol: {protocol!r}")

    code = strip_markdown_fences(code)
    if not code.strip():
        raise MalformedResponse("Response contains an empty code section")
    return code, explanation


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__") and len(name) > 4


def _is_noop_statement(node: ast.stmt) -> bool:
    """A statement that does nothing when executed."""
    if isinstance(node, ast.Pass):
        return True
    if isinstance(node, ast.Expr) and isinstance(node.value, ast.Constant):
        # Docstrings, bare ``...`` and other literals
        return True
    return False


def _body_is_empty(body: List[ast.stmt]) -> bool:
    return all(_is_noop_statement(s) for s in body)


def _empty_string_names(tree: ast.AST) -> Set[str]:
    """Names whose every assignment in the program is the empty string."""
    empty: Set[str] = set()
    other: Set[str] = set()
    for node in ast.walk(tree):
        targets: List[ast.expr] = []
        value: Optional[ast.expr] = None
        if isinstance(node, ast.Assign):
            targets, value = node.targets, node.value
        elif isinstance(node, (ast.AnnAssign, ast.AugAssign)):
            targets, value = [node.target], node.value
        elif isinstance(node, ast.NamedExpr):
            targets, value = [node.target], node.value
        for t in targets:
            if not isinstance(t, ast.Name):
                continue
            if isinstance(value, ast.Constant) and value.value == "" and not isinstance(node, ast.AugAssign):
                empty.add(t.id)
            else:
                other.add(t.id)
    return empty - other


class _SafetyVisitor(ast.NodeVisitor):
    """Collects the first disallowed construct in a program."""

    def __init__(self, empty_names: Set[str]):
        self.empty_names = empty_names
        self.problem: Optional[str] = None

    def _flag(self, node: ast.AST, message: str) -> None:
        if self.problem is None:
            line = getattr(node, "lineno", None)
            self.problem = f"{message} (line {line})" if line else message

    def visit_Import(self, node):
        self._flag(node, "Imports are not allowed")

    def visit_ImportFrom(self, node):
        self._flag(node, "Imports are not allowed")

    def visit_Global(self, node):
        self._flag(node, "'global' is not allowed")

    def visit_Nonlocal(self, node):
        self._flag(node, "'nonlocal' is not allowed")

    def visit_Name(self, node):
        if node.id in FORBIDDEN_NAMES or _is_dunder(node.id):
            self._flag(node, f"Use of '{node.id}' is not allowed")
        self.generic_visit(node)

    def visit_Attribute(self, node):
        if node.attr.startswith("_"):
            self._flag(node, f"Access to private attribute '{node.attr}' is not allowed")
        self.generic_visit(node)

    def visit_Call(self, node):
        func = node.func
        if isinstance(func, ast.Constant) and isinstance(func.value, str):
            if func.value == "":
                self._flag(node, "Calls an empty string as a function")
            else:
                self._flag(node, "Calls a string literal as a function")
        elif isinstance(func, ast.Name) and func.id in self.empty_names:
            self._flag(node, f"Calls '{func.id}', which is an empty string")
        self.generic_visit(node)

    def visit_FunctionDef(self, node):
        if _body_is_empty(node.body):
            self._flag(node, f"Function '{node.name}' has an empty body")
        self.generic_visit(node)

    def visit_AsyncFunctionDef(self, node):
        self._flag(node, "Async functions are not supported")

    def visit_Await(self, node):
        self._flag(node, "'await' is not supported")


def validate_tree(tree: ast.Module) -> None:
    """Reject programs with nothing to run or with disallowed constructs.

    Raises:
        UnsafeOrEmptyProgram: Describing the first problem found.
    """
    if _body_is_empty(tree.body):
        raise UnsafeOrEmptyProgram("Program has nothing to execute")
    visitor = _SafetyVisitor(_empty_string_names(tree))
    visitor.visit(tree)
    if visitor.problem:
        raise UnsafeOrEmptyProgram(visitor.problem)


# ---------------------------------------------------------------------------
# Canonicalization
# ---------------------------------------------------------------------------

def _canonical_arguments() -> ast.arguments:
    return ast.arguments(
        posonlyargs=[],
        args=[ast.arg(arg=name) for name in CANONICAL_PARAMETERS],
        vararg=None,
        kwonlyargs=[],
        kw_defaults=[],
        kwarg=None,
        defaults=[],
    )


def _is_flush_call(stmt: ast.stmt) -> bool:
    """Check for ``surface.render_all()`` as a statement."""
    if not isinstance(stmt, ast.Expr) or not isinstance(stmt.value, ast.Call):
        return False
    func = stmt.value.func
    return (
        isinstance(func, ast.Attribute)
        and func.attr == FLUSH_METHOD
        and isinstance(func.value, ast.Name)
        and func.value.id == CANONICAL_PARAMETERS[0]
    )


def _flush_statement() -> ast.stmt:
    return ast.Expr(value=ast.Call(
        func=ast.Attribute(
            value=ast.Name(id=CANONICAL_PARAMETERS[0], ctx=ast.Load()),
            attr=FLUSH_METHOD,
            ctx=ast.Load(),
        ),
        args=[],
        keywords=[],
    ))


def _ensure_trailing_flush(body: List[ast.stmt]) -> List[ast.stmt]:
    """Append ``surface.render_all()`` unless the body already ends with it."""
    body = list(body)
    if isinstance(body[-1], ast.Return):
        if len(body) >= 2 and _is_flush_call(body[-2]):
            return body
        return body[:-1] + [_flush_statement(), body[-1]]
    if _is_flush_call(body[-1]):
        return body
    return body + [_flush_statement()]


def _strip_docstring(body: List[ast.stmt]) -> List[ast.stmt]:
    if body and isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant) \
            and isinstance(body[0].value.value, str):
        return body[1:]
    return body


def _simple_positional_params(fn: ast.FunctionDef) -> Optional[List[str]]:
    """Return plain positional parameter names, or None if the signature is exotic."""
    a = fn.args
    if a.posonlyargs or a.vararg or a.kwonlyargs or a.kwarg:
        return None
    return [p.arg for p in a.args]


def _render_function(body: List[ast.stmt]) -> ast.FunctionDef:
    kwargs = {}
    if "type_params" in ast.FunctionDef._fields:
        kwargs["type_params"] = []
    return ast.FunctionDef(
        name=ENTRY_POINT,
        args=_canonical_arguments(),
        body=_ensure_trailing_flush(body),
        decorator_list=[],
        returns=None,
        **kwargs,
    )


def _contains_direct_yield(body: List[ast.stmt]) -> bool:
    """Check for yield statements that would turn ``render`` into a generator."""
    stack: List[ast.AST] = list(body)
    while stack:
        node = stack.pop()
        if isinstance(node, (ast.Yield, ast.YieldFrom)):
            return True
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)):
            continue
        stack.extend(ast.iter_child_nodes(node))
    return False


def _entry_call(fn: ast.FunctionDef) -> ast.stmt:
    """Build a call to ``fn`` passing as many canonical arguments as it takes."""
    params = _simple_positional_params(fn)
    if params is None or fn.decorator_list or len(params) > len(CANONICAL_PARAMETERS):
        raise UnsafeOrEmptyProgram(
            f"Function '{fn.name}' must take at most ({', '.join(CANONICAL_PARAMETERS)})")
    return ast.Expr(value=ast.Call(
        func=ast.Name(id=fn.name, ctx=ast.Load()),
        args=[ast.Name(id=p, ctx=ast.Load()) for p in CANONICAL_PARAMETERS[:len(params)]],
        keywords=[],
    ))


_DEFINITION_NODES = (ast.FunctionDef, ast.ClassDef, ast.Assign, ast.AnnAssign)


def canonicalize(tree: ast.Module) -> ast.Module:
    """Rewrite a validated program into a single canonical ``render`` function.

    - A lone function whose parameters are a prefix of the canonical list
      becomes ``render`` with the full list.
    - A program made only of definitions is wrapped into ``render`` followed
      by a call to its ``render`` function (or its last function), passing
      as many canonical arguments as that function takes.
    - Anything else is wrapped whole into ``render``.
    """
    body = _strip_docstring(tree.body)
    functions = [s for s in body if isinstance(s, ast.FunctionDef)]

    lone = functions[0] if len(body) == 1 and len(functions) == 1 else None
    lone_params = _simple_positional_params(lone) if lone is not None else None
    if lone is not None and lone_params is not None and not lone.decorator_list \
            and tuple(lone_params) == CANONICAL_PARAMETERS[:len(lone_params)]:
        render_body = list(lone.body)
    elif functions and all(isinstance(s, _DEFINITION_NODES) for s in body):
        target = next((f for f in functions if f.name == ENTRY_POINT), functions[-1])
        render_body = list(body) + [_entry_call(target)]
    else:
        render_body = list(body)

    if _contains_direct_yield(render_body):
        raise UnsafeOrEmptyProgram("Program must not be a generator")

    module = ast.Module(body=[_render_function(render_body)], type_ignores=[])
    return ast.fix_missing_locations(module)


# ---------------------------------------------------------------------------
# Parser facade
# ---------------------------------------------------------------------------

def _get_protocol() -> str:
    """Get response protocol from settings. Default: "markers"."""
    return get_settings().settings.codegen.response_protocol


def _get_max_chars() -> int:
    """Get maximum program length from settings. Default: 20000 characters."""
    return get_settings().settings.sandbox.max_program_chars


class ResponseParser:
    """Extracts, validates and canonicalizes programs from model responses.

    An explicit ``protocol`` must be one of ``PROTOCOLS``. An unknown value
    read from settings falls back to the marker protocol with a warning.
    """

    def __init__(self, protocol: Optional[str] = None, max_chars: Optional[int] = None):
        if protocol is None:
            protocol = _get_protocol()
            if protocol not in PROTOCOLS:
                log.warning("Unknown response protocol %r in settings, using %r",
                            protocol, PROTOCOL_MARKERS)
                protocol = PROTOCOL_MARKERS
        elif protocol not in PROTOCOLS:
            raise ValueError(f"Unknown response protocol: {protocol!r}")
        self.protocol = protocol
        self.max_chars = max_chars if max_chars is not None else _get_max_chars()

    def parse(self, raw: str) -> GeneratedProgram:
        """Produce a canonical program from a raw response.

        Raises:
            MalformedResponse: Missing/empty code section, invalid Python, or
                code nested too deeply to analyse.
            UnsafeOrEmptyProgram: Disallowed constructs or nothing to run.
        """
        code, explanation = extract_code_section(raw, self.protocol)
        if self.max_chars and len(code) > self.max_chars:
            raise UnsafeOrEmptyProgram(
                f"Program is {len(code)} characters long (limit {self.max_chars})")

        try:
            source = self._build(code)
        except (RecursionError, MemoryError) as e:
            raise MalformedResponse("Generated code is nested too deeply to analyse") from e
        log.debug("Canonical program (%d chars)", len(source))
        return GeneratedProgram(source=source, explanation=explanation)

    def _build(self, code: str) -> str:
        try:
            tree = ast.parse(code, filename="<generated>", mode="exec")
        except SyntaxError as e:
            raise MalformedResponse(f"Generated code is not valid Python: {e.msg} (line {e.lineno})") from e

        validate_tree(tree)
        canonical = canonicalize(tree)

        try:
            compile(canonical, "<generated>", "exec")
        except (SyntaxError, ValueError) as e:
            raise MalformedResponse(f"Generated code cannot be compiled: {e}") from e

        return ast.unparse(canonical)

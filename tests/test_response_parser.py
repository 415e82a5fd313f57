"""Tests for response extraction, validation and canonicalization."""
from __future__ import annotations

import ast

import pytest

from codegen.parser import (
    CANONICAL_PARAMETERS,
    PROTOCOL_BARE,
    ResponseParser,
    extract_code_section,
)
from conftest import marker_response
from errors import MalformedResponse, UnsafeOrEmptyProgram


@pytest.fixture()
def parser():
    return ResponseParser(protocol="markers", max_chars=20000)


def _render_def(program) -> ast.FunctionDef:
    tree = ast.parse(program.source)
    assert len(tree.body) == 1
    fn = tree.body[0]
    assert isinstance(fn, ast.FunctionDef)
    return fn


def _ends_with_flush(fn: ast.FunctionDef) -> bool:
    body = fn.body
    last = body[-2] if isinstance(body[-1], ast.Return) else body[-1]
    return ast.unparse(last) == "surface.render_all()"


# ─────────────────────────────────────────────────────────
# Extraction
# ─────────────────────────────────────────────────────────


class TestExtraction:
    def test_missing_markers(self, parser):
        with pytest.raises(MalformedResponse):
            parser.parse("surface.add(draw.Rect(width=10, height=10))")

    def test_empty_code_section(self, parser):
        with pytest.raises(MalformedResponse):
            parser.parse("---CODE---\n   \n---EXPLANATION---\nA red square")

    def test_fences_are_stripped(self, parser):
        raw = marker_response("```python\nsurface.add(draw.Rect(width=10, height=10))\n```")
        program = parser.parse(raw)
        assert "```" not in program.source

    def test_explanation_kept(self, parser):
        program = parser.parse(marker_response("x = 1\nsurface.render_all()", "Sets x."))
        assert program.explanation == "Sets x."

    def test_bare_protocol_uses_whole_response(self):
        code, explanation = extract_code_section("surface.render_all()", PROTOCOL_BARE)
        assert code == "surface.render_all()"
        assert explanation == ""

    def test_syntax_error_is_malformed(self, parser):
        with pytest.raises(MalformedResponse):
            parser.parse(marker_response("def render(surface:\n    pass"))


# ─────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.parametrize("code", [
        "pass",
        '"""only a docstring"""',
        "...",
        "def render(surface, width, height):\n    pass",
    ])
    def test_nothing_to_execute(self, parser, code):
        with pytest.raises(UnsafeOrEmptyProgram):
            parser.parse(marker_response(code))

    def test_calling_empty_string_literal(self, parser):
        with pytest.raises(UnsafeOrEmptyProgram):
            parser.parse(marker_response('""()'))

    def test_calling_name_bound_to_empty_string(self, parser):
        with pytest.raises(UnsafeOrEmptyProgram):
            parser.parse(marker_response('fn = ""\nfn()'))

    def test_name_rebound_to_callable_is_allowed(self, parser):
        code = 'fn = ""\nfn = str\nfn(1)\nsurface.render_all()'
        assert parser.parse(marker_response(code)).source

    @pytest.mark.parametrize("code", [
        "import os",
        "from math import pi",
        "eval('1')",
        "open('x')",
        "getattr(draw, 'Rect')",
        "x = draw.__class__",
        "x = surface._scene",
        "__import__('os')",
        "def f():\n    global y\n    y = 1",
    ])
    def test_disallowed_constructs(self, parser, code):
        with pytest.raises(UnsafeOrEmptyProgram):
            parser.parse(marker_response(code))

    def test_deeply_nested_expression_is_malformed(self, parser):
        with pytest.raises(MalformedResponse):
            parser.parse(marker_response("x = " + "1 + " * 3000 + "1"))

    def test_too_long(self):
        parser = ResponseParser(protocol="markers", max_chars=50)
        with pytest.raises(UnsafeOrEmptyProgram):
            parser.parse(marker_response("x = 1\n" * 40))


# ─────────────────────────────────────────────────────────
# Canonicalization
# ─────────────────────────────────────────────────────────


class TestCanonicalization:
    def test_loose_statements_are_wrapped(self, parser):
        program = parser.parse(marker_response("surface.add(draw.Rect(width=width, height=height))"))
        fn = _render_def(program)
        assert fn.name == "render"
        assert tuple(a.arg for a in fn.args.args) == CANONICAL_PARAMETERS
        assert _ends_with_flush(fn)
        assert program.parameters == CANONICAL_PARAMETERS
        assert program.entry_point == "render"

    def test_prefix_signature_is_extended(self, parser):
        code = "def render(surface, width, height):\n    surface.add(draw.Circle(radius=width / 4))"
        fn = _render_def(parser.parse(marker_response(code)))
        assert tuple(a.arg for a in fn.args.args) == CANONICAL_PARAMETERS
        assert _ends_with_flush(fn)

    def test_existing_flush_not_duplicated(self, parser):
        code = (
            "def render(surface, width, height, draw, schedule_frame, cancel_frame):\n"
            "    surface.add(draw.Rect())\n"
            "    surface.render_all()\n"
        )
        program = parser.parse(marker_response(code))
        assert program.source.count("render_all") == 1

    def test_flush_inserted_before_trailing_return(self, parser):
        code = "def render(surface, width, height):\n    surface.add(draw.Rect())\n    return None"
        fn = _render_def(parser.parse(marker_response(code)))
        assert isinstance(fn.body[-1], ast.Return)
        assert _ends_with_flush(fn)

    def test_other_function_is_nested_and_called(self, parser):
        code = "def chart(canvas, w, h):\n    canvas.add(draw.Rect(width=w, height=h))"
        program = parser.parse(marker_response(code))
        fn = _render_def(program)
        assert isinstance(fn.body[0], ast.FunctionDef)
        assert "chart(surface, width, height)" in program.source

    def test_definitions_call_render(self, parser):
        code = (
            "PAD = 10\n"
            "def helper(x):\n    return x + PAD\n"
            "def render(surface, width, height):\n"
            "    surface.add(draw.Rect(left=helper(0)))\n"
        )
        program = parser.parse(marker_response(code))
        assert "render(surface, width, height)" in program.source

    def test_generator_rejected(self, parser):
        with pytest.raises(UnsafeOrEmptyProgram):
            parser.parse(marker_response("yield 1"))

    def test_source_compiles(self, parser):
        program = parser.parse(marker_response("for i in range(3):\n    surface.add(draw.Rect(left=i))"))
        compile(program.source, "<test>", "exec")


def test_settings_drive_defaults(settings_manager):
    settings_manager.settings.codegen.response_protocol = "bare"
    settings_manager.settings.sandbox.max_program_chars = 123
    parser = ResponseParser()
    assert parser.protocol == "bare"
    assert parser.max_chars == 123


def test_unknown_protocol_in_settings_falls_back(settings_manager):
    settings_manager.settings.codegen.response_protocol = "yaml"
    parser = ResponseParser()
    assert parser.protocol == "markers"
    assert parser.parse(marker_response("surface.render_all()")).source


def test_unknown_explicit_protocol_rejected():
    with pytest.raises(ValueError):
        ResponseParser(protocol="yaml")

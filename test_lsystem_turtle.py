#!/usr/bin/env python3
import io
import json
import math
import os
import tempfile
from contextlib import redirect_stderr
from typing import Any

import pytest

from lsystem import ParseError, format_instructions
from lsystem_turtle import (
    RenderConfig,
    load_json,
    main,
    parse_config,
    parse_turtle,
)
from turtle_graphics import ConfigError

_EXAMPLE_DIR = os.path.join(os.path.dirname(__file__), "example")


def _write_config(tmpdir: str, obj: Any) -> str:
    path = os.path.join(tmpdir, "config.json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f)
    return path


class TestConfigParsing:
    def test_basic_config(self) -> None:
        config = parse_config(
            {
                "grammar": "F;F->F+F;",
                "iterations": 2,
                "turtle": {"angle": 90, "step": 5, "draw_forward": "FG"},
                "svg": {"margin": 5, "precision": 2},
            }
        )
        assert isinstance(config, RenderConfig)
        assert config.iterations == 2
        assert len(config.lsystem.rules) == 1
        assert config.turtle.delta_ang == pytest.approx(math.pi / 2)
        assert config.turtle.stepsize == 5
        assert config.turtle.draw_forward == "FG"
        assert config.turtle.draw_backward == "f"

    def test_turtle_defaults(self) -> None:
        turtle = parse_turtle({})
        assert turtle.delta_ang == pytest.approx(math.pi / 4)
        assert turtle.stepsize == 10
        assert (turtle.forward, turtle.backward) == ("", "")

    def test_missing_grammar(self) -> None:
        with pytest.raises(ConfigError):
            parse_config({"iterations": 1})

    def test_invalid_types(self) -> None:
        with pytest.raises(ConfigError):
            parse_config({"grammar": "F;", "iterations": "1"})
        with pytest.raises(ConfigError):
            parse_config({"grammar": "F;", "turtle": {"angle": True}})
        with pytest.raises(ConfigError):
            parse_config({"grammar": "F;", "turtle": {"draw_forward": 1}})

    def test_step_must_be_positive(self) -> None:
        with pytest.raises(ConfigError):
            parse_config({"grammar": "F;", "turtle": {"step": 0}})

    def test_precision_out_of_range(self) -> None:
        with pytest.raises(ConfigError):
            parse_config({"grammar": "F;", "svg": {"precision": 15}})

    def test_grammar_errors_surface(self) -> None:
        with pytest.raises(ParseError):
            parse_config({"grammar": "F"})
        with pytest.raises(ParseError):
            parse_config({"grammar": "F;F->G;junk", "strict": True})

    def test_malformed_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "bad.json")
            with open(path, "w", encoding="utf-8") as f:
                f.write("{ not valid json }")
            with pytest.raises(ConfigError):
                load_json(path)


class TestCLI:
    def test_expand(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["expand", "F;F->GF;G->F;", "-n", "4"]) == 0
        out = capsys.readouterr().out.split()
        assert out == ["F", "GF", "FGF", "GFFGF"]

    def test_expand_strict(self) -> None:
        with redirect_stderr(io.StringIO()) as err:
            assert main(["expand", "F;F->GF;junk", "--strict"]) == 2
        assert "Grammar error" in err.getvalue()

    def test_expand_lenient(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["expand", "F;F->GF;junk", "-n", "2"]) == 0
        assert capsys.readouterr().out.split() == ["F", "GF"]

    def test_validate_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        koch = os.path.join(_EXAMPLE_DIR, "koch.json")
        assert main(["validate", koch]) == 0
        assert "rules: 1" in capsys.readouterr().out

    def test_validate_no_geometry(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write_config(tmpdir, {"grammar": "X;X->XX;", "iterations": 2})
            with redirect_stderr(io.StringIO()):
                assert main(["validate", path]) == 2

    def test_render_command(self) -> None:
        koch = os.path.join(_EXAMPLE_DIR, "koch.json")
        with tempfile.TemporaryDirectory() as tmpdir:
            out = os.path.join(tmpdir, "out.svg")
            assert main(["render", koch, out]) == 0
            with open(out, encoding="utf-8") as f:
                content = f.read()
        assert "<polyline" in content
        assert "<title>Koch curve</title>" in content

    def test_render_segment_limit(self) -> None:
        koch = os.path.join(_EXAMPLE_DIR, "koch.json")
        with tempfile.TemporaryDirectory() as tmpdir:
            out = os.path.join(tmpdir, "out.svg")
            with redirect_stderr(io.StringIO()) as err:
                assert main(["render", koch, out, "--max-segments", "3"]) == 2
            assert not os.path.exists(out)
        assert "Draw error" in err.getvalue()

    def test_verbose_logging(self) -> None:
        koch = os.path.join(_EXAMPLE_DIR, "koch.json")
        with tempfile.TemporaryDirectory() as tmpdir:
            out = os.path.join(tmpdir, "out.svg")
            with redirect_stderr(io.StringIO()):
                assert main(["--verbose", "--log-json", "render", koch, out]) == 0

    def test_file_not_found_returns_error_code(self) -> None:
        with redirect_stderr(io.StringIO()):
            assert main(["render", "nonexistent_config.json", "out.svg"]) == 2

    def test_invalid_config_returns_error_code(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write_config(tmpdir, {"grammar": "F;", "iterations": "bad"})
            with redirect_stderr(io.StringIO()):
                assert main(["validate", path]) == 2


class TestExampleConfigs:
    """Every example config must parse and render."""

    @pytest.mark.parametrize(
        "filename", ["koch.json", "fractal_plant.json", "fibonacci.json"]
    )
    def test_render_example(self, filename: str) -> None:
        path = os.path.join(_EXAMPLE_DIR, filename)
        with tempfile.TemporaryDirectory() as tmpdir:
            out = os.path.join(tmpdir, "out.svg")
            assert main(["render", path, out]) == 0
            with open(out, encoding="utf-8") as f:
                content = f.read()
        assert "viewBox=" in content
        assert "<polyline" in content

    def test_fibonacci_word(self) -> None:
        cfg = parse_config(load_json(os.path.join(_EXAMPLE_DIR, "fibonacci.json")))
        assert format_instructions(cfg.lsystem.nth(4)) == "FGFGFFGF"

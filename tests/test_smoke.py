"""Tests for cliqueflow package import and basic smoke tests."""

import importlib
import logging
import subprocess
import sys

import pytest


class TestImport:
    """Test that cliqueflow can be imported."""

    def test_version_exists(self) -> None:
        import cliqueflow

        assert isinstance(cliqueflow.__version__, str)
        assert len(cliqueflow.__version__) > 0

    def test_reimport(self) -> None:
        import cliqueflow

        importlib.reload(cliqueflow)
        assert cliqueflow.__version__

    def test_public_names(self) -> None:
        import cliqueflow

        for name in ("MarginCalculator", "BeliefNetwork", "ConditionalTable",
                     "InferenceConfig", "InferenceContext", "InferenceError"):
            assert hasattr(cliqueflow, name), name

    def test_library_logger_is_silent(self) -> None:
        """The package logger carries a NullHandler."""
        import cliqueflow  # noqa: F401

        handlers = logging.getLogger("cliqueflow").handlers
        assert any(isinstance(h, logging.NullHandler) for h in handlers)


class TestCLISmoke:
    """Interpreter-level smoke tests for the cliqueflow package."""

    @pytest.mark.skipif(
        subprocess.run(
            [sys.executable, "-m", "pip", "show", "cliqueflow"],
            capture_output=True,
        ).returncode != 0,
        reason="cliqueflow not installed via pip (run 'pip install -e .')",
    )
    def test_pip_show(self) -> None:
        result = subprocess.run(
            [sys.executable, "-m", "pip", "show", "cliqueflow"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert "cliqueflow" in result.stdout.lower()

    def test_python_c_version(self) -> None:
        """Version string is semver-like."""
        result = subprocess.run(
            [sys.executable, "-c", "import cliqueflow; print(cliqueflow.__version__)"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        parts = result.stdout.strip().split(".")
        assert len(parts) >= 3, f"Version {result.stdout!r} is not semver-like"

    def test_python_c_chain(self) -> None:
        """A two-node model can be built and queried in a fresh interpreter."""
        code = (
            "import numpy as np, cliqueflow as cf\n"
            "bn = cf.BeliefNetwork()\n"
            "bn.add_node('A', np.array([0.5, 0.5]))\n"
            "bn.add_node('B', np.array([[0.8, 0.2], [0.2, 0.8]]), parents=['A'])\n"
            "bn.observe('B', 0)\n"
            "print(round(float(bn.infer('A')[0]), 3))\n"
        )
        result = subprocess.run(
            [sys.executable, "-c", code], capture_output=True, text=True
        )
        assert result.returncode == 0, result.stderr
        assert result.stdout.strip() == "0.8"

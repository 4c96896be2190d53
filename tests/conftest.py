"""
Pytest configuration and shared fixtures for the sumgo test suite.

Every compilation starts a fresh unit, so nothing here needs a wider scope
than the test itself except the immutable sample sources.
"""

import pytest

from sumgo.compiler.config import SumgoConfig, load_config_from_string
from sumgo.compiler.pipeline import compile_source
from tests.test_utils import OPTION_RESULT_ENUMS, SHAPE_ENUM, STATUS_ENUM


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def config():
    """Default configuration."""
    return SumgoConfig()


@pytest.fixture
def strict_config():
    """Guard groups without a fallback are compile errors."""
    return load_config_from_string('[match]\nnon_exhaustive = "error"\n')


# =============================================================================
# Sources
# =============================================================================

@pytest.fixture(scope="session")
def status_enum():
    return STATUS_ENUM


@pytest.fixture(scope="session")
def shape_enum():
    return SHAPE_ENUM


@pytest.fixture(scope="session")
def option_result_enums():
    return OPTION_RESULT_ENUMS


# =============================================================================
# Compilation
# =============================================================================

@pytest.fixture
def compile_sgo(config):
    """
    Compile a source string with the default (or a given) configuration.

    Usage:
        def test_something(compile_sgo):
            result = compile_sgo("package main\\n...")
            assert result.ok
    """
    def _compile(source, cfg=None, filename="test.sgo"):
        return compile_source(source, filename, cfg or config)
    return _compile

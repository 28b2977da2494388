"""Pytest configuration for the ftlcatalog test suite.

Single Source of Truth for Hypothesis max_examples:
- dev: Local development with 500 examples (thorough property testing)
- ci: GitHub Actions with 50 examples (fast CI feedback)
- verbose: Debug mode with progress output (100 examples)

Profile auto-detection:
- CI=true environment variable -> "ci" profile (GitHub Actions sets this)
- HYPOTHESIS_PROFILE env var -> explicit override
- Otherwise -> "dev" profile (local development)

Override manually: HYPOTHESIS_PROFILE=verbose pytest tests/

Resource trees:
    ``write_tree`` writes a mapping of relative paths to FTL source under
    ``tmp_path``; ``l10n_root`` is the en / en-GB / en-CA tree most tests
    share.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from pathlib import Path
from textwrap import dedent

import pytest
from hypothesis import Phase, Verbosity, settings

from ftlcatalog import LocaleGraph, ResourceCatalog

# =============================================================================
# HYPOTHESIS PROFILES - SINGLE SOURCE OF TRUTH
# =============================================================================

# Development profile: thorough local testing (500 examples, silent)
settings.register_profile(
    "dev",
    max_examples=500,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    derandomize=False,
)

# CI profile: fast feedback for GitHub Actions (50 examples)
settings.register_profile(
    "ci",
    max_examples=50,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    derandomize=True,
    print_blob=True,
)

# Verbose profile: debug mode with progress visibility (100 examples)
settings.register_profile(
    "verbose",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    derandomize=False,
    verbosity=Verbosity.verbose,
)


def _detect_profile() -> str:
    """Detect appropriate Hypothesis profile based on execution context.

    Priority:
    1. HYPOTHESIS_PROFILE env var (explicit override)
    2. CI=true env var (GitHub Actions auto-detection)
    3. Default to "dev" (local development)
    """
    explicit = os.environ.get("HYPOTHESIS_PROFILE")
    if explicit in ("dev", "ci", "verbose"):
        return explicit
    if os.environ.get("CI") == "true":
        return "ci"
    return "dev"


settings.load_profile(_detect_profile())


# =============================================================================
# FUZZING TEST SEPARATION
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register the 'fuzz' marker for intensive property tests."""
    config.addinivalue_line(
        "markers",
        "fuzz: Intensive property tests for fuzzing (excluded from normal test runs)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip fuzz-marked tests unless explicitly requested with ``-m fuzz``."""
    marker_expr = config.getoption("-m", default="")
    if "fuzz" in str(marker_expr):
        return
    skip_fuzz = pytest.mark.skip(reason="Fuzzing test - run with: pytest -m fuzz")
    for item in items:
        if "fuzz" in item.keywords:
            item.add_marker(skip_fuzz)


# =============================================================================
# RESOURCE TREES
# =============================================================================

type TreeWriter = Callable[[Mapping[str, str]], Path]

ENGLISH_TREE: dict[str, str] = {
    "_brand.ftl": """
        -brand = Acme
    """,
    "en/_shared.ftl": """
        app-name = { -brand } Notes
    """,
    "en/home.ftl": """
        welcome = Welcome, { $first-name }!
        state =
            { $count ->
                [one] One note
               *[other] { $count } notes
            }
            .busy = Busy: { $reason }
        farewell = Goodbye from { app-name }
        greeting = { welcome } Today is { $day }.
        colour = Colour
    """,
    "en/settings.ftl": """
        title = Settings
    """,
    "en-GB/home.ftl": """
        colour = Colour (GB)
    """,
    "en-CA/home.ftl": """
        farewell = Bye, eh
    """,
}


def write_files(root: Path, files: Mapping[str, str]) -> Path:
    """Write ``files`` (relative path -> FTL source) below ``root``."""
    for relative, source in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dedent(source).lstrip("\n"), encoding="utf-8")
    return root


@pytest.fixture
def write_tree(tmp_path: Path) -> TreeWriter:
    """Factory writing a resource tree to ``tmp_path / "l10n"``."""

    def _write(files: Mapping[str, str]) -> Path:
        root = tmp_path / "l10n"
        root.mkdir(exist_ok=True)
        return write_files(root, files)

    return _write


@pytest.fixture
def english_graph() -> LocaleGraph:
    """en <- en-GB <- en-CA."""
    return LocaleGraph.from_declarations(["en", ("en-GB", "en"), ("en-CA", "en-GB")])


@pytest.fixture
def l10n_root(write_tree: TreeWriter) -> Path:
    return write_tree(ENGLISH_TREE)


@pytest.fixture
def catalog(l10n_root: Path, english_graph: LocaleGraph) -> ResourceCatalog:
    return ResourceCatalog.load(l10n_root, english_graph)

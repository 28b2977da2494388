"""Type aliases for the catalog domain.

Provides semantic type aliases used throughout the package and by user
code when annotating translate and validate call sites.

Python 3.13+.
"""

from __future__ import annotations

from collections.abc import Mapping

from ftllexengine import FluentValue

__all__ = [
    "ArgName",
    "FluentArgs",
    "FunctionName",
    "MessageId",
    "MessageKey",
    "ResourceName",
]

type ResourceName = str
"""Named resource identifier: path below the locale directory without
extension, ``/`` separated (e.g., 'home', 'nested/about')."""

type MessageId = str
"""Identifier for a Fluent message (e.g., 'welcome', 'error-404')."""

type MessageKey = str
"""Message id with an optional attribute suffix (e.g., 'state.busy')."""

type ArgName = str
"""Name of a variable supplied to a message ('first-name')."""

type FunctionName = str
"""Name of an FTL function as referenced in resources ('NUMBER')."""

type FluentArgs = Mapping[str, FluentValue]
"""Named arguments passed to the formatting engine."""

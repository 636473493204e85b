"""Helper modules for mockgen tests.

Modules:
    factories: Builders for exchanges, endpoints and observed responses
    fakes: Browsing surface and stop signal doubles for capture sessions
"""

from .factories import JSON_HEADERS, make_endpoint, make_exchange, make_observed
from .fakes import FailingSignal, FakeSurface, ScriptedSignal

__all__ = [
    "JSON_HEADERS",
    "FailingSignal",
    "FakeSurface",
    "ScriptedSignal",
    "make_endpoint",
    "make_exchange",
    "make_observed",
]

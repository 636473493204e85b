"""Capture module for mockgen.

Provides the capture session, its browsing surface and stop signals.
"""

from mockgen.capture.session import CaptureSession, CaptureState, create_capture_session
from mockgen.capture.signals import EnterKeySignal, ManualStopSignal, StopSignal
from mockgen.capture.surface import BrowsingSurface, ObservedExchange, PlaywrightSurface

__all__ = [
    "BrowsingSurface",
    "CaptureSession",
    "CaptureState",
    "EnterKeySignal",
    "ManualStopSignal",
    "ObservedExchange",
    "PlaywrightSurface",
    "StopSignal",
    "create_capture_session",
]

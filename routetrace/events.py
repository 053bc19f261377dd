"""
Shared event types for resolver ↔ TUI communication.

The resolver emits HopEvents through an optional callback; the TUI
consumes them. Neither side imports the other — this is the only
shared dependency.

Usage (resolver side):
    from .events import HopEvent, TuiVerdict
    callback(HopEvent(event="hop_done", device="R1", ...))

Usage (TUI side):
    from .events import HopEvent, TuiVerdict, LogLevel
    for evt in event_stream:
        process(evt)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional


class TuiVerdict(Enum):
    """Verdict icons for tree display. Forwarding and delivery map to
    FORWARDED/DELIVERED, the rest to the failure kind that stopped the trace."""
    FORWARDED = "forwarded"
    DELIVERED = "delivered"
    NO_ROUTE = "no_route"
    UNRESOLVED_GATEWAY = "unresolved_gateway"
    ROUTING_LOOP = "routing_loop"
    HOP_LIMIT = "hop_limit"
    INVALID = "invalid"


# Verdict → (color, icon) for the tree pane
VERDICT_STYLE: dict[TuiVerdict, tuple[str, str]] = {
    TuiVerdict.FORWARDED:          ("#00ff88", "→"),
    TuiVerdict.DELIVERED:          ("#00ff88", "✓"),
    TuiVerdict.NO_ROUTE:           ("#ff4444", "✗"),
    TuiVerdict.UNRESOLVED_GATEWAY: ("#ffcc00", "⚠"),
    TuiVerdict.ROUTING_LOOP:       ("#ff4444", "↺"),
    TuiVerdict.HOP_LIMIT:          ("#ff8800", "⊘"),
    TuiVerdict.INVALID:            ("#ff4444", "✗"),
}


class LogLevel(Enum):
    BASIC = "basic"
    VERBOSE = "verbose"
    DEBUG = "debug"


@dataclass
class HopEvent:
    """
    One event from the resolver to the TUI.

    Events:
        hop_start   — about to look up the destination on a device
        hop_done    — route chosen, gateway resolved (or the hop failed)
        trace_done  — resolution finished, final summary

    Log lines use Rich markup for coloring.
    """
    event: str                          # "hop_start", "hop_done", "trace_done"

    # Device context (hop_start / hop_done)
    device: str = ""
    parent_device: Optional[str] = None # previous device (for tree placement)

    # Verdict (hop_done only)
    verdict: Optional[TuiVerdict] = None
    route: str = ""                     # "192.168.1.0/24 via 10.0.1.2"
    next_device: Optional[str] = None
    notes: list[str] = field(default_factory=list)

    # Log lines at three verbosity levels (Rich markup)
    log_basic: list[str] = field(default_factory=list)
    log_verbose: list[str] = field(default_factory=list)
    log_debug: list[str] = field(default_factory=list)

    # trace_done fields
    total_hops: int = 0
    success: bool = True
    status: str = ""                    # "success" or a FailureKind value
    error: str = ""


# Type alias for the event callback
EventCallback = Callable[[HopEvent], None]

"""
Route Trace — Diagnostic Framework

Every lookup, every candidate, every decision — traceable.
Three levels:
  1. Trace-level summary (always, to TUI or stdout)
  2. Hop-level detail (--verbose, structured per-hop reports)
  3. Full record (--dump, JSON with every candidate considered)

Philosophy: if a hop picked a route, we need to know what it passed over.
  - Which records on the device matched the destination?
  - Which one won, and on what prefix length?
  - Which device claimed the gateway, or why none did?
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
import json
import logging


# ============================================================
# Structured Diagnostic Records
# ============================================================


@dataclass
class CandidateRecord:
    """One route on the device that covered the destination."""
    network: str                        # "192.168.0.0/16"
    next_hop: str
    selected: bool = False

    def to_dict(self) -> dict:
        return {
            "network": self.network,
            "next_hop": self.next_hop,
            "selected": self.selected,
        }


@dataclass
class GatewayRecord:
    """How a gateway address was (or wasn't) mapped to a device."""
    gateway: str
    resolved_device: Optional[str] = None
    via_network: Optional[str] = None   # the connected network that claimed it
    excluded_self: bool = False         # current device also claims it

    def to_dict(self) -> dict:
        return {
            "gateway": self.gateway,
            "resolved_device": self.resolved_device,
            "via_network": self.via_network,
            "excluded_self": self.excluded_self,
        }


@dataclass
class HopDiagnostic:
    """All decision records for a single device visit."""
    device: str
    hop_index: int
    routes_on_device: int = 0
    candidates: list[CandidateRecord] = field(default_factory=list)
    gateway: Optional[GatewayRecord] = None
    outcome: str = ""                   # "forwarded", "delivered", or a failure kind
    notes: list[str] = field(default_factory=list)

    @property
    def selected(self) -> Optional[CandidateRecord]:
        for c in self.candidates:
            if c.selected:
                return c
        return None

    def to_dict(self) -> dict:
        return {
            "device": self.device,
            "hop_index": self.hop_index,
            "routes_on_device": self.routes_on_device,
            "candidates": [c.to_dict() for c in self.candidates],
            "gateway": self.gateway.to_dict() if self.gateway else None,
            "outcome": self.outcome,
            "notes": self.notes,
        }


# ============================================================
# Trace Diagnostic — the full resolution
# ============================================================

@dataclass
class TraceDiagnostic:
    """Complete diagnostic record for one resolution call."""
    start_device: str
    dest_address: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    table_size: int = 0
    hops: list[HopDiagnostic] = field(default_factory=list)
    status: str = ""

    def to_dict(self) -> dict:
        return {
            "start_device": self.start_device,
            "dest_address": self.dest_address,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "table_size": self.table_size,
            "status": self.status,
            "summary": {
                "devices_visited": len(self.hops),
                "candidates_considered": sum(len(h.candidates) for h in self.hops),
            },
            "hops": [h.to_dict() for h in self.hops],
        }

    def dump_json(self, path: str):
        """Write full diagnostic to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)


# ============================================================
# Logger Setup
# ============================================================
#
# Three output modes, layered:
#
#   default         : nothing on stderr (TUI-safe)
#   --verbose / -v  : info-level per-hop lines to stderr
#   --debug         : everything, to stderr and to --log FILE if given
#

def setup_logging(
    log_file: Optional[str] = None,
    debug: bool = False,
    verbose: bool = False,
) -> logging.Logger:
    """
    Configure the routetrace logger.

    - log_file: debug-level to file (TUI-safe)
    - debug: debug-level to stderr (non-TUI mode only)
    - verbose: info-level to stderr
    """
    logger = logging.getLogger("routetrace")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if log_file:
        fh = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    if debug or verbose:
        sh = logging.StreamHandler()
        sh.setLevel(logging.DEBUG if debug else logging.INFO)
        sh.setFormatter(formatter)
        logger.addHandler(sh)

    # Null handler if nothing else, so there are no "no handler" warnings
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger


# ============================================================
# Diagnostic Dump Formats
# ============================================================

def dump_hop_summary(diag: HopDiagnostic) -> str:
    """One-line summary for the status bar or verbose output."""
    sel = diag.selected
    if sel is None:
        return f"hop {diag.hop_index}: {diag.device} | no matching route → {diag.outcome}"

    line = f"hop {diag.hop_index}: {diag.device} | {sel.network} via {sel.next_hop}"
    if diag.gateway and diag.gateway.resolved_device:
        line += f" ({diag.gateway.resolved_device})"
    return f"{line} → {diag.outcome}"


def dump_hop_detail(diag: HopDiagnostic) -> str:
    """Multi-line detail for --verbose or drill-down."""
    lines = [f"═══ Hop {diag.hop_index}: {diag.device} ═══"]
    lines.append(f"  {diag.routes_on_device} routes on device, "
                 f"{len(diag.candidates)} cover the destination")

    for c in diag.candidates:
        marker = "✓" if c.selected else " "
        lines.append(f"  [{marker}] {c.network} via {c.next_hop}")

    if diag.gateway:
        g = diag.gateway
        if g.resolved_device:
            lines.append(f"  gateway {g.gateway} → {g.resolved_device} "
                         f"(connected {g.via_network})")
        else:
            lines.append(f"  gateway {g.gateway} → unresolved")
        if g.excluded_self:
            lines.append(f"    ⚠ {diag.device} also connects to {g.gateway}, skipped")

    lines.append(f"  ─── Outcome: {diag.outcome} ───")
    for note in diag.notes:
        lines.append(f"    ⚠ {note}")
    return "\n".join(lines)


def dump_trace_summary(diag: TraceDiagnostic) -> str:
    """Full trace summary — suitable for terminal or report output."""
    lines = [
        f"Route Trace: {diag.start_device} → {diag.dest_address}",
        f"{'─' * 50}",
    ]

    for hop in diag.hops:
        lines.append(dump_hop_summary(hop))

    s = diag.to_dict()["summary"]
    lines.append(f"{'─' * 50}")
    lines.append(
        f"Status: {diag.status} | "
        f"Devices: {s['devices_visited']} | "
        f"Candidates: {s['candidates_considered']} | "
        f"Table: {diag.table_size} routes"
    )
    return "\n".join(lines)

"""
Route Trace — Core Data Models
Static tables only. One path, no ECMP.

The question at every hop:
  Is there a route? → Which one is most specific? → Which device owns the gateway?
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Optional


# Literal word the CSV format uses for a directly connected network.
DIRECTLY_CONNECTED = "directo"


# ============================================================
# Route — one line of a device's forwarding table
# ============================================================

@dataclass(frozen=True)
class RouteRecord:
    device: str
    network: str                        # dotted quad, host bits not enforced
    prefix_length: int                  # 0-32
    next_hop: str = DIRECTLY_CONNECTED  # sentinel or gateway address

    @property
    def is_directly_connected(self) -> bool:
        return self.next_hop.strip().lower() == DIRECTLY_CONNECTED

    @property
    def cidr(self) -> str:
        return f"{self.network}/{self.prefix_length}"

    def to_dict(self) -> dict:
        return {
            "device": self.device,
            "network": self.network,
            "prefix_length": self.prefix_length,
            "next_hop": self.next_hop,
        }

    @classmethod
    def from_dict(cls, data: dict) -> RouteRecord:
        for key in ("device", "network", "next_hop"):
            if not isinstance(data[key], str):
                raise TypeError(f"{key} must be a string, got {data[key]!r}")
        return cls(
            device=data["device"],
            network=data["network"],
            prefix_length=int(data["prefix_length"]),
            next_hop=data["next_hop"],
        )


# ============================================================
# Routing Table — ordered, immutable snapshot
# ============================================================

class RoutingTable:
    """
    Ordered collection of RouteRecords from any number of devices.

    Order matters only for tie-breaking between equally specific routes,
    so the records live in a tuple. Edits return a new table.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[RouteRecord] = ()):
        self._records: tuple[RouteRecord, ...] = tuple(records)

    @classmethod
    def snapshot(cls, records: Iterable[RouteRecord]) -> RoutingTable:
        if isinstance(records, RoutingTable):
            return records
        return cls(records)

    @property
    def records(self) -> tuple[RouteRecord, ...]:
        return self._records

    @property
    def devices(self) -> list[str]:
        """Distinct device names, first-seen order."""
        return list(dict.fromkeys(r.device for r in self._records))

    def has_device(self, device: str) -> bool:
        return any(r.device == device for r in self._records)

    def routes_for(self, device: str) -> list[RouteRecord]:
        return [r for r in self._records if r.device == device]

    # ── Editing: always a new table ──

    def append(self, record: RouteRecord) -> RoutingTable:
        return RoutingTable(self._records + (record,))

    def replace(self, index: int, record: RouteRecord) -> RoutingTable:
        records = list(self._records)
        records[index] = record
        return RoutingTable(records)

    def remove(self, index: int) -> RoutingTable:
        records = list(self._records)
        del records[index]
        return RoutingTable(records)

    def __iter__(self) -> Iterator[RouteRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> RouteRecord:
        return self._records[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RoutingTable):
            return NotImplemented
        return self._records == other._records

    def __hash__(self) -> int:
        return hash(self._records)

    def __repr__(self) -> str:
        return f"RoutingTable({len(self._records)} records, {len(self.devices)} devices)"


# ============================================================
# Hop — one step of the computed path
# ============================================================

@dataclass(frozen=True)
class Hop:
    at_device: str
    network: str
    prefix_length: int
    gateway_used: str
    next_device: Optional[str] = None   # None → destination reached here

    @property
    def matched_network(self) -> str:
        return f"{self.network}/{self.prefix_length}"

    @property
    def is_terminal(self) -> bool:
        return self.next_device is None

    def to_dict(self) -> dict:
        return {
            "at_device": self.at_device,
            "matched_network": self.matched_network,
            "gateway_used": self.gateway_used,
            "next_device": self.next_device,
        }


# ============================================================
# Trace Result
# ============================================================

class FailureKind(Enum):
    INVALID_INPUT = "invalid-input"
    UNKNOWN_DEVICE = "unknown-device"
    NO_ROUTE = "no-route"
    UNRESOLVED_GATEWAY = "unresolved-gateway"
    ROUTING_LOOP = "routing-loop"
    HOP_LIMIT_EXCEEDED = "hop-limit-exceeded"


@dataclass(frozen=True)
class TraceFailure:
    kind: FailureKind
    message: str
    device: Optional[str] = None        # where it broke, when known
    address: Optional[str] = None       # destination or gateway involved


@dataclass(frozen=True)
class TraceResult:
    """
    The outcome of one resolution call. Built once, never mutated.
    Failures carry every hop accumulated before the break.
    """
    source_device: str
    source_address: str
    dest_address: str
    hops: tuple[Hop, ...] = field(default_factory=tuple)
    failure: Optional[TraceFailure] = None

    @property
    def success(self) -> bool:
        return self.failure is None

    @property
    def status(self) -> str:
        return "success" if self.failure is None else self.failure.kind.value

    @property
    def error(self) -> Optional[str]:
        return self.failure.message if self.failure else None

    @property
    def devices(self) -> list[str]:
        """Devices on the path, in traversal order."""
        path = [h.at_device for h in self.hops]
        if self.hops and self.hops[-1].next_device:
            path.append(self.hops[-1].next_device)
        return path

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "status": self.status,
            "error": self.error,
            "source_device": self.source_device,
            "source_address": self.source_address,
            "dest_address": self.dest_address,
            "hops": [h.to_dict() for h in self.hops],
        }

"""
Path Resolver — hop-by-hop walk over static routing tables.

Sequence per hop:
    1. Check visited set: a revisit means a routing loop
    2. Collect the device's routes that cover the destination
    3. Longest prefix wins (first in table order on a tie)
    4. Directly connected? → delivered, done
    5. Otherwise find the device that owns the gateway: some OTHER device
       with a directly connected network containing the gateway address
    6. Record the hop, move to that device, repeat

Two loop guards, deliberately separate:
    - Gateway resolution never returns the current device. A device whose
      own connected network contains its gateway can't route to itself.
    - The visited set catches cycles across two or more devices:

          A ──gw──▶ B ──gw──▶ C
          ▲                   │
          └────────gw─────────┘     ← A revisited: ROUTING_LOOP

The hop limit is a ceiling on top of both, not the normal way out.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional
import logging
import sys

from .models import (
    DIRECTLY_CONNECTED, RouteRecord, RoutingTable, Hop,
    FailureKind, TraceFailure, TraceResult,
)
from .matcher import record_contains, most_specific, is_valid_address
from .diagnostics import (
    CandidateRecord, GatewayRecord, HopDiagnostic, TraceDiagnostic,
    setup_logging, dump_hop_detail,
)
from .events import HopEvent, TuiVerdict, EventCallback

logger = logging.getLogger("routetrace")

DEFAULT_MAX_HOPS = 30


# ============================================================
# Resolver Configuration
# ============================================================

@dataclass
class ResolverConfig:
    # Safety ceiling against unbounded routing loops
    max_hops: int = DEFAULT_MAX_HOPS

    # Diagnostics, consumed by setup_logging() in the CLI/TUI
    log_file: Optional[str] = None
    verbose: bool = False
    debug: bool = False

    # TUI event callback: if set, resolver emits HopEvent at each stage
    event_callback: Optional[EventCallback] = None


_FAILURE_VERDICT = {
    FailureKind.INVALID_INPUT: TuiVerdict.INVALID,
    FailureKind.UNKNOWN_DEVICE: TuiVerdict.INVALID,
    FailureKind.NO_ROUTE: TuiVerdict.NO_ROUTE,
    FailureKind.UNRESOLVED_GATEWAY: TuiVerdict.UNRESOLVED_GATEWAY,
    FailureKind.ROUTING_LOOP: TuiVerdict.ROUTING_LOOP,
    FailureKind.HOP_LIMIT_EXCEEDED: TuiVerdict.HOP_LIMIT,
}


def _present(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


# ============================================================
# Path Resolver
# ============================================================

class PathResolver:
    """
    Resolves the path a packet takes from a start device to a destination.

    Usage:
        resolver = PathResolver(ResolverConfig(max_hops=30))
        result = resolver.resolve("R1", "192.168.1.1", "192.168.1.50", table)

        # result.success → delivered
        # result.failure.kind → NO_ROUTE, ROUTING_LOOP, ...
        # resolver.diagnostics.dump_json("/tmp/trace.json")

    A failure is a result, never an exception. Every failure carries the
    hops accumulated before it.
    """

    def __init__(self, config: Optional[ResolverConfig] = None):
        self.config = config or ResolverConfig()
        self._diagnostics: Optional[TraceDiagnostic] = None

    @property
    def diagnostics(self) -> Optional[TraceDiagnostic]:
        return self._diagnostics

    # ────────────────────────────────────────────
    # TUI Event Emission
    # ────────────────────────────────────────────

    def _emit(self, event: HopEvent) -> None:
        """Send an event to the TUI callback, if registered."""
        cb = self.config.event_callback
        if cb is not None:
            try:
                cb(event)
            except Exception as e:
                logger.debug(f"Event callback error: {e}")

    def _emit_hop_done(self, diag: HopDiagnostic, parent: Optional[str],
                       verdict: TuiVerdict, hop: Optional[Hop] = None,
                       message: str = "") -> None:
        color = "#00ff88" if verdict in (TuiVerdict.FORWARDED,
                                         TuiVerdict.DELIVERED) else "#ff4444"
        sel = diag.selected
        route = f"{sel.network} via {sel.next_hop}" if sel else ""

        basic = f"  [{color}]hop {diag.hop_index}: {diag.device} → {diag.outcome.upper()}[/]"
        if hop and hop.next_device:
            basic += f"  {hop.matched_network} → {hop.next_device}"
        elif hop:
            basic += f"  {hop.matched_network} (connected)"

        verbose = [f"  [#888888]{diag.routes_on_device} routes, "
                   f"{len(diag.candidates)} match[/]"]
        for c in diag.candidates:
            mark = "[#00ff88]✓[/]" if c.selected else " "
            verbose.append(f"    [{mark}] {c.network} via {c.next_hop}")
        if message:
            verbose.append(f"  [{color}]{message}[/]")
        verbose.append("")

        debug = list(verbose)
        if diag.gateway:
            g = diag.gateway
            debug.insert(-1, f"    [#444444]gateway {g.gateway} → "
                             f"{g.resolved_device or 'unresolved'}"
                             f"{' via ' + g.via_network if g.via_network else ''}"
                             f"{' (self excluded)' if g.excluded_self else ''}[/]")

        self._emit(HopEvent(
            event="hop_done",
            device=diag.device,
            parent_device=parent,
            verdict=verdict,
            route=route,
            next_device=hop.next_device if hop else None,
            notes=["(connected)"] if verdict == TuiVerdict.DELIVERED else [],
            log_basic=[basic],
            log_verbose=[basic] + verbose,
            log_debug=[basic] + debug,
        ))

    # ────────────────────────────────────────────
    # Resolution
    # ────────────────────────────────────────────

    def resolve(self, start_device: str, source_address: str,
                dest_address: str,
                table: Iterable[RouteRecord]) -> TraceResult:
        """Walk the tables from start_device toward dest_address."""
        snapshot = RoutingTable.snapshot(table if table is not None else ())

        self._diagnostics = TraceDiagnostic(
            start_device=start_device or "",
            dest_address=dest_address or "",
            started_at=datetime.now(),
            table_size=len(snapshot),
        )

        hops: list[Hop] = []

        def finish(failure: Optional[TraceFailure] = None) -> TraceResult:
            return self._finish(start_device, source_address, dest_address,
                                hops, failure)

        # ── Guard: inputs ──
        if not (_present(start_device) and _present(source_address)
                and _present(dest_address)) or len(snapshot) == 0:
            logger.error(
                f"Invalid input: device={start_device!r} source={source_address!r} "
                f"dest={dest_address!r} table={len(snapshot)} routes"
            )
            return finish(TraceFailure(
                kind=FailureKind.INVALID_INPUT,
                message="Invalid parameters or empty routing table",
            ))

        if not snapshot.has_device(start_device):
            logger.error(f"Unknown start device: {start_device}")
            return finish(TraceFailure(
                kind=FailureKind.UNKNOWN_DEVICE,
                message=f'Device "{start_device}" does not exist in the routing table',
                device=start_device,
            ))

        logger.info(f"Resolving {dest_address} from {start_device} "
                    f"(source {source_address}, {len(snapshot)} routes, "
                    f"{len(snapshot.devices)} devices)")

        visited: set[str] = set()
        current = start_device
        previous: Optional[str] = None

        for hop_index in range(self.config.max_hops):

            # ── 1. Revisit check ──
            if current in visited:
                logger.warning(f"Routing loop: {current} revisited after "
                               f"{len(hops)} hops")
                return finish(TraceFailure(
                    kind=FailureKind.ROUTING_LOOP,
                    message=f'Routing loop detected at device "{current}"',
                    device=current,
                ))
            visited.add(current)

            self._emit(HopEvent(
                event="hop_start",
                device=current,
                parent_device=previous,
                log_basic=[f"[#00d4ff]Looking up {dest_address} on {current}[/]"],
            ))

            diag = HopDiagnostic(device=current, hop_index=hop_index)
            self._diagnostics.hops.append(diag)

            # ── 2. Matching routes on this device ──
            device_routes = snapshot.routes_for(current)
            matches = [r for r in device_routes if record_contains(r, dest_address)]
            diag.routes_on_device = len(device_routes)
            diag.candidates = [CandidateRecord(network=r.cidr, next_hop=r.next_hop)
                               for r in matches]
            logger.debug(f"[{current}] {len(matches)}/{len(device_routes)} routes "
                         f"cover {dest_address}")

            if not matches:
                failure = TraceFailure(
                    kind=FailureKind.NO_ROUTE,
                    message=f'No route to {dest_address} from device "{current}"',
                    device=current,
                    address=dest_address,
                )
                diag.outcome = failure.kind.value
                self._emit_hop_done(diag, previous, TuiVerdict.NO_ROUTE,
                                    message=failure.message)
                logger.warning(failure.message)
                return finish(failure)

            # ── 3. Longest prefix match ──
            best = most_specific(matches)
            for candidate, record in zip(diag.candidates, matches):
                if record is best:
                    candidate.selected = True
                    break
            ties = [r for r in matches if r.prefix_length == best.prefix_length]
            if len(ties) > 1:
                diag.notes.append(f"{len(ties)} routes tie on /{best.prefix_length}, "
                                  f"first in table order used")
            logger.debug(f"[{current}] selected {best.cidr} via {best.next_hop}")

            # ── 4. Terminal: directly connected ──
            if best.is_directly_connected:
                hop = Hop(
                    at_device=current,
                    network=best.network,
                    prefix_length=best.prefix_length,
                    gateway_used=DIRECTLY_CONNECTED,
                    next_device=None,
                )
                hops.append(hop)
                diag.outcome = "delivered"
                self._emit_hop_done(diag, previous, TuiVerdict.DELIVERED, hop)
                logger.info(f"Hop {hop_index}: {current} delivers via "
                            f"connected {best.cidr}")
                return finish()

            # ── 5. Resolve the gateway to another device ──
            gateway = best.next_hop.strip()
            diag.gateway = self._resolve_gateway(gateway, current, snapshot)
            next_device = diag.gateway.resolved_device

            if next_device is None:
                failure = TraceFailure(
                    kind=FailureKind.UNRESOLVED_GATEWAY,
                    message=f'Cannot resolve gateway {gateway} from "{current}"',
                    device=current,
                    address=gateway,
                )
                diag.outcome = failure.kind.value
                self._emit_hop_done(diag, previous,
                                    TuiVerdict.UNRESOLVED_GATEWAY,
                                    message=failure.message)
                logger.warning(failure.message)
                return finish(failure)

            # ── 6. Record and advance ──
            hop = Hop(
                at_device=current,
                network=best.network,
                prefix_length=best.prefix_length,
                gateway_used=gateway,
                next_device=next_device,
            )
            hops.append(hop)
            diag.outcome = "forwarded"
            self._emit_hop_done(diag, previous, TuiVerdict.FORWARDED, hop)
            logger.info(f"Hop {hop_index}: {current} → {next_device} "
                        f"via {gateway} ({best.cidr})")

            previous, current = current, next_device

        logger.warning(f"Hop limit {self.config.max_hops} reached at {current}")
        return finish(TraceFailure(
            kind=FailureKind.HOP_LIMIT_EXCEEDED,
            message=f"Exceeded the limit of {self.config.max_hops} hops",
            device=current,
        ))

    @staticmethod
    def _resolve_gateway(gateway: str, current: str,
                         table: RoutingTable) -> GatewayRecord:
        """
        First directly connected network, in table order, that contains
        the gateway and belongs to a device other than `current`.
        """
        record = GatewayRecord(gateway=gateway)
        for route in table:
            if not route.is_directly_connected or not record_contains(route, gateway):
                continue
            if route.device == current:
                record.excluded_self = True
                continue
            if record.resolved_device is None:
                record.resolved_device = route.device
                record.via_network = route.cidr
        return record

    def _finish(self, start_device: str, source_address: str,
                dest_address: str, hops: list[Hop],
                failure: Optional[TraceFailure]) -> TraceResult:
        result = TraceResult(
            source_device=start_device,
            source_address=source_address,
            dest_address=dest_address,
            hops=tuple(hops),
            failure=failure,
        )

        self._diagnostics.completed_at = datetime.now()
        self._diagnostics.status = result.status

        logger.info(f"Resolution complete: {len(hops)} hops → {result.status}")

        summary = (f"  Status: [{'#00ff88' if result.success else '#ff4444'}]"
                   f"{result.status.upper()}[/] │ {len(hops)} hops")
        basic = ["", "[#00ff88]━━━ Trace complete ━━━[/]", summary]
        if failure:
            basic.append(f"  [#ff4444]{failure.message}[/]")
        elif hops:
            basic.append(f"  Path: {' → '.join(result.devices)}")

        self._emit(HopEvent(
            event="trace_done",
            total_hops=len(hops),
            success=result.success,
            status=result.status,
            error=failure.message if failure else "",
            verdict=_FAILURE_VERDICT.get(failure.kind) if failure else None,
            log_basic=basic,
        ))
        return result


def resolve_path(start_device: str, source_address: str, dest_address: str,
                 table: Iterable[RouteRecord],
                 config: Optional[ResolverConfig] = None) -> TraceResult:
    """Resolve one path with a throwaway resolver."""
    return PathResolver(config).resolve(start_device, source_address,
                                        dest_address, table)


# ============================================================
# Output
# ============================================================

def format_result(result: TraceResult) -> str:
    """Human-readable hop table and status banner."""
    lines = [
        f"routetrace: {result.source_device} ({result.source_address}) "
        f"→ {result.dest_address}",
        "─" * 60,
    ]
    for i, hop in enumerate(result.hops):
        if hop.is_terminal:
            target = f"{hop.gateway_used} (delivered)"
        else:
            target = f"via {hop.gateway_used} → {hop.next_device}"
        lines.append(f"  hop {i}: {hop.at_device:16s} | "
                     f"{hop.matched_network:18s} | {target}")
    lines.append("─" * 60)

    if result.success:
        lines.append(f"Status: SUCCESS | {len(result.hops)} hops | "
                     f"path {' → '.join(result.devices)}")
    else:
        lines.append(f"Status: {result.status.upper()} | "
                     f"{len(result.hops)} hops before failure")
        lines.append(f"  ✗ {result.error}")
    return "\n".join(lines)


def main(argv: Optional[list[str]] = None) -> int:
    """
    routetrace -t routes.csv -d R1 -s 192.168.1.1 -D 192.168.1.50 \\
               --json --dump /tmp/trace.json -v
    """
    import argparse
    import json as json_mod

    from .loader import load_csv, export_csv, TableFormatError
    from .store import TableStore, DEFAULT_STORE_DIR

    parser = argparse.ArgumentParser(
        description="Simulate the path a packet takes through static routing tables.",
        epilog=(
            "Examples:\n"
            "  routetrace -t routes.csv -d R1 -s 192.168.1.1 -D 192.168.1.50\n"
            "  routetrace -t routes.csv --save -d R1 -s 10.0.0.1 -D 10.9.0.1 --json\n"
            "  routetrace -d R1 -s 10.0.0.1 -D 10.9.0.1   (uses the stored table)\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("-t", "--table", default=None,
                        help="Routing table CSV (Equipo, IP_Destino, Mascara, Gateway)")
    parser.add_argument("-d", "--device", required=True,
                        help="Device the packet starts from")
    parser.add_argument("-s", "--source", required=True,
                        help="Source address (reported, not routed on)")
    parser.add_argument("-D", "--dest", required=True,
                        help="Destination address")

    parser.add_argument("--max-hops", type=int, default=DEFAULT_MAX_HOPS)

    parser.add_argument("--save", action="store_true",
                        help="Persist the loaded table to the store")
    parser.add_argument("--store-dir", default=str(DEFAULT_STORE_DIR),
                        help="Directory for the saved table and history")
    parser.add_argument("--export", default=None,
                        help="Write the table in use to this CSV file")

    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Print per-hop decision detail")
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--log", default=None,
                        help="Write debug log to file")
    parser.add_argument("--dump", default=None,
                        help="Write full diagnostic JSON to file")
    parser.add_argument("--json", action="store_true",
                        help="Output trace result as JSON")

    args = parser.parse_args(argv)

    # ── Validate inputs before we touch any table ──
    if not is_valid_address(args.source):
        parser.error(f"Invalid source address '{args.source}'")
    if not is_valid_address(args.dest):
        parser.error(f"Invalid destination address '{args.dest}'")
    if args.max_hops < 1:
        parser.error("--max-hops must be at least 1")

    config = ResolverConfig(
        max_hops=args.max_hops,
        log_file=args.log,
        verbose=args.verbose,
        debug=args.debug,
    )
    setup_logging(log_file=config.log_file, debug=config.debug,
                  verbose=config.verbose)

    store = TableStore(args.store_dir)
    if args.table:
        try:
            table = load_csv(args.table)
        except (TableFormatError, OSError) as e:
            print(f"routetrace: {e}", file=sys.stderr)
            return 2
        if args.save and not store.save(table):
            print(f"routetrace: could not save table to {store.path}",
                  file=sys.stderr)
    else:
        table = store.load()
        if table is None:
            parser.error("No --table given and no stored routing table found")

    if args.export:
        try:
            export_csv(table, args.export)
        except (TableFormatError, OSError) as e:
            print(f"routetrace: {e}", file=sys.stderr)
            return 2

    resolver = PathResolver(config)
    result = resolver.resolve(args.device, args.source, args.dest, table)

    if args.dump and resolver.diagnostics:
        resolver.diagnostics.dump_json(args.dump)
        logger.info(f"Diagnostics written to {args.dump}")

    if args.json:
        print(json_mod.dumps(result.to_dict(), indent=2))
    else:
        if config.verbose and resolver.diagnostics:
            for hop_diag in resolver.diagnostics.hops:
                print(dump_hop_detail(hop_diag))
        print(format_result(result))

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())

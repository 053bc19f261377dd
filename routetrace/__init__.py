"""
routetrace — Hop-by-hop path simulation over static routing tables.

No packets leave the box — the tables are walked, not probed.
"""

__version__ = "0.1.0"

from .models import (
    DIRECTLY_CONNECTED,
    RouteRecord, RoutingTable,
    Hop, FailureKind, TraceFailure, TraceResult,
)
from .matcher import (
    address_to_int, is_address_in_network, is_valid_address, most_specific,
)
from .resolver import PathResolver, ResolverConfig, resolve_path, format_result
from .diagnostics import TraceDiagnostic, HopDiagnostic
from .events import HopEvent, TuiVerdict, LogLevel
from .exceptions import RouteTraceError, TableFormatError
from .loader import load_csv, parse_csv, export_csv
from .store import TableStore

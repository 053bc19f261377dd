"""
Routing table CSV — ingestion and export.

Format (header row required, extra columns ignored):

    Equipo,IP_Destino,Mascara,Gateway
    R1,10.0.1.0,/24,directo
    R1,192.168.1.0,/24,10.0.1.2

Rows with any blank required cell are dropped, matching what a
spreadsheet export leaves behind. Structural problems raise
TableFormatError.
"""

from __future__ import annotations
from pathlib import Path
from typing import Iterable
import csv
import io
import logging

from .exceptions import TableFormatError
from .models import RouteRecord, RoutingTable

logger = logging.getLogger("routetrace.loader")

COL_DEVICE = "Equipo"
COL_NETWORK = "IP_Destino"
COL_MASK = "Mascara"
COL_GATEWAY = "Gateway"
REQUIRED_COLUMNS = [COL_DEVICE, COL_NETWORK, COL_MASK, COL_GATEWAY]


def parse_mask(value: str) -> int:
    """'/24' or '24' → 24. Raises ValueError on anything else."""
    prefix_length = int(value.strip().lstrip("/"))
    if not 0 <= prefix_length <= 32:
        raise ValueError(f"mask out of range: {prefix_length}")
    return prefix_length


def parse_csv(text: str) -> RoutingTable:
    reader = csv.DictReader(io.StringIO(text))
    headers = [h.strip() for h in (reader.fieldnames or []) if h]
    if not headers:
        raise TableFormatError("The CSV file is empty")

    missing = [c for c in REQUIRED_COLUMNS if c not in headers]
    if missing:
        raise TableFormatError(f"Missing columns in CSV: {', '.join(missing)}")
    reader.fieldnames = [h.strip() for h in reader.fieldnames]

    records: list[RouteRecord] = []
    dropped = 0
    for row in reader:
        cells = {c: (row.get(c) or "").strip() for c in REQUIRED_COLUMNS}
        if not all(cells.values()):
            dropped += 1
            continue
        try:
            prefix_length = parse_mask(cells[COL_MASK])
        except ValueError:
            raise TableFormatError(
                f"invalid mask {cells[COL_MASK]!r}", line=reader.line_num
            ) from None
        records.append(RouteRecord(
            device=cells[COL_DEVICE],
            network=cells[COL_NETWORK],
            prefix_length=prefix_length,
            next_hop=cells[COL_GATEWAY],
        ))

    if dropped:
        logger.debug(f"Dropped {dropped} incomplete rows")
    if not records:
        raise TableFormatError("No valid rows found in the CSV")

    logger.info(f"Loaded {len(records)} routes")
    return RoutingTable(records)


def load_csv(path: str | Path) -> RoutingTable:
    """Read a routing table CSV from disk."""
    path = Path(path)
    if path.suffix.lower() != ".csv":
        raise TableFormatError(f"Not a CSV file: {path.name}")
    text = path.read_text(encoding="utf-8-sig")
    logger.debug(f"Reading {path}")
    return parse_csv(text)


def to_csv(records: Iterable[RouteRecord]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(REQUIRED_COLUMNS)
    for r in records:
        writer.writerow([r.device, r.network, f"/{r.prefix_length}", r.next_hop])
    return buf.getvalue()


def export_csv(records: Iterable[RouteRecord],
               path: str | Path = "routing-data-export.csv") -> Path:
    """Write the table back out in the same four-column format."""
    records = list(records)
    if not records:
        raise TableFormatError("No data to export")
    path = Path(path)
    path.write_text(to_csv(records), encoding="utf-8")
    logger.info(f"Exported {len(records)} routes to {path}")
    return path

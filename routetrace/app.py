"""
Textual TUI for routetrace — hop tree plus a leveled log pane.

Two modes:
  Live:  RouteTraceApp(table=..., start_device=..., source=..., dest=...)
         Resolver runs in a thread, emits HopEvents via queue.
  Demo:  RouteTraceApp() with no table
         Resolves the built-in two-router example.
"""

from __future__ import annotations

import asyncio
import dataclasses
import queue
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import RichLog, Static, Tree
from textual.widgets.tree import TreeNode

from .events import HopEvent, VERDICT_STYLE, LogLevel
from .models import DIRECTLY_CONNECTED, RouteRecord, RoutingTable
from .resolver import PathResolver, ResolverConfig

CSS_PATH = Path(__file__).parent / "theme.tcss"

DEMO_TABLE = RoutingTable([
    RouteRecord("R1", "10.0.1.0", 24, DIRECTLY_CONNECTED),
    RouteRecord("R1", "192.168.1.0", 24, "10.0.1.2"),
    RouteRecord("R2", "10.0.1.0", 24, DIRECTLY_CONNECTED),
    RouteRecord("R2", "192.168.1.0", 24, DIRECTLY_CONNECTED),
])
DEMO_TRACE = ("R1", "192.168.1.1", "192.168.1.50")


class TitleBar(Static):
    pass

class StatusBar(Static):
    pass


class RouteTraceApp(App):
    """routetrace TUI — hop-by-hop path through static routing tables."""

    CSS_PATH = CSS_PATH
    TITLE = "routetrace"

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("b", "log_basic", "Basic"),
        Binding("v", "log_verbose", "Verbose"),
        Binding("d", "log_debug", "Debug"),
    ]

    def __init__(
        self,
        table: Optional[RoutingTable] = None,
        start_device: str = "",
        source: str = "",
        dest: str = "",
        config: Optional[ResolverConfig] = None,
    ):
        super().__init__()
        if table is None:
            table = DEMO_TABLE
            start_device, source, dest = DEMO_TRACE

        # Snapshot so edits elsewhere can't reach the resolver thread
        self.table = RoutingTable.snapshot(table)
        self.start_device = start_device
        self.source = source
        self.dest = dest
        self._config = config or ResolverConfig()

        self._log_level = LogLevel.BASIC
        self._device_nodes: dict[str, TreeNode] = {}
        self._all_logs: list[tuple[HopEvent, datetime]] = []
        self._hop_count = 0
        self._trace_done = False
        self._result: HopEvent | None = None
        self._event_queue: queue.Queue[HopEvent | None] = queue.Queue()

    def compose(self) -> ComposeResult:
        yield TitleBar(
            f"  routetrace: {self.start_device} ({self.source}) → {self.dest}",
            id="title-bar",
        )
        with Horizontal(id="main-split"):
            with Vertical(id="tree-pane"):
                tree: Tree[str] = Tree(f"→ {self.dest}", id="hop-tree")
                tree.show_root = True
                tree.root.expand()
                tree.guide_depth = 3
                yield tree
            with Vertical(id="log-pane"):
                yield RichLog(id="log-view", highlight=True, markup=True,
                              wrap=True, auto_scroll=True)
        yield StatusBar(id="status-bar")

    def on_mount(self) -> None:
        self._update_status()
        self.run_worker(self._run_trace(), exclusive=True, group="trace")

    # ── Resolver integration ────────────────────────────────────────────

    async def _run_trace(self) -> None:
        """
        Run the resolver in a background thread.
        Resolver → queue.put(HopEvent) → async poll → TUI.
        """
        config = dataclasses.replace(self._config,
                                     event_callback=self._event_queue.put)

        def _resolver_thread():
            try:
                PathResolver(config).resolve(
                    self.start_device, self.source, self.dest, self.table,
                )
            except Exception as e:
                self._event_queue.put(HopEvent(
                    event="trace_done", success=False, status="error",
                    log_basic=[f"[#ff4444]Resolver error: {e}[/]"],
                ))
            finally:
                self._event_queue.put(None)

        thread = threading.Thread(target=_resolver_thread, daemon=True)
        thread.start()

        while True:
            try:
                evt = self._event_queue.get_nowait()
            except queue.Empty:
                await asyncio.sleep(0.05)
                continue
            if evt is None:
                break
            self._process_event(evt)
            # Pace the replay so the tree builds visibly
            await asyncio.sleep(0.2 if evt.event == "hop_done" else 0.05)

        thread.join(timeout=5.0)

    # ── Event processing ────────────────────────────────────────────────

    def _process_event(self, evt: HopEvent) -> None:
        now = datetime.now()
        self._all_logs.append((evt, now))
        if evt.event == "hop_start":
            self._add_pending_node(evt)
        elif evt.event == "hop_done":
            self._update_node_verdict(evt)
            self._hop_count += 1
        elif evt.event == "trace_done":
            self._trace_done = True
            self._result = evt
        self._write_log_lines(evt, now)
        self._update_status()

    # ── Tree management ─────────────────────────────────────────────────

    def _add_pending_node(self, evt: HopEvent) -> None:
        tree = self.query_one("#hop-tree", Tree)
        label = Text()
        label.append("⟳ ", style="#00d4ff")
        label.append(evt.device, style="#00d4ff")
        parent = self._find_parent(evt, tree)
        node = parent.add(label, expand=True)
        self._device_nodes[evt.device] = node
        node.expand()
        tree.scroll_end(animate=False)

    def _update_node_verdict(self, evt: HopEvent) -> None:
        node = self._device_nodes.get(evt.device)
        if node is None:
            return
        color, icon = VERDICT_STYLE.get(evt.verdict, ("#888888", "?"))
        label = Text()
        label.append(f"{icon} ", style=color)
        label.append(evt.device, style="bold " + color)
        if evt.route:
            label.append(f"  {evt.route}", style="#888888")
        for note in evt.notes:
            label.append(f"  {note}", style="#ffcc00 italic")
        node.set_label(label)

    def _find_parent(self, evt: HopEvent, tree: Tree) -> TreeNode:
        if evt.parent_device and evt.parent_device in self._device_nodes:
            return self._device_nodes[evt.parent_device]
        return tree.root

    # ── Log pane ────────────────────────────────────────────────────────

    def _write_log_lines(self, evt: HopEvent, now: datetime) -> None:
        log = self.query_one("#log-view", RichLog)
        ts = now.strftime("%H:%M:%S")
        for line in self._get_lines_for_level(evt):
            log.write(Text.from_markup(f"[#555555]{ts}[/] {line}"))

    def _get_lines_for_level(self, evt: HopEvent) -> list[str]:
        if self._log_level == LogLevel.DEBUG:
            return evt.log_debug or evt.log_verbose or evt.log_basic
        elif self._log_level == LogLevel.VERBOSE:
            return evt.log_verbose or evt.log_basic
        return evt.log_basic

    def _rebuild_log(self) -> None:
        log = self.query_one("#log-view", RichLog)
        log.clear()
        for evt, ts in self._all_logs:
            ts_str = ts.strftime("%H:%M:%S")
            for line in self._get_lines_for_level(evt):
                log.write(Text.from_markup(f"[#555555]{ts_str}[/] {line}"))

    # ── Status bar ──────────────────────────────────────────────────────

    def _update_status(self) -> None:
        bar = self.query_one("#status-bar", StatusBar)
        level_str = self._log_level.value
        parts = []
        for label in ("basic", "verbose", "debug"):
            if level_str == label:
                parts.append(f"[bold]{label[0]}[/bold]{label[1:]}")
            else:
                parts.append(label)
        level_hints = "  ".join(parts)

        if self._trace_done and self._result:
            r = self._result
            if r.success:
                banner = "[#00ff88]✓ DELIVERED[/]"
            else:
                color, icon = VERDICT_STYLE.get(r.verdict, ("#ff4444", "✗"))
                banner = f"[{color}]{icon} {r.status.upper()}[/]"
            bar.update(Text.from_markup(
                f"  {banner} │ {r.total_hops} hops │ {level_hints} │ q:quit"
            ))
        else:
            bar.update(Text.from_markup(
                f"  [#00d4ff]⟳[/] hop {self._hop_count} │ {level_hints} │ q:quit"
            ))

    # ── Key bindings ────────────────────────────────────────────────────

    def action_log_basic(self) -> None:
        self._log_level = LogLevel.BASIC
        self._rebuild_log()
        self._update_status()

    def action_log_verbose(self) -> None:
        self._log_level = LogLevel.VERBOSE
        self._rebuild_log()
        self._update_status()

    def action_log_debug(self) -> None:
        self._log_level = LogLevel.DEBUG
        self._rebuild_log()
        self._update_status()

    def action_quit(self) -> None:
        self.exit()


def main():
    import argparse

    from .diagnostics import setup_logging
    from .loader import load_csv, TableFormatError
    from .matcher import is_valid_address
    from .store import TableStore, DEFAULT_STORE_DIR

    parser = argparse.ArgumentParser(description="routetrace TUI")
    parser.add_argument("--demo", action="store_true",
                        help="Trace the built-in two-router example")
    parser.add_argument("-t", "--table", default=None)
    parser.add_argument("-d", "--device", default=None)
    parser.add_argument("-s", "--source", default=None)
    parser.add_argument("-D", "--dest", default=None)
    parser.add_argument("--max-hops", type=int, default=30)
    parser.add_argument("--store-dir", default=str(DEFAULT_STORE_DIR))
    parser.add_argument("--log", default=None)
    args = parser.parse_args()

    # File logging only; stderr would tear the TUI
    setup_logging(log_file=args.log)

    if args.demo or not (args.device or args.source or args.dest):
        RouteTraceApp().run()
        return

    if not (args.device and args.source and args.dest):
        parser.error("Live mode requires -d, -s, and -D")
    for label, value in (("source", args.source), ("destination", args.dest)):
        if not is_valid_address(value):
            parser.error(f"Invalid {label} address '{value}'")

    if args.table:
        try:
            table = load_csv(args.table)
        except (TableFormatError, OSError) as e:
            parser.error(str(e))
    else:
        table = TableStore(args.store_dir).load()
        if table is None:
            parser.error("No --table given and no stored routing table found")

    app = RouteTraceApp(
        table=table, start_device=args.device,
        source=args.source, dest=args.dest,
        config=ResolverConfig(max_hops=args.max_hops, log_file=args.log),
    )
    app.run()


if __name__ == "__main__":
    main()

"""Path resolution — end to end over small tables."""

from routetrace.events import HopEvent, TuiVerdict
from routetrace.models import (
    DIRECTLY_CONNECTED as D, FailureKind, Hop, RouteRecord, RoutingTable,
)
from routetrace.resolver import (
    PathResolver, ResolverConfig, format_result, resolve_path,
)


class TestSuccess:
    def test_two_router_scenario(self, two_router_table):
        result = resolve_path("A", "192.168.1.1", "192.168.1.50", two_router_table)

        assert result.success
        assert result.failure is None
        assert result.hops == (
            Hop("A", "192.168.1.0", 24, "10.0.1.2", "B"),
            Hop("B", "192.168.1.0", 24, D, None),
        )
        assert result.hops[-1].is_terminal
        assert result.devices == ["A", "B"]
        assert result.source_device == "A"
        assert result.source_address == "192.168.1.1"
        assert result.dest_address == "192.168.1.50"

    def test_directly_connected_on_start_device(self, two_router_table):
        result = resolve_path("B", "10.0.1.2", "192.168.1.9", two_router_table)
        assert result.success
        assert result.hops == (Hop("B", "192.168.1.0", 24, D, None),)

    def test_longest_prefix_selected(self):
        table = RoutingTable([
            RouteRecord("A", "10.0.1.0", 24, D),
            RouteRecord("A", "10.0.2.0", 24, D),
            RouteRecord("A", "192.168.0.0", 16, "10.0.1.2"),
            RouteRecord("A", "192.168.1.0", 24, "10.0.2.2"),
            RouteRecord("B", "10.0.1.0", 24, D),
            RouteRecord("B", "192.168.0.0", 16, D),
            RouteRecord("C", "10.0.2.0", 24, D),
            RouteRecord("C", "192.168.1.0", 24, D),
        ])
        result = resolve_path("A", "10.0.1.1", "192.168.1.50", table)
        assert result.success
        assert result.hops[0].matched_network == "192.168.1.0/24"
        assert result.hops[0].next_device == "C"

    def test_equal_prefix_tie_broken_by_table_order(self):
        table = RoutingTable([
            RouteRecord("A", "10.0.1.0", 24, D),
            RouteRecord("A", "10.0.2.0", 24, D),
            RouteRecord("A", "0.0.0.0", 0, "10.0.2.2"),
            RouteRecord("A", "0.0.0.0", 0, "10.0.1.2"),
            RouteRecord("C", "10.0.2.0", 24, D),
            RouteRecord("C", "0.0.0.0", 0, D),
            RouteRecord("B", "10.0.1.0", 24, D),
            RouteRecord("B", "0.0.0.0", 0, D),
        ])
        result = resolve_path("A", "10.0.1.1", "8.8.8.8", table)
        assert result.hops[0].gateway_used == "10.0.2.2"
        assert result.hops[0].next_device == "C"

    def test_sentinel_is_case_insensitive(self):
        table = RoutingTable([
            RouteRecord("A", "10.0.1.0", 24, "DIRECTO"),
            RouteRecord("A", "192.168.1.0", 24, "10.0.1.2"),
            RouteRecord("B", "10.0.1.0", 24, "Directo"),
            RouteRecord("B", "192.168.1.0", 24, " directo "),
        ])
        result = resolve_path("A", "10.0.1.1", "192.168.1.50", table)
        assert result.success
        assert result.hops[-1].gateway_used == D

    def test_source_address_does_not_affect_routing(self, two_router_table):
        a = resolve_path("A", "192.168.1.1", "192.168.1.50", two_router_table)
        b = resolve_path("A", "203.0.113.7", "192.168.1.50", two_router_table)
        assert a.hops == b.hops

    def test_thirty_device_chain_fits_the_limit(self, chain_table):
        result = resolve_path("D0", "10.0.0.1", "172.16.5.5", chain_table(30))
        assert result.success
        assert len(result.hops) == 30

    def test_zero_padded_addresses(self):
        table = RoutingTable([RouteRecord("A", "192.168.001.0", 24, D)])
        result = resolve_path("A", "10.0.0.1", "192.168.1.50", table)
        assert result.success
        assert result.hops == (Hop("A", "192.168.001.0", 24, D, None),)

    def test_accepts_plain_list(self, two_router_table):
        result = resolve_path("A", "192.168.1.1", "192.168.1.50",
                              list(two_router_table))
        assert result.success


class TestDeterminism:
    def test_identical_calls_equal(self, two_router_table):
        first = resolve_path("A", "192.168.1.1", "192.168.1.50", two_router_table)
        second = resolve_path("A", "192.168.1.1", "192.168.1.50", two_router_table)
        assert first == second

    def test_failures_equal(self, two_router_table):
        first = resolve_path("A", "1.1.1.1", "8.8.8.8", two_router_table)
        second = resolve_path("A", "1.1.1.1", "8.8.8.8", two_router_table)
        assert first == second


class TestInputValidation:
    def test_empty_arguments(self, two_router_table):
        for args in (("", "1.1.1.1", "2.2.2.2"),
                     ("A", "", "2.2.2.2"),
                     ("A", "1.1.1.1", ""),
                     ("A", "1.1.1.1", "   "),
                     (None, "1.1.1.1", "2.2.2.2")):
            result = resolve_path(*args, two_router_table)
            assert not result.success
            assert result.failure.kind == FailureKind.INVALID_INPUT
            assert result.hops == ()

    def test_empty_table(self):
        result = resolve_path("A", "1.1.1.1", "2.2.2.2", RoutingTable())
        assert result.failure.kind == FailureKind.INVALID_INPUT
        assert result.error == "Invalid parameters or empty routing table"

    def test_none_table(self):
        result = resolve_path("A", "1.1.1.1", "2.2.2.2", None)
        assert result.failure.kind == FailureKind.INVALID_INPUT

    def test_unknown_device(self, two_router_table):
        result = resolve_path("Z", "1.1.1.1", "192.168.1.50", two_router_table)
        assert result.failure.kind == FailureKind.UNKNOWN_DEVICE
        assert result.failure.device == "Z"
        assert result.error == 'Device "Z" does not exist in the routing table'
        assert result.hops == ()


class TestNoRoute:
    def test_no_route_at_start(self, two_router_table):
        result = resolve_path("A", "192.168.1.1", "8.8.8.8", two_router_table)
        assert result.failure.kind == FailureKind.NO_ROUTE
        assert result.failure.device == "A"
        assert result.failure.address == "8.8.8.8"
        assert result.error == 'No route to 8.8.8.8 from device "A"'
        assert result.hops == ()

    def test_partial_hops_kept(self):
        table = RoutingTable([
            RouteRecord("A", "10.0.1.0", 24, D),
            RouteRecord("A", "0.0.0.0", 0, "10.0.1.2"),
            RouteRecord("B", "10.0.1.0", 24, D),
        ])
        result = resolve_path("A", "10.0.1.1", "8.8.8.8", table)
        assert result.failure.kind == FailureKind.NO_ROUTE
        assert result.failure.device == "B"
        assert result.hops == (Hop("A", "0.0.0.0", 0, "10.0.1.2", "B"),)

    def test_malformed_destination_matches_nothing(self, two_router_table):
        result = resolve_path("A", "192.168.1.1", "not-an-ip", two_router_table)
        assert result.failure.kind == FailureKind.NO_ROUTE


class TestUnresolvedGateway:
    def test_gateway_nobody_connects(self):
        table = RoutingTable([
            RouteRecord("A", "10.0.1.0", 24, D),
            RouteRecord("A", "192.168.1.0", 24, "10.0.2.2"),
            RouteRecord("B", "10.0.1.0", 24, D),
            RouteRecord("B", "192.168.1.0", 24, D),
        ])
        result = resolve_path("A", "192.168.1.1", "192.168.1.50", table)
        assert result.failure.kind == FailureKind.UNRESOLVED_GATEWAY
        assert result.failure.address == "10.0.2.2"
        assert result.error == 'Cannot resolve gateway 10.0.2.2 from "A"'
        assert result.hops == ()

    def test_current_device_excluded_from_gateway_owners(self):
        # A is the only device connected to the gateway's network
        table = RoutingTable([
            RouteRecord("A", "10.0.1.0", 24, D),
            RouteRecord("A", "192.168.1.0", 24, "10.0.1.2"),
            RouteRecord("B", "192.168.1.0", 24, D),
        ])
        resolver = PathResolver()
        result = resolver.resolve("A", "10.0.1.1", "192.168.1.50", table)
        assert result.failure.kind == FailureKind.UNRESOLVED_GATEWAY
        assert resolver.diagnostics.hops[0].gateway.excluded_self

    def test_self_skipped_in_favor_of_later_device(self, two_router_table):
        # A's own 10.0.1.0/24 comes first in the table; B must still win
        resolver = PathResolver()
        result = resolver.resolve("A", "10.0.1.1", "192.168.1.50", two_router_table)
        assert result.hops[0].next_device == "B"
        gw = resolver.diagnostics.hops[0].gateway
        assert gw.excluded_self
        assert gw.via_network == "10.0.1.0/24"


class TestRoutingLoop:
    def test_two_device_loop(self):
        table = RoutingTable([
            RouteRecord("A", "10.0.1.0", 24, D),
            RouteRecord("A", "172.16.0.0", 16, "10.0.1.2"),
            RouteRecord("B", "10.0.1.0", 24, D),
            RouteRecord("B", "172.16.0.0", 16, "10.0.1.1"),
        ])
        result = resolve_path("A", "10.0.1.1", "172.16.9.9", table)
        assert result.failure.kind == FailureKind.ROUTING_LOOP
        assert result.failure.device == "A"
        assert len(result.hops) <= 2
        assert [h.next_device for h in result.hops] == ["B", "A"]
        assert result.error == 'Routing loop detected at device "A"'

    def test_three_device_loop(self):
        table = RoutingTable([
            RouteRecord("A", "10.0.1.0", 24, D),
            RouteRecord("A", "172.16.0.0", 16, "10.0.1.2"),
            RouteRecord("B", "10.0.1.0", 24, D),
            RouteRecord("B", "10.0.2.0", 24, D),
            RouteRecord("B", "172.16.0.0", 16, "10.0.2.2"),
            RouteRecord("C", "10.0.2.0", 24, D),
            RouteRecord("C", "10.0.3.0", 24, D),
            RouteRecord("C", "172.16.0.0", 16, "10.0.3.1"),
            RouteRecord("A", "10.0.3.0", 24, D),
        ])
        result = resolve_path("A", "10.0.1.1", "172.16.9.9", table)
        assert result.failure.kind == FailureKind.ROUTING_LOOP
        assert result.devices == ["A", "B", "C", "A"]


class TestHopLimit:
    def test_thirty_one_device_chain(self, chain_table):
        result = resolve_path("D0", "10.0.0.1", "172.16.5.5", chain_table(31))
        assert result.failure.kind == FailureKind.HOP_LIMIT_EXCEEDED
        assert len(result.hops) == 30
        assert result.error == "Exceeded the limit of 30 hops"
        assert all(not h.is_terminal for h in result.hops)

    def test_configurable_limit(self, chain_table):
        config = ResolverConfig(max_hops=3)
        result = resolve_path("D0", "10.0.0.1", "172.16.5.5", chain_table(5), config)
        assert result.failure.kind == FailureKind.HOP_LIMIT_EXCEEDED
        assert len(result.hops) == 3


class TestSnapshot:
    def test_table_edits_after_call_do_not_affect_result(self, two_router_table):
        records = list(two_router_table)
        result = resolve_path("A", "192.168.1.1", "192.168.1.50", records)
        records.clear()
        assert len(result.hops) == 2


class TestEvents:
    def _collect(self, table, *args):
        events: list[HopEvent] = []
        resolver = PathResolver(ResolverConfig(event_callback=events.append))
        result = resolver.resolve(*args, table)
        return result, events

    def test_event_sequence(self, two_router_table):
        result, events = self._collect(
            two_router_table, "A", "192.168.1.1", "192.168.1.50")
        assert [e.event for e in events] == [
            "hop_start", "hop_done", "hop_start", "hop_done", "trace_done",
        ]
        assert events[1].verdict == TuiVerdict.FORWARDED
        assert events[1].next_device == "B"
        assert events[2].parent_device == "A"
        assert events[3].verdict == TuiVerdict.DELIVERED
        assert events[-1].success
        assert events[-1].total_hops == 2

    def test_failure_event(self, two_router_table):
        _, events = self._collect(two_router_table, "A", "1.1.1.1", "8.8.8.8")
        assert events[1].verdict == TuiVerdict.NO_ROUTE
        done = events[-1]
        assert not done.success
        assert done.status == "no-route"
        assert done.verdict == TuiVerdict.NO_ROUTE

    def test_callback_errors_do_not_break_trace(self, two_router_table):
        def boom(_event):
            raise RuntimeError("tui gone")

        resolver = PathResolver(ResolverConfig(event_callback=boom))
        result = resolver.resolve("A", "192.168.1.1", "192.168.1.50",
                                  two_router_table)
        assert result.success


class TestFormatResult:
    def test_success_banner(self, two_router_table):
        text = format_result(
            resolve_path("A", "192.168.1.1", "192.168.1.50", two_router_table))
        assert "Status: SUCCESS | 2 hops | path A → B" in text
        assert "via 10.0.1.2 → B" in text
        assert "(delivered)" in text

    def test_failure_banner(self, two_router_table):
        text = format_result(
            resolve_path("A", "192.168.1.1", "8.8.8.8", two_router_table))
        assert "Status: NO-ROUTE" in text
        assert 'No route to 8.8.8.8 from device "A"' in text

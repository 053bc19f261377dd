import logging

import pytest

from routetrace.models import DIRECTLY_CONNECTED, RouteRecord, RoutingTable

D = DIRECTLY_CONNECTED


@pytest.fixture
def two_router_table() -> RoutingTable:
    """A reaches 192.168.1.0/24 through B, which has it connected."""
    return RoutingTable([
        RouteRecord("A", "10.0.1.0", 24, D),
        RouteRecord("A", "192.168.1.0", 24, "10.0.1.2"),
        RouteRecord("B", "10.0.1.0", 24, D),
        RouteRecord("B", "192.168.1.0", 24, D),
    ])


def _chain_table(length: int, dest_net: str = "172.16.0.0") -> RoutingTable:
    """
    D0 → D1 → ... → D{length-1}. Link i is 10.{i}.0.0/24 shared by Di and
    D{i+1}; the last device has dest_net/16 connected.
    """
    records = []
    for i in range(length):
        name = f"D{i}"
        if i > 0:
            records.append(RouteRecord(name, f"10.{i - 1}.0.0", 24, D))
        if i < length - 1:
            records.append(RouteRecord(name, f"10.{i}.0.0", 24, D))
            records.append(RouteRecord(name, dest_net, 16, f"10.{i}.0.2"))
        else:
            records.append(RouteRecord(name, dest_net, 16, D))
    return RoutingTable(records)


@pytest.fixture
def chain_table():
    return _chain_table


@pytest.fixture(autouse=True)
def _reset_logger():
    """The CLI reconfigures the routetrace logger; don't leak handlers."""
    yield
    logger = logging.getLogger("routetrace")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

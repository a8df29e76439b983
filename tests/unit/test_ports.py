"""Unit tests for the ephemeral port allocator."""

import socket

import pytest
from unittest.mock import patch

from testbox.models.errors import PortExhaustedError, PortRangeError
from testbox.services.ports import (
    MAX_PORT,
    MIN_PORT,
    CheckedPort,
    check_port,
    get_port,
    make_range,
    random_port,
)


def _listen(port: int = 0) -> socket.socket:
    """Hold a listener on 0.0.0.0 so the port is busy."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("0.0.0.0", port))
    sock.listen(1)
    return sock


def _busy(port: int) -> CheckedPort:
    return CheckedPort(valid=False, port=port)


class TestMakeRange:
    """Test range construction and bound validation."""

    def test_inclusive_ascending(self):
        """Test both bounds are included in ascending order."""
        assert make_range(2000, 2003) == [2000, 2001, 2002, 2003]

    def test_full_range(self):
        """Test the widest allowed range."""
        ports = make_range(MIN_PORT + 1, MAX_PORT - 1)
        assert ports[0] == 1025
        assert ports[-1] == 65534

    @pytest.mark.parametrize(
        "start,end,bound",
        [
            (MIN_PORT, 2000, "start"),
            (80, 2000, "start"),
            (MAX_PORT, MAX_PORT + 10, "start"),
            (2000, MAX_PORT, "end"),
            (2000, MIN_PORT, "end"),
            (3000, 3000, "end"),
            (3000, 2000, "end"),
        ],
    )
    def test_invalid_bounds(self, start, end, bound):
        """Test invalid bounds fail naming the offending bound."""
        with pytest.raises(PortRangeError) as exc_info:
            make_range(start, end)
        assert exc_info.value.bound == bound
        assert f"`{bound}`" in str(exc_info.value)

    def test_range_error_is_value_error(self):
        """Test PortRangeError can be caught as ValueError."""
        with pytest.raises(ValueError):
            make_range(5000, 4000)


class TestCheckPort:
    """Test the bind-and-release probe."""

    def test_busy_port_is_invalid(self):
        """Test a port with a live listener is reported busy."""
        sock = _listen()
        try:
            port = sock.getsockname()[1]
            result = check_port(port)
            assert result == CheckedPort(valid=False, port=port)
        finally:
            sock.close()

    def test_released_port_is_valid(self):
        """Test a port becomes valid again once its listener closes."""
        sock = _listen()
        port = sock.getsockname()[1]
        sock.close()
        assert check_port(port).valid is True

    def test_other_errors_propagate(self):
        """Test bind failures other than address-in-use are raised."""
        with pytest.raises(OSError):
            # Not a local address, so the bind fails with EADDRNOTAVAIL
            check_port(40000, hostname="203.0.113.1")


class TestGetPort:
    """Test port allocation."""

    def test_no_preference_returns_bindable_port(self):
        """Test the returned port can be bound right away."""
        port = get_port()
        assert MIN_PORT < port < MAX_PORT

        sock = _listen(port)
        sock.close()

    def test_preferred_free_port_is_returned(self):
        """Test a free preferred port is returned as is."""
        sock = _listen()
        port = sock.getsockname()[1]
        sock.close()
        assert get_port(port) == port

    def test_busy_preferred_port_falls_through_above(self):
        """Test an already-bound preferred port is skipped for one above it."""
        sock = _listen()
        try:
            busy = sock.getsockname()[1]
            port = get_port(busy)
            assert port != busy
            assert port > busy
        finally:
            sock.close()

    def test_candidate_list_returns_first_free(self):
        """Test candidates are probed in order."""
        sock = _listen()
        try:
            busy = sock.getsockname()[1]
            free = get_port(busy)
            assert get_port([busy, free]) == free
        finally:
            sock.close()

    def test_exhausted_candidates_widen_above_last(self):
        """Test an all-busy candidate list continues above its last entry."""
        with patch(
            "testbox.services.ports.check_port",
            side_effect=lambda port, hostname: CheckedPort(valid=port == 5003, port=port),
        ) as probe:
            assert get_port([5000, 5001]) == 5003

        probed = [call.args[0] for call in probe.call_args_list]
        assert probed == [5000, 5001, 5002, 5003]

    def test_empty_candidate_list_scans_full_range(self):
        """Test an empty list behaves like no preference."""
        with patch(
            "testbox.services.ports.check_port",
            side_effect=lambda port, hostname: CheckedPort(valid=True, port=port),
        ):
            assert get_port([]) == MIN_PORT + 1

    def test_exhaustion_raises_instead_of_recursing(self):
        """Test the search stops once the top of the range is scanned."""
        with patch(
            "testbox.services.ports.check_port",
            side_effect=lambda port, hostname: _busy(port),
        ) as probe:
            with pytest.raises(PortExhaustedError):
                get_port(65000)

        # The preferred port, then every port above it exactly once
        assert probe.call_count == 1 + (MAX_PORT - 1 - 65000)

    def test_busy_port_at_top_of_range(self):
        """Test a busy preferred port with nothing above it."""
        with patch(
            "testbox.services.ports.check_port",
            side_effect=lambda port, hostname: _busy(port),
        ):
            with pytest.raises(PortExhaustedError):
                get_port(MAX_PORT - 1)

    def test_uses_configured_probe_host(self):
        """Test the probe host defaults to settings."""
        with patch(
            "testbox.services.ports.check_port",
            return_value=CheckedPort(valid=True, port=4000),
        ) as probe:
            get_port(4000)
        probe.assert_called_once_with(4000, "0.0.0.0")

    def test_zero_means_no_preference(self):
        """Test port 0 scans the registered range instead of returning 0."""
        with patch(
            "testbox.services.ports.check_port",
            side_effect=lambda port, hostname: CheckedPort(valid=True, port=port),
        ) as probe:
            assert get_port(0) == MIN_PORT + 1
        probe.assert_called_once_with(MIN_PORT + 1, "0.0.0.0")

    def test_zero_returns_registered_port(self):
        """Test port 0 yields a real port from the registered range."""
        assert MIN_PORT < get_port(0) < MAX_PORT

    @pytest.mark.parametrize("preferred", [80, MIN_PORT, MAX_PORT, 70000, -1])
    def test_preferred_port_outside_range_is_rejected(self, preferred):
        """Test out-of-range preferences fail without probing."""
        with patch("testbox.services.ports.check_port") as probe:
            with pytest.raises(PortRangeError) as exc_info:
                get_port(preferred)
        assert exc_info.value.bound == "port"
        probe.assert_not_called()

    def test_candidate_outside_range_is_rejected(self):
        """Test every candidate in a list is validated before probing."""
        with patch("testbox.services.ports.check_port") as probe:
            with pytest.raises(PortRangeError):
                get_port([5000, 443])
        probe.assert_not_called()

    def test_allocation_does_not_reserve(self):
        """Test two allocations can race for the same port.

        The allocator only guarantees the port was free when probed; nothing
        is held, so a second caller gets the same answer until someone binds.
        """
        first = get_port()
        second = get_port(first)
        assert second == first


class TestRandomPort:
    """Test random allocation by rejection sampling."""

    def test_returns_port_in_range(self):
        """Test a random port lies inside the registered range."""
        port = random_port()
        assert MIN_PORT < port < MAX_PORT

    def test_redraws_on_conflict(self):
        """Test busy draws are rejected and redrawn."""
        results = [_busy(2000), _busy(2001), CheckedPort(valid=True, port=2002)]
        with patch("testbox.services.ports.check_port", side_effect=results), patch(
            "testbox.services.ports.random.randint", side_effect=[2000, 2001, 2002]
        ):
            assert random_port() == 2002

    def test_gives_up_after_max_attempts(self):
        """Test rejection sampling is bounded."""
        with patch(
            "testbox.services.ports.check_port",
            side_effect=lambda port, hostname: _busy(port),
        ) as probe:
            with pytest.raises(PortExhaustedError):
                random_port(max_attempts=5)
        assert probe.call_count == 5

    def test_zero_attempts_is_honoured(self):
        """Test an explicit zero bound draws nothing."""
        with patch("testbox.services.ports.check_port") as probe:
            with pytest.raises(PortExhaustedError):
                random_port(max_attempts=0)
        probe.assert_not_called()

"""Tests for app.rate_limit client address resolution."""

from starlette.requests import Request

from app.rate_limit import get_client_ip, parse_networks, resolve_client_ip, trusted_networks

PRIVATE = parse_networks("10.0.0.0/8,127.0.0.0/8")


def _request(peer, forwarded_for=None):
    headers = [(b"x-forwarded-for", forwarded_for.encode())] if forwarded_for else []
    return Request({"type": "http", "client": (peer, 1234), "headers": headers})


class TestParseNetworks:
    """Tests for parse_networks."""

    def test_skips_blank_and_invalid_entries(self):
        networks = parse_networks(" 10.0.0.0/8, ,not-a-cidr,::1/128 ")
        assert [str(n) for n in networks] == ["10.0.0.0/8", "::1/128"]

    def test_host_bits_are_tolerated(self):
        assert [str(n) for n in parse_networks("192.168.1.7/24")] == ["192.168.1.0/24"]


class TestResolveClientIp:
    """Tests for resolve_client_ip."""

    def test_untrusted_peer_ignores_header(self):
        """A client cannot pick its own bucket by sending the header itself."""
        assert resolve_client_ip("203.0.113.9", "198.51.100.1", PRIVATE) == "203.0.113.9"

    def test_trusted_peer_without_header(self):
        assert resolve_client_ip("10.0.0.2", None, PRIVATE) == "10.0.0.2"

    def test_trusted_peer_uses_forwarded_client(self):
        assert resolve_client_ip("10.0.0.2", "198.51.100.1", PRIVATE) == "198.51.100.1"

    def test_spoofed_leftmost_entry_is_skipped(self):
        """Only the hop our proxy appended counts; earlier entries are client-supplied."""
        assert resolve_client_ip("10.0.0.2", "1.2.3.4, 198.51.100.1", PRIVATE) == "198.51.100.1"

    def test_chained_trusted_proxies_are_walked(self):
        assert resolve_client_ip("10.0.0.2", "198.51.100.1, 10.0.0.7", PRIVATE) == "198.51.100.1"

    def test_all_trusted_hops_keep_origin(self):
        assert resolve_client_ip("10.0.0.2", "10.0.0.5, 10.0.0.7", PRIVATE) == "10.0.0.5"

    def test_garbage_header_is_ignored(self):
        assert resolve_client_ip("10.0.0.2", " , ", PRIVATE) == "10.0.0.2"


class TestGetClientIp:
    """Tests for get_client_ip against a starlette request."""

    def test_default_settings_trust_loopback(self):
        assert any(str(n) == "127.0.0.0/8" for n in trusted_networks())
        assert get_client_ip(_request("127.0.0.1", "198.51.100.1")) == "198.51.100.1"

    def test_public_peer_keeps_its_address(self):
        assert get_client_ip(_request("203.0.113.9", "198.51.100.1")) == "203.0.113.9"

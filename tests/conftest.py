from datetime import datetime, timedelta, timezone

import pytest

from snakeoil.builder import build_certificate, leaf_request, two_tier_issuer
from snakeoil.expiry import compute_window
from snakeoil.keys import generate_key, key_pem
from snakeoil.models import DistinguishedName, NameSet

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)  # a Monday


@pytest.fixture(scope="session")
def key():
    return generate_key(2048)


@pytest.fixture(scope="session")
def other_key():
    return generate_key(2048)


@pytest.fixture
def key_file(tmp_path, key):
    path = tmp_path / "server.key"
    path.write_bytes(key_pem(key))
    return path


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def issue_to(key):
    """Write a certificate signed the way `snakeoil issue` signs it."""
    def _issue(path, cn="test.local", dns=(), ips=(), not_before=NOW,
               lifetime=timedelta(days=30), two_tier=True):
        window = compute_window(not_before, lifetime)
        names = NameSet(common_name=cn, dns_names=list(dns), ip_addresses=list(ips))
        spec = leaf_request(DistinguishedName(common_name=cn), names, window, two_tier)
        issuer = two_tier_issuer(window, key) if two_tier else None
        issued = build_certificate(spec, key, issuer)
        path.write_bytes(issued.pem)
        return issued
    return _issue

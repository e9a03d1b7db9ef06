# reuse.py
# Decides what to do about a certificate that already sits at the output path.

import base64
import binascii
import enum
import logging
import re
from datetime import datetime, timezone
from ipaddress import ip_address
from typing import Iterable, Optional

from cryptography import x509
from cryptography.x509.oid import NameOID

from .models import ISSUER_MARKER, IPAddress
from .utils import as_utc

logger = logging.getLogger(__name__)

_PEM_BLOCK = re.compile(
    rb"-----BEGIN (?P<type>[A-Z0-9 ]+)-----\r?\n(?P<body>.*?)-----END (?P=type)-----",
    re.DOTALL,
)


class Verdict(enum.Enum):
    REGENERATE = "regenerate"
    REUSE = "reuse"
    FOREIGN = "foreign"  # not ours: leave it alone


def decode_pem_block(data: bytes):
    """First PEM block in `data` as (type, der), or None if there is none."""
    # load_pem_x509_certificate skips over non-CERTIFICATE blocks, and a key
    # block in front of the certificate has to read as foreign here.
    m = _PEM_BLOCK.search(data)
    if not m:
        return None
    body = b"".join(
        line.strip() for line in m.group("body").splitlines() if b":" not in line
    )
    try:
        der = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError):
        return None
    return m.group("type").decode("ascii"), der


def name_cn(name: x509.Name) -> Optional[str]:
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    return attrs[0].value if attrs else None


def verify_hostname(cert: x509.Certificate, host: str) -> bool:
    """True if `host` (IP literal or DNS name) is covered by the certificate's SANs."""
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        return False

    candidate = host.strip()
    if candidate.startswith("[") and candidate.endswith("]"):
        candidate = candidate[1:-1]
    try:
        ip = ip_address(candidate)
    except ValueError:
        ip = None
    if ip is not None:
        return ip in san.get_values_for_type(x509.IPAddress)

    wanted = candidate.rstrip(".").lower()
    if not wanted:
        return False
    return any(_match_dns(pattern, wanted) for pattern in san.get_values_for_type(x509.DNSName))


def _match_dns(pattern: str, host: str) -> bool:
    pattern = pattern.rstrip(".").lower()
    if not pattern.startswith("*."):
        return pattern == host
    # wildcard covers exactly one leftmost label
    head, _, rest = host.partition(".")
    return bool(head) and rest == pattern[2:]


def check_existing(
    path: str,
    expected_cn: str,
    ips: Iterable[IPAddress] = (),
    dns_names: Iterable[str] = (),
    now: datetime = None,
) -> Verdict:
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError:
        return Verdict.REGENERATE

    block = decode_pem_block(data)
    if block is None:
        logger.info("%s: no PEM data", path)
        return Verdict.FOREIGN
    pem_type, der = block
    if pem_type != "CERTIFICATE":
        logger.info("%s: PEM block is %s, not CERTIFICATE", path, pem_type)
        return Verdict.FOREIGN
    try:
        cert = x509.load_der_x509_certificate(der)
    except ValueError as e:
        logger.info("%s: not a parseable certificate: %s", path, e)
        return Verdict.FOREIGN

    issuer = name_cn(cert.issuer)
    if issuer != ISSUER_MARKER:
        logger.info("%s: issued by %r, not by this tool", path, issuer)
        return Verdict.FOREIGN

    now = as_utc(now) if now else datetime.now(timezone.utc)
    if now < cert.not_valid_before_utc or now > cert.not_valid_after_utc:
        logger.info("%s: outside its validity window", path)
        return Verdict.REGENERATE

    for addr in ips:
        if not verify_hostname(cert, str(addr)):
            logger.info("%s: does not cover IP %s", path, addr)
            return Verdict.REGENERATE
    for name in dns_names:
        if not verify_hostname(cert, name):
            logger.info("%s: does not cover DNS name %s", path, name)
            return Verdict.REGENERATE

    if name_cn(cert.subject) != expected_cn:
        logger.info("%s: common name %r differs from %r", path, name_cn(cert.subject), expected_cn)
        return Verdict.REGENERATE
    return Verdict.REUSE


def can_reuse(path: str, expected_cn: str, ips=(), dns_names=(), now: datetime = None) -> bool:
    return check_existing(path, expected_cn, ips, dns_names, now) is Verdict.REUSE

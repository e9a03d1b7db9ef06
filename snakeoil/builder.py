# builder.py
# Turns a CertificateRequestSpec into a signed certificate, either self-signed
# or through a throwaway self-signed intermediate (two-tier mode).

import logging
import secrets
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import ExtendedKeyUsageOID

from .errors import SigningError
from .models import (
    ISSUER_MARKER,
    CertificateRequestSpec,
    DistinguishedName,
    IssuedCertificate,
    IssuerSpec,
    KeyMaterial,
    ValidityWindow,
)
from .utils import dedupe

logger = logging.getLogger(__name__)

SERIAL_BITS = 128

_KEY_USAGE_FLAGS = (
    "digital_signature",
    "content_commitment",
    "key_encipherment",
    "data_encipherment",
    "key_agreement",
    "key_cert_sign",
    "crl_sign",
)

LEAF_KEY_USAGE = frozenset({"key_encipherment", "digital_signature"})
CA_KEY_USAGE = frozenset({"digital_signature", "key_cert_sign"})


def random_serial() -> int:
    return secrets.randbelow(1 << SERIAL_BITS)


def _key_usage(names) -> x509.KeyUsage:
    unknown = set(names) - set(_KEY_USAGE_FLAGS)
    if unknown:
        raise SigningError(f"unknown key usage: {', '.join(sorted(unknown))}")
    flags = {f: f in names for f in _KEY_USAGE_FLAGS}
    return x509.KeyUsage(encipher_only=False, decipher_only=False, **flags)


def _san(spec: CertificateRequestSpec) -> Optional[x509.SubjectAlternativeName]:
    entries = [x509.DNSName(n) for n in dedupe(spec.names.dns_names)]
    entries += [x509.IPAddress(ip) for ip in dedupe(spec.names.ip_addresses)]
    return x509.SubjectAlternativeName(entries) if entries else None


def _sign(builder: x509.CertificateBuilder, key: KeyMaterial) -> x509.Certificate:
    try:
        return builder.sign(private_key=key.private_key, algorithm=hashes.SHA256())
    except (ValueError, TypeError) as e:
        raise SigningError(f"signing failed: {e}") from e


def two_tier_issuer(window: ValidityWindow, key: KeyMaterial) -> IssuerSpec:
    """Standard intermediate identity wrapped around `key`."""
    return IssuerSpec(
        subject=DistinguishedName(common_name=ISSUER_MARKER),
        key=key,
        window=window,
        serial=random_serial(),
    )


def build_intermediate(issuer: IssuerSpec) -> x509.Certificate:
    name = issuer.subject.to_x509()
    ski = x509.SubjectKeyIdentifier.from_public_key(issuer.key.public_key)
    try:
        builder = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(issuer.key.public_key)
            .serial_number(issuer.serial)
            .not_valid_before(issuer.window.not_before)
            .not_valid_after(issuer.window.not_after)
            .add_extension(_key_usage(CA_KEY_USAGE), critical=True)
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(ski, critical=False)
        )
    except ValueError as e:
        raise SigningError(f"invalid intermediate template: {e}") from e
    return _sign(builder, issuer.key)


def build_certificate(
    spec: CertificateRequestSpec,
    key: KeyMaterial,
    issuer: Optional[IssuerSpec] = None,
) -> IssuedCertificate:
    """Sign the certificate described by `spec` for `key`.

    Without `issuer` the result is self-signed: issuer name equals subject and
    `key` signs its own certificate. With `issuer` an intermediate CA
    certificate is built first and the leaf is signed by the issuer key under
    the intermediate's subject.
    """
    subject = spec.subject.to_x509()
    intermediate = None
    signer = key
    issuer_name = subject
    if issuer is not None:
        intermediate = build_intermediate(issuer)
        signer = issuer.key
        issuer_name = intermediate.subject

    try:
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer_name)
            .public_key(key.public_key)
            .serial_number(spec.serial)
            .not_valid_before(spec.window.not_before)
            .not_valid_after(spec.window.not_after)
            .add_extension(_key_usage(spec.key_usage), critical=True)
            .add_extension(x509.BasicConstraints(ca=spec.is_ca, path_length=None), critical=True)
        )
        if spec.server_auth:
            builder = builder.add_extension(
                x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False
            )
        san = _san(spec)
        if san is not None:
            builder = builder.add_extension(san, critical=False)
        if spec.is_ca:
            builder = builder.add_extension(
                x509.SubjectKeyIdentifier.from_public_key(key.public_key), critical=False
            )
        if intermediate is not None:
            builder = builder.add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(signer.public_key), critical=False
            )
    except ValueError as e:
        raise SigningError(f"invalid certificate template: {e}") from e

    cert = _sign(builder, signer)
    logger.debug("signed certificate serial=%x issuer=%s", cert.serial_number, cert.issuer.rfc4514_string())
    return IssuedCertificate(
        certificate=cert,
        der=cert.public_bytes(serialization.Encoding.DER),
        pem=cert.public_bytes(serialization.Encoding.PEM),
        intermediate=intermediate,
    )


def leaf_request(subject: DistinguishedName, names, window: ValidityWindow, two_tier: bool) -> CertificateRequestSpec:
    """Request for a server certificate; two-tier leaves also get CA bits."""
    usage = LEAF_KEY_USAGE | {"key_cert_sign"} if two_tier else LEAF_KEY_USAGE
    return CertificateRequestSpec(
        subject=subject,
        names=names,
        window=window,
        serial=random_serial(),
        is_ca=two_tier,
        key_usage=frozenset(usage),
        server_auth=True,
    )

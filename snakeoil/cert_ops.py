import logging
import os
import sys
import tempfile
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.x509.oid import SignatureAlgorithmOID

from .builder import build_certificate, leaf_request, two_tier_issuer
from .config import IssueConfig
from .errors import ConfigurationError
from .expiry import compute_window
from .keys import key_pem, load_or_create_key
from .models import NameSet, X509Meta
from .resolver import merge_interface_addresses, resolve_names
from .reuse import Verdict, check_existing, decode_pem_block, name_cn
from .utils import as_utc, days_until, rfc3339

logger = logging.getLogger(__name__)

_SIG_ALGS = {
    SignatureAlgorithmOID.RSA_WITH_SHA256: "sha256WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA384: "sha384WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA512: "sha512WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA1: "sha1WithRSAEncryption",
    SignatureAlgorithmOID.ECDSA_WITH_SHA256: "ecdsa-with-SHA256",
    SignatureAlgorithmOID.ECDSA_WITH_SHA384: "ecdsa-with-SHA384",
    SignatureAlgorithmOID.ED25519: "ED25519",
}


@dataclass
class IssueResult:
    action: str  # issued | reused | foreign
    path: str
    meta: Optional[X509Meta] = None

    def as_doc(self) -> dict:
        doc = {"result": self.action, "path": self.path}
        if self.meta is not None:
            doc["certificate"] = asdict(self.meta)
        return doc


def x509_meta(cert: x509.Certificate) -> X509Meta:
    pub = cert.public_key()
    if isinstance(pub, rsa.RSAPublicKey):
        pub_algo, pub_bits = "rsaEncryption", pub.key_size
    elif isinstance(pub, ec.EllipticCurvePublicKey):
        pub_algo, pub_bits = "id-ecPublicKey", pub.key_size
    elif isinstance(pub, ed25519.Ed25519PublicKey):
        pub_algo, pub_bits = "ED25519", 256
    else:
        pub_algo, pub_bits = type(pub).__name__, 0

    try:
        is_ca = cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
    except x509.ExtensionNotFound:
        is_ca = False
    try:
        san_ext = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        san = [f"DNS:{n}" for n in san_ext.get_values_for_type(x509.DNSName)]
        san += [f"IP:{ip}" for ip in san_ext.get_values_for_type(x509.IPAddress)]
    except x509.ExtensionNotFound:
        san = []

    oid = cert.signature_algorithm_oid
    return X509Meta(
        not_before=rfc3339(cert.not_valid_before_utc),
        not_after=rfc3339(cert.not_valid_after_utc),
        serial=format(cert.serial_number, "X"),
        sha256=cert.fingerprint(hashes.SHA256()).hex().upper(),
        sig_alg=_SIG_ALGS.get(oid, oid.dotted_string),
        pubkey_algo=pub_algo,
        pubkey_bits=pub_bits,
        is_ca=is_ca,
        issuer_cn=name_cn(cert.issuer),
        subject_cn=name_cn(cert.subject),
        san=san,
    )


def load_certificate(path: str) -> x509.Certificate:
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ConfigurationError(f"cannot read {path}: {e}") from e
    block = decode_pem_block(data)
    if block is None or block[0] != "CERTIFICATE":
        raise ConfigurationError(f"{path} does not start with a PEM CERTIFICATE block")
    try:
        return x509.load_der_x509_certificate(block[1])
    except ValueError as e:
        raise ConfigurationError(f"{path}: {e}") from e


def _write_atomic(path: str, body: bytes, mode: int = 0o644):
    directory = os.path.dirname(os.path.abspath(path))
    tf = tempfile.NamedTemporaryFile("wb", dir=directory, prefix=".snakeoil-", delete=False)
    try:
        with tf:
            tf.write(body)
        os.chmod(tf.name, mode)
        os.replace(tf.name, path)
    except OSError as e:
        if os.path.exists(tf.name):
            os.unlink(tf.name)
        raise ConfigurationError(f"cannot write certificate to {path}: {e}") from e


def collect_names(cfg: IssueConfig) -> NameSet:
    names = NameSet(
        common_name=cfg.subject.common_name,
        dns_names=list(cfg.dns_names),
        ip_addresses=list(cfg.ip_addresses),
    )
    if cfg.interfaces:
        names = merge_interface_addresses(names, cfg.interfaces)
    if cfg.resolve:
        names = resolve_names(names, timeout=cfg.dns_timeout)
    return names


def cert_issue(cfg: IssueConfig) -> IssueResult:
    """Issue a certificate for `cfg`, unless the one already on disk will do.

    Foreign files at the output path are never overwritten while the reuse
    check is active.
    """
    key = load_or_create_key(cfg.key_path, cfg.key_size)
    names = collect_names(cfg)
    now = as_utc(cfg.now) if cfg.now else datetime.now(timezone.utc)

    if cfg.check_reuse and not cfg.to_stdout:
        verdict = check_existing(cfg.cert_path, names.common_name, names.ip_addresses, names.dns_names, now)
        if verdict is Verdict.REUSE:
            logger.info("%s is still valid, leaving it in place", cfg.cert_path)
            return IssueResult("reused", cfg.cert_path, x509_meta(load_certificate(cfg.cert_path)))
        if verdict is Verdict.FOREIGN:
            logger.warning("%s was not issued by snakeoil, refusing to overwrite it", cfg.cert_path)
            return IssueResult("foreign", cfg.cert_path)

    try:
        window = compute_window(now, cfg.expires, cfg.wednesday_expiry)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    issuer = two_tier_issuer(window, key) if cfg.two_tier else None
    issued = build_certificate(leaf_request(cfg.subject, names, window, cfg.two_tier), key, issuer)

    body = issued.pem
    if cfg.bundle_key:
        body += key_pem(key)
    if cfg.to_stdout:
        sys.stdout.buffer.write(body)
        sys.stdout.flush()
    else:
        _write_atomic(cfg.cert_path, body)
        logger.info("wrote certificate for %s to %s (expires %s)",
                    names.common_name, cfg.cert_path, rfc3339(window.not_after))
    return IssueResult("issued", cfg.cert_path, x509_meta(issued.certificate))


def cert_show(path: str, now: datetime = None) -> dict:
    cert = load_certificate(path)
    doc = asdict(x509_meta(cert))
    doc["days_left"] = days_until(cert.not_valid_after_utc, now)
    doc["path"] = path
    return doc

from dataclasses import dataclass, field
from datetime import datetime
from ipaddress import IPv4Address, IPv6Address
from typing import List, Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

IPAddress = Union[IPv4Address, IPv6Address]

# Issuer CN of every certificate this tool signs in two-tier mode. A file whose
# issuer carries anything else is treated as foreign and left alone.
ISSUER_MARKER = "snakeoil self-issued CA"


@dataclass(frozen=True)
class KeyMaterial:
    private_key: rsa.RSAPrivateKey
    path: Optional[str] = None
    created: bool = False

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self.private_key.public_key()

    @property
    def key_size(self) -> int:
        return self.private_key.key_size


@dataclass
class NameSet:
    common_name: str
    dns_names: List[str] = field(default_factory=list)
    ip_addresses: List[IPAddress] = field(default_factory=list)


@dataclass(frozen=True)
class ValidityWindow:
    not_before: datetime
    not_after: datetime

    def __post_init__(self):
        if self.not_after <= self.not_before:
            raise ValueError(
                f"not_after ({self.not_after}) must be later than not_before ({self.not_before})"
            )

    @property
    def duration(self):
        return self.not_after - self.not_before


@dataclass(frozen=True)
class DistinguishedName:
    common_name: str
    organization: List[str] = field(default_factory=list)
    organizational_unit: List[str] = field(default_factory=list)
    country: List[str] = field(default_factory=list)
    province: List[str] = field(default_factory=list)
    locality: List[str] = field(default_factory=list)

    def to_x509(self) -> x509.Name:
        # same attribute order Go's pkix.Name uses when marshalling
        attrs = []
        for oid, values in (
            (NameOID.COUNTRY_NAME, self.country),
            (NameOID.STATE_OR_PROVINCE_NAME, self.province),
            (NameOID.LOCALITY_NAME, self.locality),
            (NameOID.ORGANIZATION_NAME, self.organization),
            (NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
        ):
            attrs += [x509.NameAttribute(oid, v) for v in values]
        if self.common_name:
            attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, self.common_name))
        return x509.Name(attrs)


@dataclass
class CertificateRequestSpec:
    subject: DistinguishedName
    names: NameSet
    window: ValidityWindow
    serial: int
    is_ca: bool = False
    key_usage: frozenset = frozenset({"key_encipherment", "digital_signature"})
    server_auth: bool = True


@dataclass
class IssuerSpec:
    subject: DistinguishedName
    key: KeyMaterial
    window: ValidityWindow
    serial: int


@dataclass
class IssuedCertificate:
    certificate: x509.Certificate
    der: bytes
    pem: bytes
    intermediate: Optional[x509.Certificate] = None


@dataclass
class X509Meta:
    not_before: str
    not_after: str
    serial: str
    sha256: str
    sig_alg: str
    pubkey_algo: str
    pubkey_bits: int
    is_ca: bool = False
    issuer_cn: Optional[str] = None
    subject_cn: Optional[str] = None
    san: List[str] = field(default_factory=list)

# config.py
# Immutable run configuration, built once from parsed CLI arguments.

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Tuple

from .keys import DEFAULT_KEY_SIZE
from .models import DistinguishedName, IPAddress
from .resolver import DNS_TIMEOUT, default_common_name

DEFAULT_EXPIRES = timedelta(hours=8760)


@dataclass(frozen=True)
class IssueConfig:
    cert_path: str
    key_path: str
    subject: DistinguishedName
    key_size: int = DEFAULT_KEY_SIZE
    dns_names: Tuple[str, ...] = ()
    ip_addresses: Tuple[IPAddress, ...] = ()
    interfaces: Tuple[str, ...] = ()
    expires: timedelta = DEFAULT_EXPIRES
    wednesday_expiry: bool = False
    resolve: bool = True
    dns_timeout: float = DNS_TIMEOUT
    two_tier: bool = True
    check_reuse: bool = True
    bundle_key: bool = False
    now: Optional[datetime] = field(default=None)

    @property
    def to_stdout(self) -> bool:
        return self.cert_path in ("-", "/dev/stdout")

    @classmethod
    def from_args(cls, args) -> "IssueConfig":
        subject = DistinguishedName(
            common_name=args.CN or default_common_name(),
            organization=list(args.O or []),
            organizational_unit=list(args.OU or []),
            country=list(args.C or []),
            province=list(args.ST or []),
            locality=list(args.L or []),
        )
        return cls(
            cert_path=args.path,
            key_path=args.key,
            subject=subject,
            key_size=args.key_size,
            dns_names=tuple(args.dns or ()),
            ip_addresses=tuple(args.ip or ()),
            interfaces=tuple(args.interface or ()),
            expires=args.expires,
            wednesday_expiry=args.wednesday_expiry,
            resolve=not args.no_resolve,
            dns_timeout=args.dns_timeout,
            two_tier=not args.flat,
            check_reuse=not (args.force or args.flat),
            bundle_key=args.bundle_key,
            now=args.now,
        )

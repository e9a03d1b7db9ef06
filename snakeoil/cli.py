# cli.py
# Argument parser and entrypoints wired to ops modules.

import argparse
import ipaddress
import logging

import jsonschema

from .cert_ops import cert_issue, cert_show
from .config import IssueConfig
from .errors import ReportError, SnakeoilError
from .keys import DEFAULT_KEY_SIZE
from .render import output
from .resolver import DNS_TIMEOUT
from .serde.validate import validate_doc
from .utils import parse_duration, parse_rfc3339

logger = logging.getLogger("snakeoil")

EXIT_OK = 0
EXIT_REUSED = 1  # valid certificate already in place, nothing written
EXIT_FAILURE = 2
MIN_KEY_SIZE = 1024

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _duration(s: str):
    try:
        d = parse_duration(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))
    if d.total_seconds() <= 0:
        raise argparse.ArgumentTypeError(f"duration must be positive: {s!r}")
    return d


def _ip(s: str):
    try:
        return ipaddress.ip_address(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an IP address: {s!r}")


def _timestamp(s: str):
    try:
        return parse_rfc3339(s)
    except (ValueError, OverflowError):
        raise argparse.ArgumentTypeError(f"not an RFC3339 timestamp: {s!r}")


def _key_size(s: str):
    try:
        bits = int(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {s!r}")
    if bits < MIN_KEY_SIZE:
        raise argparse.ArgumentTypeError(f"RSA keys must be at least {MIN_KEY_SIZE} bits, got {bits}")
    return bits


def build_parser():
    p = argparse.ArgumentParser(
        prog="snakeoil",
        description="Issue self-signed TLS server certificates for this host"
    )
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-v info, -vv debug)")
    p.add_argument("--output", choices=["json","table","yaml"], default="json", help="Report format")
    p.add_argument("-q", "--quiet", action="store_true", help="Do not print a report")
    sub = p.add_subparsers(dest="cmd", required=True)

    c_issue = sub.add_parser("issue", help="Write a certificate to PATH unless a valid one is already there")
    c_issue.add_argument("path", metavar="PATH", help="Certificate output path, '-' for stdout")
    c_issue.add_argument("--key", required=True, help="RSA private key (created if missing)")
    c_issue.add_argument("--key-size", type=_key_size, default=DEFAULT_KEY_SIZE, help="Size of a newly generated key")
    c_issue.add_argument("--CN", default=None, help="The fully qualified domain name of the server (default: hostname)")
    c_issue.add_argument("--O", action="append", default=[], help="Name of organization")
    c_issue.add_argument("--OU", action="append", default=[], help="Division or department in organization")
    c_issue.add_argument("--C", action="append", default=[], help="Two letter country code")
    c_issue.add_argument("--ST", action="append", default=[], help="State, province or county")
    c_issue.add_argument("--L", action="append", default=[], help="City")
    c_issue.add_argument("--expires", type=_duration, default="8760h", help="Lifetime, e.g. 8760h or 720h30m")
    c_issue.add_argument("--wednesday-expiry", action="store_true",
                         help="Round the expiry forward to the next Wednesday 11:00 UTC")
    c_issue.add_argument("--dns", action="append", default=[], help="DNS name to add to the SAN")
    c_issue.add_argument("--ip", "--address", dest="ip", type=_ip, action="append", default=[],
                         help="Address to add to the SAN")
    c_issue.add_argument("--interface", action="append", default=[], help="Interface to scan for addresses")
    c_issue.add_argument("--no-resolve", action="store_true", help="Skip reverse DNS of the collected addresses")
    c_issue.add_argument("--dns-timeout", type=float, default=DNS_TIMEOUT, help="Seconds allowed per DNS lookup")
    c_issue.add_argument("--flat", action="store_true",
                         help="Plain self-signed certificate, no intermediate issuer (implies --force)")
    c_issue.add_argument("--force", action="store_true", help="Always regenerate, do not inspect PATH")
    c_issue.add_argument("--bundle-key", action="store_true", help="Append the private key after the certificate")
    c_issue.add_argument("--now", type=_timestamp, default=None, help=argparse.SUPPRESS)
    c_issue.set_defaults(func=cmd_issue)

    c_show = sub.add_parser("show", help="Summarize a PEM certificate")
    c_show.add_argument("path", metavar="PATH")
    c_show.set_defaults(func=cmd_show)

    return p


def _report(args, doc, kind):
    try:
        validate_doc(doc, "v1", kind)
    except jsonschema.ValidationError as e:
        raise ReportError(f"{kind} document failed validation: {e.message}") from e
    if not args.quiet:
        output(doc, args.output)


def cmd_issue(args):
    cfg = IssueConfig.from_args(args)
    result = cert_issue(cfg)
    if not cfg.to_stdout:
        _report(args, result.as_doc(), "report")
    return EXIT_REUSED if result.action == "reused" else EXIT_OK


def cmd_show(args):
    _report(args, cert_show(args.path), "certificate")
    return EXIT_OK


def configure_logging(verbosity: int):
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    try:
        return args.func(args)
    except SnakeoilError as e:
        logger.error("%s", e)
        return EXIT_FAILURE

"""Self-signed TLS server certificates for the local host."""

__version__ = "0.3.0"

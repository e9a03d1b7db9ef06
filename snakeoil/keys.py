# keys.py
# RSA key file handling: load an existing PEM key or create one on first use.

import logging
import os

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import ConfigurationError, KeyMaterialError
from .models import KeyMaterial

logger = logging.getLogger(__name__)

DEFAULT_KEY_SIZE = 4096


def key_pem(key: KeyMaterial) -> bytes:
    return key.private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,  # "RSA PRIVATE KEY"
        encryption_algorithm=serialization.NoEncryption(),
    )


def generate_key(key_size: int = DEFAULT_KEY_SIZE) -> KeyMaterial:
    try:
        priv = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    except ValueError as e:
        raise KeyMaterialError(f"cannot generate a {key_size}-bit RSA key: {e}") from e
    return KeyMaterial(priv, created=True)


def load_key(path: str) -> KeyMaterial:
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ConfigurationError(f"cannot read key file {path}: {e}") from e
    try:
        priv = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as e:
        raise KeyMaterialError(f"{path} does not contain an unencrypted PEM private key: {e}") from e
    if not isinstance(priv, rsa.RSAPrivateKey):
        raise KeyMaterialError(f"{path} holds a {type(priv).__name__}, only RSA keys are supported")
    return KeyMaterial(priv, path=path)


def load_or_create_key(path: str, key_size: int = DEFAULT_KEY_SIZE) -> KeyMaterial:
    """Load the key at `path`, generating and saving a new one if the file is absent."""
    if os.path.exists(path):
        return load_key(path)

    logger.info("generating %d-bit RSA key at %s", key_size, path)
    key = generate_key(key_size)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(key_pem(key))
    except OSError as e:
        raise ConfigurationError(f"cannot write key file {path}: {e}") from e
    return KeyMaterial(key.private_key, path=path, created=True)

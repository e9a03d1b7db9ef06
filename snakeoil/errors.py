# errors.py
# Fatal error types. Anything raised from here ends the run with exit code 2.


class SnakeoilError(Exception):
    """Base class for errors that terminate an invocation."""


class ConfigurationError(SnakeoilError):
    """Bad input: missing/unreadable files, unknown interfaces, bad flags."""


class InterfaceNotFound(ConfigurationError):
    def __init__(self, name: str):
        super().__init__(f"network interface not found: {name}")
        self.name = name


class InterfaceQueryError(ConfigurationError):
    def __init__(self, name: str, cause: Exception):
        super().__init__(f"cannot query addresses of interface {name}: {cause}")
        self.name = name
        self.cause = cause


class KeyMaterialError(SnakeoilError):
    """Key file exists but does not hold a usable RSA private key."""


class SigningError(SnakeoilError):
    """Certificate could not be built or signed."""


class ReportError(SnakeoilError):
    """A summary document did not match its packaged schema."""

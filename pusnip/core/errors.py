# pusnip/core/errors.py

from typing import Optional


class PusnipError(Exception):
    """Base class for every failure a registration or refresh can report."""
    pass


class ConfigError(PusnipError):
    """The mapping file is missing or cannot be parsed."""
    pass


class NotFoundError(PusnipError):
    """The requested name has no entry in the mapping file."""
    pass


class AddressError(PusnipError):
    """The client address is not a valid IPv4 address."""
    pass


class InterfaceNotFoundError(PusnipError):
    """No local interface is bound to the resolved source address."""
    pass


class LockError(PusnipError):
    pass


class LockNotHeldError(LockError):
    """Raised when releasing a lock whose marker does not exist."""
    pass


class StateIOError(PusnipError):
    """Reading or writing a persisted file failed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Error while storing or reading '{path}': {reason}")


class CommandError(PusnipError):
    """An external command exited non-zero or could not be started."""

    def __init__(self, command: str, code: Optional[int], stdout: str, stderr: str):
        self.command = command
        self.code = code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"Command execution error: {command}\n"
            f"Exit Code: {code}\nStderr: {stderr}\nStdout: {stdout}"
        )


class RuleInsertionError(CommandError):
    """An SNAT rule could not be added; earlier rules stay live."""

    def __init__(self, cause: CommandError):
        super().__init__(cause.command, cause.code, cause.stdout, cause.stderr)
        self.args = (f"refresh_nftables: adding rule : {cause}",)

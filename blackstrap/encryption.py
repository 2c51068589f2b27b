from __future__ import annotations

import logging

from .errors import (
    ConfigurationError,
    DeviceBusy,
    FormatFailed,
    PassphraseMismatch,
    ToolInvocationError,
    WrongPassphrase,
)
from .lib.tools import CryptoTool
from .models import EncryptedContainer

logger = logging.getLogger(__name__)

BOOT_MAPPED_NAME = "cryptboot"
DEFAULT_ROOT_MAPPED_NAME = "cryptlvm"

# cryptsetup(8) exit codes
EXIT_WRONG_PASSPHRASE = 2
EXIT_DEVICE_BUSY = 5


class Passphrase:
    """A secret that never renders itself.

    ``repr``/``str`` are masked so the value cannot leak into logs, tracebacks
    or the run record. Call ``reveal()`` only at the point of handing it to
    cryptsetup's stdin.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        if not value:
            raise ConfigurationError("Passphrase must not be empty")
        self._value = value

    def reveal(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return "Passphrase('********')"

    def __str__(self) -> str:
        return "********"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Passphrase):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)


def confirm_passphrase(first: str, second: str) -> Passphrase:
    """Both entries must match exactly. There is no retry; the caller re-prompts if it wants to."""

    if not first:
        raise ConfigurationError("Passphrase must not be empty")
    if first != second:
        raise PassphraseMismatch("Passphrases do not match")
    return Passphrase(first)


class EncryptionStager:
    def __init__(self, crypto: CryptoTool) -> None:
        self.crypto = crypto

    def format(self, partition: str, version: int, passphrase: Passphrase, *, mapped_name: str) -> EncryptedContainer:
        if version not in (1, 2):
            raise ConfigurationError(f"Unsupported LUKS version: {version}")

        logger.info("Formatting %s as LUKS%d", partition, version)
        r = self.crypto.luks_format(partition, version, passphrase.reveal())
        if r.returncode != 0:
            raise FormatFailed(r.argv, r.returncode, r.stderr, message=f"luksFormat of {partition} failed")

        return EncryptedContainer(partition=partition, luks_version=version, mapped_name=mapped_name)

    def open(self, container: EncryptedContainer, passphrase: Passphrase) -> str:
        """Unlock ``container`` and return its /dev/mapper path."""

        if container.is_open:
            return container.mapped_path

        logger.info("Opening %s as %s", container.partition, container.mapped_name)
        r = self.crypto.luks_open(container.partition, container.mapped_name, passphrase.reveal())
        if r.returncode == EXIT_WRONG_PASSPHRASE:
            raise WrongPassphrase(f"No key available for {container.partition} with this passphrase")
        if r.returncode == EXIT_DEVICE_BUSY:
            raise DeviceBusy(r.argv, r.returncode, r.stderr, message=f"{container.partition} is in use")
        if r.returncode != 0:
            raise ToolInvocationError(r.argv, r.returncode, r.stderr)

        container.is_open = True
        return container.mapped_path

    def format_and_open(
        self, partition: str, version: int, passphrase: Passphrase, *, mapped_name: str
    ) -> EncryptedContainer:
        container = self.format(partition, version, passphrase, mapped_name=mapped_name)
        self.open(container, passphrase)
        return container

from __future__ import annotations

from typing import Optional, Sequence


class BlackstrapError(Exception):
    """Base class for every provisioning failure."""


class ConfigurationError(BlackstrapError):
    """Bad device, bad sizes or conflicting options. Raised before anything destructive."""


class InsufficientCapacity(ConfigurationError):
    pass


class InsufficientFreeSpace(ConfigurationError):
    pass


class ToolInvocationError(BlackstrapError):
    """An external tool exited non-zero. Carries the tool's own error text."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: int,
        stderr: str = "",
        message: Optional[str] = None,
    ) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        text = message or f"Command failed ({returncode}): {' '.join(self.argv)}"
        if self.stderr:
            text = f"{text}\n{self.stderr}"
        super().__init__(text)


class FormatFailed(ToolInvocationError):
    pass


class DeviceBusy(ToolInvocationError):
    pass


class PassphraseError(BlackstrapError):
    pass


class PassphraseMismatch(PassphraseError):
    pass


class WrongPassphrase(PassphraseError):
    pass


class StageFailed(BlackstrapError):
    """A pipeline stage failed. The run is over; nothing is rolled back."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"stage {stage} failed: {cause}")

from __future__ import annotations


class IntegrityError(Exception):
    pass


class NoBaseline(IntegrityError):
    """No checksum database has been recorded yet."""


class ManifestFormatError(IntegrityError):
    pass


class PrivilegeError(IntegrityError):
    pass

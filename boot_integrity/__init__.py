"""Boot Integrity: tamper detection for an unencrypted /boot.

A SHA-256 baseline of every regular file under /boot is kept in a root-only
database. ``verify`` reports files added, removed or modified since the last
``update``. It detects; it does not prevent.
"""

from __future__ import annotations

__all__ = []

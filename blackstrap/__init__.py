"""Blackstrap: Arch Linux provisioning onto a single disk.

Core design goals:
- Strict, forward-only stage order (no resume, no rollback)
- Three layouts: plain, LUKS2+LVM with a plain /boot, or an encrypted /boot as well
- Every tool invocation logged; secrets never logged or persisted
- A /boot tamper-detection baseline when /boot is left unencrypted
"""

__all__ = []

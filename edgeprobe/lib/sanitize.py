"""Log sanitization utilities.

Masks client addresses before they reach the logs.
"""

from __future__ import annotations


def mask_ip(ip: str | None) -> str:
    """Mask a client IP for logs: '203.0.113.42' → '203.0.113.x', '2001:db8::1' → '2001:db8:…'."""
    if not ip or ip == "unknown":
        return "[unknown]"
    if ":" in ip:
        groups = [g for g in ip.split(":") if g]
        return ":".join(groups[:2]) + ":…" if len(groups) > 2 else "…"
    parts = ip.split(".")
    if len(parts) != 4:
        return "***"
    return ".".join(parts[:3]) + ".x"

"""Server/node name resolution."""

from __future__ import annotations

import secrets


def generate_node_name(prefix: str, *, token_hex: int = 4) -> str:
    normalized_prefix = prefix.strip() or "os"
    return f"{normalized_prefix}-{secrets.token_hex(token_hex)}"


def resolve_node_name(node_name: str | None, prefix: str) -> str:
    """Return the configured node name, or a generated one when none was given."""
    if node_name is not None and node_name.strip():
        return node_name.strip()
    return generate_node_name(prefix)

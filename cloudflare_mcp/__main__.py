# -*- coding: utf-8 -*-
"""Allow ``python -m cloudflare_mcp``."""

# First-Party
from cloudflare_mcp.server import run

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(run())

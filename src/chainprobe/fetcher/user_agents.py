"""
Desktop user agents for browser sessions.

Only desktop chromium-family agents are used so the agent matches the
chromium engine and the desktop viewport of the session.
"""

from __future__ import annotations

import random
from typing import List, Optional

DESKTOP_AGENTS: List[str] = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0",
]


def pick_user_agent(configured: Optional[str] = None, rng: Optional[random.Random] = None) -> str:
    """Return ``configured`` if set, else a random desktop agent."""
    if configured:
        return configured
    return (rng or random).choice(DESKTOP_AGENTS)

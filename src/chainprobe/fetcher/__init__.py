"""
Browser-side collaborators: session management, page adapter, stealth and network observation.
"""

from .network import NetworkMonitor
from .page_fetcher import PageFetcher

__all__ = ["NetworkMonitor", "PageFetcher"]

"""
Cloudflare dynamic DNS updater.
"""

__version__ = "1.0.0"

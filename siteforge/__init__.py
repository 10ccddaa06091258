"""SiteForge — website artifact generation, production filtering and release."""

__version__ = "0.1.0"

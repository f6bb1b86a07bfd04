"""Remote-control style IPTV channel zapper."""

__version__ = "0.1.0"

__all__ = ["__version__"]

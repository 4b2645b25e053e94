"""Identity acquisition and synchronization for the storefront mini-app."""

__version__ = "1.0.0"

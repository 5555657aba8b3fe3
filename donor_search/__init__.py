"""Interactive search over the donor catalog."""

__version__ = "0.1.0"

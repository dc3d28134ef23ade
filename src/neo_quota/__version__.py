"""Version information for neo-quota-controller."""

__version__ = "0.1.0"

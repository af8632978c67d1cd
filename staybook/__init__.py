"""staybook: booking lifecycle and inventory-hold engine."""

__version__ = "0.3.0"

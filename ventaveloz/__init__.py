"""VentaVeloz restaurant point-of-sale client."""

__version__ = "1.0.0"

"""Gateway between the order store and the Shiprocket shipping API."""
__version__ = "1.0.0"

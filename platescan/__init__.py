"""
platescan - live license plate locator.

Finds plate-shaped regions in a camera feed, waits until one is stable, and
sends a crop to an external recognition service at a limited rate.
"""

__version__ = "0.1.0"

"""Camera bridge: relays camera preview frames to image-processing consumers."""

__version__ = "1.0.0"

"""depsaw: rank build dependencies by how often they trigger rebuilds."""

__version__ = "0.1.0"

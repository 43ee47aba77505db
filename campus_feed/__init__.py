"""Campus feed core: audience visibility and comment thread assembly."""

__version__ = "0.1.0"

"""Client-side data synchronization for the Nest Blue project and cost API."""

__version__ = "0.1.0"

"""Tools for reading, decompressing and extracting Unreal Engine 3 package files."""

__version__ = "0.1.0"
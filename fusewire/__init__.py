"""FUSE wire protocol structures, message buffers, mount options and mount helpers."""

__version__ = "0.1.0"
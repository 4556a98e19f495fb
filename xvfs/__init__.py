"""A small teaching file system: image builder, buffer cache, log, inodes, pipes, console and tools."""

__version__ = "0.1.0"
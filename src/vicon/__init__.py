"""vicon - describe a media conversion, get the commands."""

__version__ = "0.1.0"

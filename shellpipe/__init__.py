"""shellpipe: run shell commands locally or over SSH and pipe them together."""

__version__ = "0.1.0"

"""gnulinwiz — post-installation configuration assistant for GNU/Linux."""

__version__ = "0.1.0"

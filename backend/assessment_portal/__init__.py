"""Assessment portal: role assessment generation, editing and timed taking."""

__version__ = "0.1.0"

"""cafe-watch: incremental monitoring of cafe writer boards."""

__version__ = "0.1.0"

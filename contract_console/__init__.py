"""Interactive operator console for a single managed contract"""

__version__ = "0.1.0"

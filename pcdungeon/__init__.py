"""PC Dungeon catalog and commerce API."""

__version__ = "0.1.0"

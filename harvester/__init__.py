"""Potato Harvester — build and index PotatoVerse packages from source repos."""

__version__ = "0.1.0"

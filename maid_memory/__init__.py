"""Memory extraction engine: facts from conversations merged into per-user vector memories."""

__version__ = "0.1.0"

"""Grade conversion workbench: validate equivalence codes against a curriculum."""

__version__ = "0.1.0"

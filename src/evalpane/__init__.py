"""Live evaluation pane: run a source buffer through an interpreter and line up its values."""

__version__ = "0.1.0"

"""HiveCode: parallel agent workers hosted in tmux, coordinated through files."""

__version__ = "0.3.0"

__all__ = ["__version__"]

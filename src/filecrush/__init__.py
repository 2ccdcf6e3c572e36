"""filecrush: merge many small files into fewer block-sized ones."""

__version__ = "0.1.0"

from .data import FORMATS, iter_entries, iter_text

__all__ = ["FORMATS", "iter_entries", "iter_text"]

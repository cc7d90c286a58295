"""Directory walking and content scanning."""

from .content import TEXT_SNIFF_BYTES, compile_search_term, is_text_file, search_stream
from .tree import ScanLimits, scan_tree

__all__ = [
    "ScanLimits",
    "TEXT_SNIFF_BYTES",
    "compile_search_term",
    "is_text_file",
    "scan_tree",
    "search_stream",
]

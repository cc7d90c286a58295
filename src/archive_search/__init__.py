"""Search files and text across directory trees and nested archives."""

__version__ = "1.0.0"

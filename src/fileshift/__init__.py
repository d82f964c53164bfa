"""
fileshift - in-process file format conversion dispatcher.

Usage:
    fileshift photo.heic --to png     # Convert a file
    fileshift report.pdf              # Pick an output format interactively
    fileshift --engines               # Show conversion engine status
"""

__version__ = "0.1.0"

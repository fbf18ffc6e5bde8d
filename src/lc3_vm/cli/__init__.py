"""
LC-3 VM Command-Line Interface
==============================

- **lc3run**: load LC-3 object images and run them

Implemented as a Click-based CLI application.
"""

__all__ = ["lc3run"]

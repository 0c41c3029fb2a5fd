"""Book Lending Tracker - Core Application Package

This package contains the core application modules including:
- Lending store (library.py)
- Derived listings (views.py)
- CLI interface (main.py)
- Data models (book.py)
- Identifier normalization (identifiers.py)
"""

__version__ = "1.0.0"

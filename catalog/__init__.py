"""Catalog App - Core Application Package

This package contains the core application modules including:
- HTML workflow endpoints (api.py)
- Catalog store logic (library.py)
- CLI interface (main.py)
- Data models and presentation helpers (book.py)
- Form validation (validators.py)
- Database layer (database.py)
"""

"""
Bookshelf - personal library tracking.

Books, shelves and reading progress behind a JWT-authenticated REST API.
"""

__version__ = "1.0.0"

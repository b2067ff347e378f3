"""
Bookshelf Test Suite

Tests are organized into:
- unit/: Unit tests for security, schemas, middleware, mail and repositories
- integration/: API tests through the full application
"""

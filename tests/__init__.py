"""
cachepool Test Suite
====================

Test Organization
-----------------
- tests/unit/          : Fast unit tests on ArrayBackend and mocks (no external dependencies)
- tests/integration/   : Integration tests with testcontainers (real Redis)

Testing Philosophy
------------------
- Unit tests: Fast, isolated, cover the pool semantics and failure policy
- Integration tests: Slower, exercise the Redis driver on a real server
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""

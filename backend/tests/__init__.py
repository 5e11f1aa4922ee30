"""
Test Suite

Structure:
    tests/
    ├── __init__.py         # This file
    ├── conftest.py         # Pytest fixtures
    ├── unit/               # Unit tests
    │   ├── test_domain/    # Model validation
    │   ├── test_engine/    # Engine tests
    │   ├── test_repositories/  # In-memory stores and unit of work
    │   ├── test_services/  # Service layer tests
    │   └── test_utils/     # Utility tests
    └── integration/        # Integration tests
        └── test_api/       # API endpoint tests

To run tests:
    pytest
    pytest backend/tests/unit/
    pytest backend/tests/integration/
"""

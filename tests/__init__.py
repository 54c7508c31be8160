"""
HOMELINK Test Suite

Test Organization:
    tests/
    ├── __init__.py          # This file
    ├── conftest.py          # Shared fixtures
    ├── fixtures/            # Hardware stand-ins (serial port)
    └── unit/                # Unit tests (no hardware, no network)

Running Tests:
    # Run all tests
    pytest tests/

    # Run with coverage
    pytest tests/ --cov=homelink --cov=services --cov-report=html

Requirements:
    pip install -e ".[test]"
"""

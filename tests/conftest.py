"""
Pytest configuration.

Standard test utilities live in tests/__init__.py.
"""

import os


def pytest_configure(config):
    """Configure pytest markers and keep email channels offline."""
    config.addinivalue_line(
        "markers", "db: marks tests as requiring database (deselect with '-m \"not db\"')"
    )
    os.environ.setdefault("NOTIFICATION_DRY_RUN", "true")

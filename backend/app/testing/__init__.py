"""
Shared test utilities and factories.

Re-exports all factory functions for convenient imports:
    from app.testing import create_template, create_schedule, get_firm_headers
"""

from app.testing.factories import (
    DEFAULT_FIRM_ID,
    create_pattern,
    create_schedule,
    create_template,
    get_firm_headers,
    monthly_rule,
)

__all__ = [
    "DEFAULT_FIRM_ID",
    "create_pattern",
    "create_schedule",
    "create_template",
    "get_firm_headers",
    "monthly_rule",
]

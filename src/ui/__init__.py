"""
User interface components for the finance ledger application.
"""

from .components import (
    setup_sidebar,
    display_upload_section,
    display_month_selector,
    display_error_message,
    format_currency,
)

__all__ = [
    'setup_sidebar',
    'display_upload_section',
    'display_month_selector',
    'display_error_message',
    'format_currency',
]

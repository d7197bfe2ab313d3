"""
Request handlers for the example application.

ExampleHandlers:
    Every example endpoint (path params, query, forms, uploads, JSON,
    date validation, route groups). See handlers/examples.py.
"""

from .examples import ExampleHandlers, register_validators, bookable_date

__all__ = [
    "ExampleHandlers",
    "register_validators",
    "bookable_date",
]

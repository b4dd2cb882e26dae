"""
Pydantic schema definitions for API payloads.

Each domain defines its own request and response models.  Routes that
the storefront calls directly keep the storefront's camelCase field
names through aliases.
"""

"""Directory-wide constants (category keys and normalisation)."""

from bizdirectory.constants.categories import (
    VALID_CATEGORIES,
    LEGACY_CATEGORY_MAP,
    normalize_category,
    validate_category,
)

__all__ = [
    'VALID_CATEGORIES',
    'LEGACY_CATEGORY_MAP',
    'normalize_category',
    'validate_category',
]

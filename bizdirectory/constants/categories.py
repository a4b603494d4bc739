"""Category constants for the business directory.

Boosts compete per category, so every business must carry one of these keys.
"""

# Valid directory category keys
VALID_CATEGORIES = {
    'restaurants',
    'cafes',
    'bars',
    'hotels',
    'retail',
    'groceries',
    'health',
    'beauty',
    'fitness',
    'automotive',
    'home-services',
    'professional-services',
    'education',
    'entertainment',
    'other',
}

# Legacy key -> current key mapping
LEGACY_CATEGORY_MAP = {
    'restaurant': 'restaurants',
    'food': 'restaurants',
    'dining': 'restaurants',
    'coffee': 'cafes',
    'cafe': 'cafes',
    'pubs': 'bars',
    'nightlife': 'bars',
    'lodging': 'hotels',
    'hotel': 'hotels',
    'shopping': 'retail',
    'shops': 'retail',
    'supermarket': 'groceries',
    'grocery': 'groceries',
    'medical': 'health',
    'dental': 'health',
    'salon': 'beauty',
    'spa': 'beauty',
    'gym': 'fitness',
    'car-repair': 'automotive',
    'auto': 'automotive',
    'plumbing': 'home-services',
    'cleaning': 'home-services',
    'legal': 'professional-services',
    'accounting': 'professional-services',
    'tutoring': 'education',
    'events': 'entertainment',
}


def normalize_category(category: str) -> str:
    """Normalize a category key.

    - Lowercases and strips whitespace
    - Converts legacy keys to their current equivalents
    - Returns the key as-is if it's already valid or unknown
    """
    key = category.lower().strip()
    return LEGACY_CATEGORY_MAP.get(key, key)


def validate_category(category: str) -> tuple[str, str | None]:
    """Validate and normalize a category.

    Returns:
        (normalized_key, error_message)
        error_message is None when valid.
    """
    normalized = normalize_category(category)
    if normalized not in VALID_CATEGORIES:
        return normalized, (
            f"Invalid category '{category}'. "
            f"Valid categories: {', '.join(sorted(VALID_CATEGORIES))}"
        )
    return normalized, None

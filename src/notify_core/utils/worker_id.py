"""Worker ID generation using coolnames for unique, memorable identifiers."""

from coolname import generate_slug


def generate_worker_id(prefix: str = "") -> str:
    """Generate a unique, memorable worker ID.

    Args:
        prefix: Optional prefix to prepend to the generated ID (e.g., "notifications-consumer")

    Returns:
        A worker ID in the format "prefix-word1-word2-word3" or "word1-word2-word3"

    Examples:
        >>> generate_worker_id()
        'brave-golden-tiger'
        >>> generate_worker_id("notifications-consumer")
        'notifications-consumer-swift-blue-falcon'
    """
    slug = generate_slug(3)

    if prefix:
        return f"{prefix}-{slug}"

    return slug

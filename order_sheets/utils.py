"""
Utility functions for Order Sheets
"""

import re
from typing import Optional


def format_size(size: Optional[str]) -> str:
    """
    Normalise a free-text size descriptor for the details page
    "m, l" -> "M / L", "  xl " -> "XL", blank -> "N/A"
    """
    if size is None:
        return "N/A"

    tokens = [tok for tok in re.split(r'[\s,/|]+', str(size)) if tok]
    if not tokens:
        return "N/A"

    return " / ".join(tok.upper() for tok in tokens)


def truncate_text(text: str, max_length: int) -> str:
    """Shorten text for list views, marking the cut with an ellipsis"""
    if len(text) <= max_length:
        return text
    return text[:max_length] + '...'


def sanitize_group_key(group_key: str, substitute: str = '_') -> str:
    """Replace every non-alphanumeric character of a grouping key"""
    return re.sub(r'[^A-Za-z0-9]', substitute, group_key)


def order_filename(order_id: str, ext: str = 'pdf') -> str:
    """Artifact name for a single order document"""
    return safe_filename(f"order-{order_id}.{ext}")


def group_filename(group_key: str, ext: str = 'pdf') -> str:
    """Artifact name for a combined document"""
    return f"orders-{sanitize_group_key(group_key)}.{ext}"


def safe_filename(filename: str) -> str:
    """Generate safe filename by removing/replacing problematic characters"""
    # Remove path separators and other problematic chars
    safe_name = re.sub(r'[<>:"/\\|?*]', '_', filename)
    # Remove control characters
    safe_name = re.sub(r'[\x00-\x1f\x7f]', '', safe_name)
    if len(safe_name) > 200:
        stem, dot, ext = safe_name.rpartition('.')
        safe_name = stem[:200 - len(ext) - 1] + dot + ext

    return safe_name or 'unnamed_file'

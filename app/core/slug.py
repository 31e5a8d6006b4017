"""Slug and category-name helpers shared by the category service and migrations."""
import re
from typing import Callable, Optional

NAME_MAX_LENGTH = 100
NAME_PATTERN = re.compile(r"^[A-Za-z0-9\s\-_&()]+$")


def slugify(name: str) -> str:
    """
    Turn a category name into a URL-safe slug.

    "Fresh  Fruits & Veg" -> "fresh-fruits-veg"
    """
    slug = name.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def unique_slug(base_slug: str, is_taken: Callable[[str], bool]) -> str:
    """Append -1, -2, ... to base_slug until is_taken returns False."""
    slug = base_slug
    counter = 1
    while is_taken(slug):
        slug = f"{base_slug}-{counter}"
        counter += 1
    return slug


def build_path(parent_path: Optional[str], slug: str) -> str:
    if parent_path is None:
        return f"/{slug}"
    return f"{parent_path}/{slug}"

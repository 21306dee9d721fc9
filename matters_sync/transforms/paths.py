"""Path and slug helpers shared by the sync, media and link passes."""

import re

_SLUG_STRIP = re.compile(r'[^\w\s-]', re.UNICODE)


def slugify(text: str) -> str:
    """Generate a URL-safe slug, keeping non-Latin letters (CJK, Cyrillic, ...).

    Args:
        text: Title or other free text

    Returns:
        Lowercase slug with words joined by single hyphens
    """
    slug = _SLUG_STRIP.sub('', text.lower()).replace('_', ' ')
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'-{2,}', '-', slug)
    return slug.strip('-')


def relative_path(from_file: str, to_path: str) -> str:
    """Express ``to_path`` relative to the directory holding ``from_file``.

    Both paths are project-relative and use forward slashes.

    >>> relative_path("a/b/c.md", "assets/x.jpg")
    '../../assets/x.jpg'
    """
    from_dirs = from_file.split('/')[:-1]
    to_parts = to_path.split('/')

    common = 0
    while (
        common < len(from_dirs)
        and common < len(to_parts) - 1
        and from_dirs[common] == to_parts[common]
    ):
        common += 1

    up = '../' * (len(from_dirs) - common)
    down = '/'.join(to_parts[common:])
    return (up + down) or to_path

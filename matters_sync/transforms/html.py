"""HTML to Markdown conversion for remote article bodies."""

import re

from markdownify import markdownify as md


def html_to_markdown(html: str) -> str:
    """Convert article HTML to Markdown, leaving remote image URLs intact."""
    if not html:
        return ""
    markdown = md(html, heading_style="ATX", bullets="-", code_language_callback=_code_language)
    # markdownify pads block elements generously
    markdown = re.sub(r'\n{3,}', '\n\n', markdown)
    return markdown.strip() + "\n"


def _code_language(el) -> str:
    code = el.find("code")
    classes = (code.get("class") if code is not None else None) or []
    for cls in classes:
        if cls.startswith("language-"):
            return cls[len("language-"):]
    return ""

"""
Extraction of the generated HTML document from a model reply.
"""

import re
from typing import Optional

_HTML_BLOCK = re.compile(r"```html\n([\s\S]*?)\n```")


def extract_html_content(text: str) -> Optional[str]:
    """
    Return the first ```html fenced block in text, trimmed.

    Returns None when the reply has no such block (e.g. the model only
    asked a clarifying question).
    """
    if not text:
        return None
    match = _HTML_BLOCK.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None

"""
Normalization of raw backend output into plain CSV text.
"""

import re

# First fenced block, optionally tagged with a tabular/plain-text language
_FENCED_BLOCK = re.compile(
    r"```(?:csv|tsv|text|plaintext)?\s*([\s\S]*?)\s*```",
    re.IGNORECASE,
)


def sanitize_csv(text: str | None) -> str:
    """
    Strip code-fence markers and surrounding whitespace from model output.

    If the text contains a fenced block, the inner content of the first block
    is returned; otherwise the whole text is trimmed. Never raises, and
    sanitizing already-sanitized text returns it unchanged.

    Args:
        text: Raw text generated by a backend (may be None).

    Returns:
        Clean CSV text, or an empty string for empty input.
    """
    if not text:
        return ""
    if "```" in text:
        match = _FENCED_BLOCK.search(text)
        if match:
            return match.group(1).strip()
    return text.strip()

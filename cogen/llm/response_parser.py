"""Response parsing utilities for LLM output.

Extracts the generated artifact from raw LLM responses.
"""

from __future__ import annotations

import re
from typing import Optional


def extract_code_blocks(text: str, language: Optional[str] = None) -> list[str]:
    """Extract fenced code blocks from LLM output.

    Args:
        text: Raw LLM response.
        language: If specified, only return blocks with this language tag.

    Returns:
        List of code block contents (without fences).
    """
    if language:
        pattern = rf"```{re.escape(language)}\s*\n(.*?)```"
    else:
        pattern = r"```(?:[\w+-]+)?\s*\n(.*?)```"

    matches = re.findall(pattern, text, re.DOTALL)
    return [m.strip() for m in matches]


def extract_artifact(text: str) -> str:
    """First fenced block if present, otherwise the stripped response."""
    blocks = extract_code_blocks(text)
    if blocks:
        return blocks[0]
    return text.strip()


def normalize_error_signature(error_text: str) -> str:
    """Normalize an error message for feedback deduplication.

    Strips file paths, line numbers, and memory addresses so that
    the same logical error produces the same signature.
    """
    sig = error_text.strip()
    sig = re.sub(r'(/[\w./-]+|\w:\\[\w.\\-]+)', '<PATH>', sig)
    sig = re.sub(r'line \d+', 'line <N>', sig, flags=re.IGNORECASE)
    sig = re.sub(r':\d+:\d+', ':<N>:<N>', sig)
    sig = re.sub(r'0x[0-9a-fA-F]+', '<ADDR>', sig)
    sig = re.sub(r'\s+', ' ', sig).strip()
    return sig

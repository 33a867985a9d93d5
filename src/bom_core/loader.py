"""
Input handling for BOM and catalog sources.

Abstracts where the CSV text comes from (pasted text, an uploaded file or a
URL) from the parsing itself. Failures to obtain the text are reported in the
returned stats instead of raised, so the UI can show them next to the input.
"""

import logging
from typing import Any

import requests

from src.bom_core.parser import parse_csv_text
from src.bom_core.types import BomLineItem, ParseStats, create_empty_stats

logger = logging.getLogger(__name__)

INPUT_METHODS = ("Paste Text", "Upload File", "From URL")


def _failed(message: str) -> tuple[list[BomLineItem], ParseStats]:
    stats = create_empty_stats()
    stats["errors"].append(message)
    return [], stats


def read_source_text(method: str, data: Any) -> str:
    """
    Returns the raw CSV text behind an input.

    Args:
        method: One of INPUT_METHODS.
        data: The pasted string, a file-like object with `name` and
            `getvalue()` (Streamlit UploadedFile), or a URL.

    Raises:
        ValueError: Unknown method or unusable upload.
        requests.RequestException: The URL could not be fetched.
    """
    if method == "Paste Text":
        return str(data)

    if method == "From URL":
        response = requests.get(str(data).strip(), timeout=10)
        response.raise_for_status()
        return response.content.decode("utf-8-sig", errors="replace")

    if method == "Upload File":
        if not hasattr(data, "getvalue"):
            raise ValueError("Invalid file object provided.")
        content = data.getvalue()
        if isinstance(content, bytes):
            return content.decode("utf-8-sig", errors="replace")
        return str(content)

    raise ValueError(f"Unknown input method: {method}")


def process_input_data(
    method: str, data: Any, source_name: str
) -> tuple[list[BomLineItem], ParseStats]:
    """
    Unified handler for Text, File and URL inputs.

    Args:
        method: The input method ("Paste Text", "From URL", "Upload File").
        data: The raw data associated with the method.
        source_name: A display name for logging and error messages.

    Returns:
        The parsed line items and parsing statistics. When the source cannot be
        read, the items are empty and the reason is in `stats["errors"]`.
    """
    if not data:
        return [], create_empty_stats()

    try:
        text = read_source_text(method, data)
    except (ValueError, requests.RequestException) as e:
        logger.error(f"Error processing {source_name}: {e}")
        return _failed(str(e))

    return parse_csv_text(text, source_name=source_name)

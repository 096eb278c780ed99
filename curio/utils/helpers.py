"""Helper utilities for Curio."""

import base64
import mimetypes
from pathlib import Path
from typing import Optional, Tuple


def extract_json_text(response_text: str) -> str:
    """Strip optional markdown code fences around a JSON payload.

    Args:
        response_text: Raw model output

    Returns:
        Text with leading ```json / ``` and trailing ``` markers removed
    """
    text = response_text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_data_url(data_url: str) -> Tuple[str, str]:
    """Split a base64 data URL into media type and payload.

    Args:
        data_url: String of the form ``data:image/jpeg;base64,<payload>``.
                  A bare base64 payload is treated as JPEG.

    Returns:
        Tuple of (media_type, base64_payload)

    Raises:
        ValueError: If the data URL is not base64 encoded
    """
    if not data_url.startswith("data:"):
        return "image/jpeg", data_url

    header, _, payload = data_url.partition(",")
    if ";base64" not in header:
        raise ValueError("Only base64 data URLs are supported")
    media_type = header[5:].split(";")[0] or "image/jpeg"
    return media_type, payload


def file_to_data_url(path: str) -> str:
    """Read an image file and encode it as a base64 data URL."""
    media_type = mimetypes.guess_type(path)[0] or "image/jpeg"
    payload = base64.b64encode(Path(path).read_bytes()).decode("ascii")
    return f"data:{media_type};base64,{payload}"


def format_price(price: Optional[float]) -> str:
    """Format price for display.

    Args:
        price: Price value

    Returns:
        Formatted price string
    """
    if price is None:
        return "N/A"
    return f"${price:,.0f}"


def format_percentage(value: Optional[float]) -> str:
    """Format percentage for display.

    Args:
        value: Percentage value (0-1)

    Returns:
        Formatted percentage string
    """
    if value is None:
        return "N/A"
    return f"{value * 100:.0f}%"

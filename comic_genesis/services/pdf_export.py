"""
PDF assembly for finished runs.

One image per 150 x 200 mm (3:4) portrait page, each image scaled to fit
the page without distortion and centered.
"""

from __future__ import annotations

import base64
import io
import re

from fpdf import FPDF
from PIL import Image

from comic_genesis.services.storage import LocalMediaStore

PAGE_WIDTH_MM = 150.0
PAGE_HEIGHT_MM = 200.0

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def safe_filename(title: str) -> str:
    """``"My, Comic!!"`` -> ``"my__comic___manga.pdf"``."""
    return f"{_UNSAFE_CHARS.sub('_', title).lower()}_manga.pdf"


def fit_to_page(
    image_width: float,
    image_height: float,
    page_width: float = PAGE_WIDTH_MM,
    page_height: float = PAGE_HEIGHT_MM,
) -> tuple[float, float, float, float]:
    """Return ``(x, y, width, height)`` placing an image centered on the page."""
    aspect_ratio = image_width / image_height
    width = page_width
    height = page_width / aspect_ratio
    if height > page_height:
        height = page_height
        width = page_height * aspect_ratio
    x = (page_width - width) / 2
    y = (page_height - height) / 2
    return x, y, width, height


def build_manga_pdf(images: list[str], title: str) -> bytes:
    pdf = FPDF(orientation="portrait", unit="mm", format=(PAGE_WIDTH_MM, PAGE_HEIGHT_MM))
    pdf.set_auto_page_break(auto=False)
    pdf.set_title(title)

    for encoded in images:
        raw = base64.b64decode(encoded)
        with Image.open(io.BytesIO(raw)) as img:
            picture = img.convert("RGB")
        x, y, width, height = fit_to_page(picture.width, picture.height)
        pdf.add_page()
        pdf.image(picture, x=x, y=y, w=width, h=height)

    return bytes(pdf.output())


def save_manga_pdf(images: list[str], title: str, store: LocalMediaStore) -> tuple[str, str]:
    """Build the PDF and write it through ``store``; returns ``(path, url)``."""
    return store.save_document(build_manga_pdf(images, title), safe_filename(title))

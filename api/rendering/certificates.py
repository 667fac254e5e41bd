"""Certificate rendering - SVG and PDF generation.

This module handles the visual/presentation aspects of certificates:
- serialising a computed layout (see rendering.layout) into SVG
- PDF conversion
- looking up the optional signature and watermark images

Identifier generation, storage and verification live in
services/certificates_service.py.
"""

import base64
import html
import re

from rendering.assets import AssetStore
from rendering.layout import (
    CertificateFields,
    CertificateLayout,
    Element,
    Image,
    Line,
    Rect,
    Text,
    layout_certificate,
)

__all__ = [
    "CertificateFields",
    "build_certificate_svg",
    "render_certificate_pdf",
    "svg_to_pdf",
]

# Helvetica is a PDF base-14 font (always available in PDF viewers).
SANS_FONT = "Helvetica, Arial, sans-serif"

# Distance from the top of a line box to the baseline, as a fraction of the
# font size (Helvetica ascender).
BASELINE_FACTOR = 0.718

# Characters that are not allowed anywhere in an XML 1.0 document
_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def _num(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _escape(text: str) -> str:
    return html.escape(_INVALID_XML_CHARS.sub("", text), quote=True)


def _image_mime(data: bytes) -> str:
    if data.startswith(b"\xff\xd8"):
        return "image/jpeg"
    return "image/png"


def _svg_element(element: Element) -> str:
    match element:
        case Rect():
            return (
                f'<rect x="{_num(element.x)}" y="{_num(element.y)}" '
                f'width="{_num(element.width)}" height="{_num(element.height)}" '
                f'rx="{_num(element.radius)}" ry="{_num(element.radius)}" '
                f'fill="none" stroke="{element.stroke}" '
                f'stroke-width="{_num(element.stroke_width)}"/>'
            )
        case Line():
            return (
                f'<line x1="{_num(element.x1)}" y1="{_num(element.y1)}" '
                f'x2="{_num(element.x2)}" y2="{_num(element.y2)}" '
                f'stroke="{element.stroke}" '
                f'stroke-width="{_num(element.stroke_width)}"/>'
            )
        case Text():
            weight = "bold" if element.bold else "normal"
            center = element.x + element.width / 2
            baseline = element.y + element.size * BASELINE_FACTOR
            return (
                f'<text x="{_num(center)}" y="{_num(baseline)}" '
                f'font-family="{SANS_FONT}" font-size="{_num(element.size)}" '
                f'font-weight="{weight}" fill="{element.color}" '
                f'text-anchor="middle">{_escape(element.content)}</text>'
            )
        case Image():
            encoded = base64.b64encode(element.data).decode("ascii")
            opacity = (
                f' opacity="{_num(element.opacity)}"' if element.opacity < 1 else ""
            )
            return (
                f'<image x="{_num(element.x)}" y="{_num(element.y)}" '
                f'width="{_num(element.width)}" height="{_num(element.height)}" '
                f'preserveAspectRatio="xMidYMin meet"{opacity} '
                f'xlink:href="data:{_image_mime(element.data)};base64,{encoded}"/>'
            )
    raise TypeError(f"Unsupported layout element: {type(element).__name__}")


def build_certificate_svg(layout: CertificateLayout) -> str:
    """Serialise a computed layout into a standalone SVG document.

    Elements are emitted in layout order, so earlier elements (the watermark)
    are painted underneath later ones.
    """
    width = _num(layout.width)
    height = _num(layout.height)
    body = "\n  ".join(_svg_element(element) for element in layout.elements)

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" viewBox="0 0 {width} {height}" width="{width}pt" height="{height}pt">
  <rect width="{width}" height="{height}" fill="#ffffff"/>
  {body}
</svg>"""


def svg_to_pdf(svg_content: str) -> bytes:
    """Convert SVG string to PDF bytes using CairoSVG.

    Args:
        svg_content: SVG string to convert

    Returns:
        PDF content as bytes

    Raises:
        RuntimeError: If cairo library is not installed on the system
    """
    try:
        import cairosvg
    except OSError as e:
        if "cairo" in str(e).lower():
            raise RuntimeError(
                "PDF generation requires the Cairo library. "
                "On macOS: brew install cairo. "
                "On Ubuntu/Debian: apt-get install libcairo2-dev. "
                "On Alpine: apk add cairo-dev."
            ) from e
        raise

    return cairosvg.svg2pdf(bytestring=svg_content.encode("utf-8"))


def render_certificate_pdf(
    fields: CertificateFields,
    qr_png: bytes,
    assets: AssetStore,
    *,
    signature_asset: str | None = "signature.png",
    watermark_asset: str | None = "watermark.png",
) -> bytes:
    """Render a certificate to PDF bytes.

    Missing signature/watermark images are left out of the document; they
    never fail the render. Blocking (CPU and file reads), so call it from a
    worker thread inside the event loop.
    """
    layout = layout_certificate(
        fields,
        qr_png,
        signature=assets.find_asset(signature_asset),
        watermark=assets.find_asset(watermark_asset),
    )
    return svg_to_pdf(build_certificate_svg(layout))

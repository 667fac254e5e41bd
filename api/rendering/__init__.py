"""Rendering module for presentation concerns.

This module handles all presentation/rendering logic:
- Page layout of the certificate (pure, no I/O)
- SVG serialisation and PDF conversion
- QR code encoding of the verification link
- Optional branding assets

This separates presentation concerns from business logic in services.
"""

from rendering.assets import AssetStore
from rendering.certificates import (
    CertificateFields,
    build_certificate_svg,
    render_certificate_pdf,
    svg_to_pdf,
)
from rendering.layout import layout_certificate
from rendering.qr import encode_qr_png

__all__ = [
    "AssetStore",
    "CertificateFields",
    "build_certificate_svg",
    "encode_qr_png",
    "layout_certificate",
    "render_certificate_pdf",
    "svg_to_pdf",
]

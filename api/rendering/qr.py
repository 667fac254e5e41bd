"""QR code generation for certificate verification links."""

from io import BytesIO

import qrcode
from qrcode.image.pil import PilImage


def encode_qr_png(url: str) -> bytes:
    """Encode ``url`` as a PNG QR code (error correction level H)."""
    if not url:
        raise ValueError("Cannot encode an empty URL")

    qr = qrcode.QRCode(
        version=None,  # Smallest version that fits the data
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=10,
        border=1,
        image_factory=PilImage,
    )
    qr.add_data(url)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()

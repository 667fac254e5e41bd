"""Pure page layout for certificates.

Every section is a function that takes a ``Cursor`` and returns the drawing
elements it produced together with the advanced cursor. Nothing here touches
the filesystem or a graphics backend; ``rendering.certificates`` turns the
resulting ``CertificateLayout`` into SVG and then PDF.

Units are PDF points on an A4 page. Vertical rhythm follows a line height of
1.15 x the current font size, and ``Cursor.move_down(n)`` advances ``n`` such
lines. Text is measured with a fixed average glyph width per weight, so
wrapping is deterministic and independent of installed fonts.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from functools import partial

PAGE_WIDTH = 595.28
PAGE_HEIGHT = 841.89
MARGIN_TOP = 60.0
MARGIN_BOTTOM = 60.0
MARGIN_LEFT = 50.0
MARGIN_RIGHT = 50.0
CONTENT_WIDTH = PAGE_WIDTH - MARGIN_LEFT - MARGIN_RIGHT
MID_X = PAGE_WIDTH / 2

LINE_HEIGHT_FACTOR = 1.15
DEFAULT_FONT_SIZE = 12.0

# Average advance width as a fraction of the font size (Helvetica metrics)
GLYPH_WIDTH_REGULAR = 0.5
GLYPH_WIDTH_BOLD = 0.55

GOLD = "#d4af37"
DARK_BLUE = "#1d3b8b"
GREY = "#6f6f6f"
BLACK = "#000000"
BORDER_GREY = "#aaaaaa"
DIVIDER_GREY = "#dddddd"

WATERMARK_OPACITY = 0.12
METADATA_COLUMN_WIDTH = 150.0
ISSUER_PLACEHOLDER = "Organization"

# Overflow handling: gaps shrink to MIN_SPACING first, then text is scaled
MIN_SPACING = 0.35
TEXT_SCALE_STEP = 0.9
MIN_TEXT_SCALE = 0.3

PARAGRAPH_TEMPLATE = (
    '{name} has successfully completed the requirements for the course "'
    '{resource}" demonstrating dedication and proficiency. '
    "This certificate is issued as official recognition of the achievement."
)


# ============ Drawing elements ============


@dataclass(frozen=True, slots=True)
class Rect:
    x: float
    y: float
    width: float
    height: float
    stroke: str
    stroke_width: float
    radius: float = 0.0


@dataclass(frozen=True, slots=True)
class Line:
    x1: float
    y1: float
    x2: float
    y2: float
    stroke: str
    stroke_width: float = 1.0


@dataclass(frozen=True, slots=True)
class Text:
    """A single, already wrapped line of text centred in ``[x, x + width]``.

    ``y`` is the top of the line box, not the baseline.
    """

    x: float
    y: float
    width: float
    content: str
    size: float
    color: str
    bold: bool = False


@dataclass(frozen=True, slots=True)
class Image:
    """Raster image scaled to fit its box, aspect ratio preserved."""

    x: float
    y: float
    width: float
    height: float
    data: bytes = field(repr=False)
    opacity: float = 1.0


Element = Rect | Line | Text | Image


@dataclass(frozen=True, slots=True)
class CertificateFields:
    """Everything printed on a certificate."""

    recipient_name: str
    recipient_email: str
    resource_name: str
    issuer_name: str | None
    certificate_id: str
    issued_at: datetime
    verify_url: str


@dataclass(frozen=True, slots=True)
class CertificateLayout:
    width: float
    height: float
    elements: tuple[Element, ...]


# ============ Cursor & measuring ============


def line_height(font_size: float) -> float:
    return font_size * LINE_HEIGHT_FACTOR


@dataclass(frozen=True, slots=True)
class Cursor:
    """Vertical position in the flow plus the current font size.

    ``spacing`` scales every ``move_down`` gap; ``gaps`` accumulates the
    unscaled height of those gaps so a layout that overflows the page can be
    re-run with tighter spacing. ``text_scale`` multiplies every font size
    drawn through ``draw_text``, and with it the line heights and gaps.
    """

    y: float
    font_size: float = DEFAULT_FONT_SIZE
    spacing: float = 1.0
    gaps: float = 0.0
    text_scale: float = 1.0

    def move_down(self, lines: float = 1.0) -> Cursor:
        gap = lines * line_height(self.font_size)
        return replace(self, y=self.y + gap * self.spacing, gaps=self.gaps + gap)

    def advance(self, points: float) -> Cursor:
        return replace(self, y=self.y + points)

    def with_font_size(self, font_size: float) -> Cursor:
        return replace(self, font_size=font_size)


Step = tuple[tuple[Element, ...], Cursor]


def measure_text(text: str, size: float, *, bold: bool = False) -> float:
    """Approximate rendered width of ``text`` in points."""
    glyph = GLYPH_WIDTH_BOLD if bold else GLYPH_WIDTH_REGULAR
    return len(text) * size * glyph


def wrap_text(text: str, size: float, width: float, *, bold: bool = False) -> list[str]:
    """Greedy word wrap; words wider than ``width`` are split by character."""
    glyph = (GLYPH_WIDTH_BOLD if bold else GLYPH_WIDTH_REGULAR) * size
    max_chars = max(1, math.floor(width / glyph))

    lines: list[str] = []
    current = ""
    for word in text.split():
        while len(word) > max_chars:
            if current:
                lines.append(current)
                current = ""
            lines.append(word[:max_chars])
            word = word[max_chars:]
        if not word:
            continue
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars:
            current = candidate
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


def format_issue_date(issued_at: datetime) -> str:
    """M/D/YYYY without zero padding."""
    return f"{issued_at.month}/{issued_at.day}/{issued_at.year}"


# ============ Primitive steps ============


def draw_text(
    cursor: Cursor,
    text: str,
    *,
    size: float,
    color: str,
    bold: bool = False,
    x: float = MARGIN_LEFT,
    width: float = CONTENT_WIDTH,
    line_gap: float = 0.0,
) -> Step:
    """Wrap ``text`` into ``width`` and advance past it."""
    size *= cursor.text_scale
    line_gap *= cursor.text_scale
    cursor = cursor.with_font_size(size)
    step_height = line_height(size) + line_gap
    elements: list[Element] = []
    y = cursor.y
    for content in wrap_text(text, size, width, bold=bold):
        elements.append(Text(x, y, width, content, size, color, bold))
        y += step_height
    return tuple(elements), replace(cursor, y=y)


def draw_columns(
    cursor: Cursor,
    cells: Sequence[tuple[float, str]],
    *,
    size: float,
    color: str,
    bold: bool = False,
    width: float = METADATA_COLUMN_WIDTH,
) -> Step:
    """Draw ``(x, text)`` cells on one row; advance past the tallest cell."""
    elements: list[Element] = []
    bottom = cursor.y
    for x, text in cells:
        drawn, after = draw_text(
            cursor, text, size=size, color=color, bold=bold, x=x, width=width
        )
        elements.extend(drawn)
        bottom = max(bottom, after.y)
    row = cursor.with_font_size(size * cursor.text_scale)
    return tuple(elements), replace(row, y=bottom)


def draw_rule(
    cursor: Cursor,
    x1: float,
    x2: float,
    *,
    color: str,
    stroke_width: float = 1.0,
) -> Step:
    """Horizontal line at the cursor; does not advance."""
    return (Line(x1, cursor.y, x2, cursor.y, color, stroke_width),), cursor


def draw_image(
    cursor: Cursor,
    data: bytes,
    x: float,
    *,
    width: float,
    height: float,
) -> Step:
    return (Image(x, cursor.y, width, height, data),), cursor.advance(height)


# ============ Certificate sections ============


def _watermark(watermark: bytes | None, cursor: Cursor) -> Step:
    if watermark is None:
        return (), cursor
    image = Image(MID_X - 150, 180, 300, 300, watermark, opacity=WATERMARK_OPACITY)
    return (image,), cursor


def _borders(cursor: Cursor) -> Step:
    outer = Rect(25, 25, PAGE_WIDTH - 50, PAGE_HEIGHT - 50, GOLD, 3, radius=15)
    inner = Rect(45, 45, PAGE_WIDTH - 90, PAGE_HEIGHT - 90, BORDER_GREY, 1.5, radius=10)
    return (outer, inner), cursor


def _title(cursor: Cursor) -> Step:
    out: list[Element] = []

    drawn, cursor = draw_text(cursor, "CERTIFICATE", size=18, color=GOLD, bold=True)
    out.extend(drawn)
    cursor = cursor.move_down(0.2)

    drawn, cursor = draw_text(
        cursor, "OF ACHIEVEMENT", size=32, color=DARK_BLUE, bold=True
    )
    out.extend(drawn)
    cursor = cursor.move_down(1)

    drawn, cursor = draw_rule(cursor, MID_X - 130, MID_X + 130, color=GOLD, stroke_width=1.5)
    out.extend(drawn)
    cursor = cursor.move_down(1.8)

    drawn, cursor = draw_text(
        cursor, "THIS IS TO CERTIFY THAT", size=13, color=GREY, bold=True
    )
    out.extend(drawn)
    return tuple(out), cursor.move_down(1)


def _recipient(name: str, cursor: Cursor) -> Step:
    drawn, cursor = draw_text(cursor, name, size=28, color=BLACK, bold=True)
    cursor = cursor.move_down(0.6)
    rule, cursor = draw_rule(cursor, MID_X - 160, MID_X + 160, color=GOLD)
    return drawn + rule, cursor.move_down(1.4)


def _paragraph(name: str, resource: str, cursor: Cursor) -> Step:
    text = PARAGRAPH_TEMPLATE.format(name=name, resource=resource)
    drawn, cursor = draw_text(
        cursor, text, size=13, color=GREY, x=MID_X - 200, width=400, line_gap=4
    )
    return drawn, cursor.move_down(2)


def _resource(resource: str, cursor: Cursor) -> Step:
    drawn, cursor = draw_text(cursor, resource, size=22, color=DARK_BLUE, bold=True)
    cursor = cursor.move_down(2.2)
    rule, cursor = draw_rule(cursor, 90, PAGE_WIDTH - 90, color=DIVIDER_GREY)
    return drawn + rule, cursor.move_down(1.8)


def _metadata(fields: CertificateFields, cursor: Cursor) -> Step:
    columns = (70, MID_X - 75, PAGE_WIDTH - 220)

    captions, cursor = draw_columns(
        cursor,
        list(zip(columns, ("DATE", "EMAIL", "ISSUED BY"))),
        size=11,
        color=GREY,
        bold=True,
    )
    cursor = cursor.move_down(0.8)

    values = (
        format_issue_date(fields.issued_at),
        fields.recipient_email,
        fields.issuer_name or ISSUER_PLACEHOLDER,
    )
    drawn, cursor = draw_columns(
        cursor, list(zip(columns, values)), size=12, color=BLACK, bold=True
    )
    return captions + drawn, cursor.move_down(3.5)


def _signature(signature: bytes | None, cursor: Cursor) -> Step:
    out: list[Element] = []

    # Without a signature image the rule moves up, no gap left behind
    if signature is not None:
        drawn, cursor = draw_image(cursor, signature, MID_X - 60, width=120, height=90)
        out.extend(drawn)
        cursor = cursor.move_down(1.2)

    drawn, cursor = draw_rule(cursor, MID_X - 120, MID_X + 120, color=GOLD)
    out.extend(drawn)
    cursor = cursor.move_down(0.3)

    drawn, cursor = draw_text(
        cursor,
        "Authorized Signature",
        size=12,
        color=BLACK,
        bold=True,
        x=MID_X - 120,
        width=240,
    )
    out.extend(drawn)
    return tuple(out), cursor.move_down(3)


def _qr(qr_png: bytes, cursor: Cursor) -> Step:
    drawn, cursor = draw_image(cursor, qr_png, MID_X - 45, width=90, height=90)
    return drawn, cursor.move_down(1)


def _footer(certificate_id: str, verify_url: str, cursor: Cursor) -> Step:
    ident, cursor = draw_text(
        cursor, f"Certificate ID: {certificate_id}", size=10, color=GREY, bold=True
    )
    cursor = cursor.move_down(0.2)
    link, cursor = draw_text(
        cursor, f"Verify: {verify_url}", size=10, color=DARK_BLUE, bold=True
    )
    return ident + link, cursor


def _flow(
    sections: Sequence[Callable[[Cursor], Step]],
    spacing: float = 1.0,
    text_scale: float = 1.0,
) -> tuple[list[Element], Cursor]:
    elements: list[Element] = []
    cursor = Cursor(y=MARGIN_TOP, spacing=spacing, text_scale=text_scale)
    for section in sections:
        drawn, cursor = section(cursor)
        elements.extend(drawn)
    return elements, cursor


def layout_certificate(
    fields: CertificateFields,
    qr_png: bytes,
    signature: bytes | None = None,
    watermark: bytes | None = None,
) -> CertificateLayout:
    """Lay out a single-page certificate.

    The watermark is emitted first so it sits behind everything else. When
    the natural flow runs past the bottom margin (long names or e-mails, a
    signature image) the vertical gaps are shrunk uniformly, down to
    ``MIN_SPACING``. If that is still not enough, every font size is scaled
    down in ``TEXT_SCALE_STEP`` steps until the flow fits; images keep their
    size. Fields within the stored column length always fit well above
    ``MIN_TEXT_SCALE``.
    """
    sections: list[Callable[[Cursor], Step]] = [
        partial(_watermark, watermark),
        _borders,
        _title,
        partial(_recipient, fields.recipient_name),
        partial(_paragraph, fields.recipient_name, fields.resource_name),
        partial(_resource, fields.resource_name),
        partial(_metadata, fields),
        partial(_signature, signature),
        partial(_qr, qr_png),
        partial(_footer, fields.certificate_id, fields.verify_url),
    ]

    elements, cursor = _flow(sections)

    limit = PAGE_HEIGHT - MARGIN_BOTTOM
    if cursor.y <= limit or cursor.gaps <= 0:
        return CertificateLayout(PAGE_WIDTH, PAGE_HEIGHT, tuple(elements))

    fixed = cursor.y - MARGIN_TOP - cursor.gaps
    spacing = (limit - MARGIN_TOP - fixed) / cursor.gaps
    if spacing >= MIN_SPACING:
        elements, cursor = _flow(sections, spacing=spacing)
        return CertificateLayout(PAGE_WIDTH, PAGE_HEIGHT, tuple(elements))

    text_scale = 1.0
    while cursor.y > limit and text_scale > MIN_TEXT_SCALE:
        text_scale = max(MIN_TEXT_SCALE, text_scale * TEXT_SCALE_STEP)
        elements, cursor = _flow(
            sections, spacing=MIN_SPACING, text_scale=text_scale
        )

    return CertificateLayout(PAGE_WIDTH, PAGE_HEIGHT, tuple(elements))

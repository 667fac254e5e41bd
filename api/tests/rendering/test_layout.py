"""Tests for the pure certificate layout engine."""

import string
from datetime import UTC, datetime

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from rendering.layout import (
    CONTENT_WIDTH,
    GOLD,
    ISSUER_PLACEHOLDER,
    MARGIN_BOTTOM,
    MARGIN_TOP,
    PAGE_HEIGHT,
    PAGE_WIDTH,
    WATERMARK_OPACITY,
    CertificateFields,
    Cursor,
    Image,
    Line,
    Rect,
    Text,
    draw_columns,
    draw_text,
    format_issue_date,
    layout_certificate,
    line_height,
    measure_text,
    wrap_text,
)

pytestmark = pytest.mark.unit

QR = b"\x89PNG\r\n\x1a\nqr"
SIGNATURE = b"\x89PNG\r\n\x1a\nsignature"
WATERMARK = b"\x89PNG\r\n\x1a\nwatermark"

_words = st.text(alphabet=string.ascii_letters + string.digits, min_size=1, max_size=12)
_short_text = st.lists(_words, min_size=1, max_size=3).map(" ".join)
_emails = st.builds("{}@{}.com".format, _words, _words)

# Longest values the issuance service accepts, spaces placed anywhere
_max_text = st.text(
    alphabet=string.ascii_letters + string.digits + " ", min_size=255, max_size=255
).filter(str.strip)
_max_emails = st.text(
    alphabet=string.ascii_lowercase + string.digits + "._-", min_size=243, max_size=243
).map("{}@example.com".format)


def _fields(**overrides) -> CertificateFields:
    values = {
        "recipient_name": "Alice",
        "recipient_email": "alice@example.com",
        "resource_name": "Intro to Systems",
        "issuer_name": "Acme Academy",
        "certificate_id": "CERT-AB23CD45",
        "issued_at": datetime(2026, 3, 7, 14, 30, tzinfo=UTC),
        "verify_url": "https://certs.example.com/verify.html?hash=" + "a" * 64,
    }
    values.update(overrides)
    return CertificateFields(**values)


def _texts(layout) -> list[Text]:
    return [e for e in layout.elements if isinstance(e, Text)]


def _contents(layout) -> list[str]:
    return [t.content for t in _texts(layout)]


def _flow_bottom(layout) -> float:
    """Lowest point reached by flowed content (borders and watermark excluded)."""
    bottom = 0.0
    for element in layout.elements:
        if isinstance(element, Text):
            bottom = max(bottom, element.y + line_height(element.size))
        elif isinstance(element, Image) and element.opacity == 1.0:
            bottom = max(bottom, element.y + element.height)
        elif isinstance(element, Line):
            bottom = max(bottom, element.y1)
    return bottom


class TestCursor:
    def test_move_down_uses_current_font_size(self):
        cursor = Cursor(y=100, font_size=20)

        moved = cursor.move_down(2)

        assert moved.y == pytest.approx(100 + 2 * 20 * 1.15)
        assert cursor.y == 100  # immutable

    def test_move_down_applies_spacing_but_records_natural_gap(self):
        cursor = Cursor(y=0, font_size=10, spacing=0.5)

        moved = cursor.move_down(1)

        assert moved.y == pytest.approx(5.75)
        assert moved.gaps == pytest.approx(11.5)

    def test_advance_ignores_spacing(self):
        assert Cursor(y=10, spacing=0.1).advance(90).y == 100

    def test_text_scale_shrinks_drawn_text_and_following_gaps(self):
        drawn, cursor = draw_text(
            Cursor(y=0, text_scale=0.5), "Alice", size=20, color=GOLD, line_gap=4
        )

        assert drawn[0].size == 10
        assert cursor.y == pytest.approx(10 * 1.15 + 2)
        assert cursor.move_down(1).y == pytest.approx(cursor.y + 11.5)


class TestWrapText:
    def test_short_text_is_one_line(self):
        assert wrap_text("Hello world", 12, 400) == ["Hello world"]

    def test_wraps_on_word_boundaries(self):
        lines = wrap_text("aaaa bbbb cccc", 10, 50)  # 10 chars per line

        assert lines == ["aaaa bbbb", "cccc"]

    def test_splits_words_longer_than_the_line(self):
        lines = wrap_text("x" * 25, 10, 50)

        assert lines == ["x" * 10, "x" * 10, "x" * 5]

    def test_empty_text_has_no_lines(self):
        assert wrap_text("   ", 12, 100) == []

    @given(
        words=st.lists(_words, min_size=1, max_size=30),
        size=st.sampled_from([10, 12, 13, 22, 28]),
        width=st.floats(min_value=40, max_value=500),
        bold=st.booleans(),
    )
    def test_lines_fit_and_preserve_content(self, words, size, width, bold):
        text = " ".join(words)

        lines = wrap_text(text, size, width, bold=bold)

        glyph = size * (0.55 if bold else 0.5)
        for line in lines:
            assert measure_text(line, size, bold=bold) <= max(width, glyph) + 1e-6
        assert "".join(lines).replace(" ", "") == text.replace(" ", "")


class TestPrimitiveSteps:
    def test_draw_text_advances_by_wrapped_lines(self):
        drawn, cursor = draw_text(
            Cursor(y=100), "aaaa bbbb cccc", size=10, color=GOLD, width=50, line_gap=4
        )

        assert [t.content for t in drawn] == ["aaaa bbbb", "cccc"]
        assert drawn[1].y == pytest.approx(100 + 11.5 + 4)
        assert cursor.y == pytest.approx(100 + 2 * (11.5 + 4))
        assert cursor.font_size == 10

    def test_draw_columns_share_one_row(self):
        drawn, cursor = draw_columns(
            Cursor(y=200), [(70, "DATE"), (200, "EMAIL"), (375, "ISSUED BY")],
            size=11, color=GOLD,
        )

        assert {t.y for t in drawn} == {200}
        assert cursor.y == pytest.approx(200 + 11 * 1.15)

    def test_draw_columns_advance_past_tallest_cell(self):
        drawn, cursor = draw_columns(
            Cursor(y=0), [(0, "short"), (200, "a" * 60)], size=12, color=GOLD
        )

        # 150pt column at 6pt per glyph -> 25 chars per line -> 3 lines
        assert cursor.y == pytest.approx(3 * 12 * 1.15)


class TestFormatIssueDate:
    def test_month_day_year_without_padding(self):
        assert format_issue_date(datetime(2026, 3, 7, tzinfo=UTC)) == "3/7/2026"

    def test_two_digit_month_and_day(self):
        assert format_issue_date(datetime(2025, 12, 25, tzinfo=UTC)) == "12/25/2025"


class TestLayoutCertificate:
    def test_contains_all_supplied_fields(self):
        layout = layout_certificate(_fields(), QR)
        contents = _contents(layout)

        assert "CERTIFICATE" in contents
        assert "OF ACHIEVEMENT" in contents
        assert "THIS IS TO CERTIFY THAT" in contents
        assert "Alice" in contents
        assert "Intro to Systems" in contents
        assert "3/7/2026" in contents
        assert "alice@example.com" in contents
        assert "Acme Academy" in contents
        assert "Authorized Signature" in contents
        assert "Certificate ID: CERT-AB23CD45" in contents

    def test_paragraph_mentions_recipient_and_resource(self):
        layout = layout_certificate(_fields(), QR)
        paragraph = " ".join(t.content for t in _texts(layout) if t.size == 13)

        assert 'Alice has successfully completed the requirements for the course "' in paragraph
        assert 'Intro to Systems" demonstrating dedication and proficiency.' in paragraph

    def test_verify_url_is_printed_in_footer(self):
        fields = _fields()
        layout = layout_certificate(fields, QR)
        footer = "".join(
            t.content for t in _texts(layout) if t.size == 10 and "Certificate ID" not in t.content
        )

        assert footer.replace(" ", "") == f"Verify:{fields.verify_url}"

    def test_issuer_placeholder_when_missing(self):
        layout = layout_certificate(_fields(issuer_name=None), QR)

        assert ISSUER_PLACEHOLDER in _contents(layout)

    def test_metadata_captions_on_one_row(self):
        layout = layout_certificate(_fields(), QR)
        captions = [t for t in _texts(layout) if t.content in ("DATE", "EMAIL", "ISSUED BY")]

        assert len(captions) == 3
        assert len({t.y for t in captions}) == 1
        assert [t.x for t in captions] == [70, PAGE_WIDTH / 2 - 75, PAGE_WIDTH - 220]

    def test_borders_present(self):
        layout = layout_certificate(_fields(), QR)
        rects = [e for e in layout.elements if isinstance(e, Rect)]

        assert [(r.x, r.radius, r.stroke_width) for r in rects] == [
            (25, 15, 3),
            (45, 10, 1.5),
        ]

    def test_qr_code_centered(self):
        layout = layout_certificate(_fields(), QR)
        [qr] = [e for e in layout.elements if isinstance(e, Image)]

        assert qr.data == QR
        assert (qr.width, qr.height) == (90, 90)
        assert qr.x == pytest.approx(PAGE_WIDTH / 2 - 45)

    def test_without_optional_assets_only_qr_image(self):
        layout = layout_certificate(_fields(), QR, signature=None, watermark=None)

        images = [e for e in layout.elements if isinstance(e, Image)]
        assert [i.data for i in images] == [QR]

    def test_watermark_is_drawn_first(self):
        layout = layout_certificate(_fields(), QR, watermark=WATERMARK)

        first = layout.elements[0]
        assert isinstance(first, Image)
        assert first.data == WATERMARK
        assert first.opacity == WATERMARK_OPACITY
        assert (first.x, first.y) == (PAGE_WIDTH / 2 - 150, 180)

    def test_signature_sits_above_signature_rule(self):
        layout = layout_certificate(_fields(), QR, signature=SIGNATURE)

        [signature] = [
            e for e in layout.elements if isinstance(e, Image) and e.data == SIGNATURE
        ]
        caption = next(t for t in _texts(layout) if t.content == "Authorized Signature")
        rule = next(
            e
            for e in layout.elements
            if isinstance(e, Line) and e.x2 - e.x1 == pytest.approx(240)
        )
        assert (signature.width, signature.height) == (120, 90)
        assert signature.y + signature.height <= rule.y1 <= caption.y

    def test_layout_is_deterministic(self):
        fields = _fields()

        assert layout_certificate(fields, QR) == layout_certificate(fields, QR)

    def test_flow_stays_inside_page_margins(self):
        layout = layout_certificate(
            _fields(), QR, signature=SIGNATURE, watermark=WATERMARK
        )

        assert _flow_bottom(layout) <= PAGE_HEIGHT - MARGIN_BOTTOM + 1e-6
        assert min(t.y for t in _texts(layout)) == MARGIN_TOP

    @settings(max_examples=50, deadline=None)
    @given(
        name=_short_text,
        resource=_short_text,
        email=_emails,
        issuer=st.one_of(st.none(), _short_text),
        with_signature=st.booleans(),
    )
    def test_any_reasonable_input_fits_on_one_page(
        self, name, resource, email, issuer, with_signature
    ):
        layout = layout_certificate(
            _fields(
                recipient_name=name,
                resource_name=resource,
                recipient_email=email,
                issuer_name=issuer,
            ),
            QR,
            signature=SIGNATURE if with_signature else None,
        )

        assert _flow_bottom(layout) <= PAGE_HEIGHT - MARGIN_BOTTOM + 1e-6
        for text in _texts(layout):
            assert text.x >= 0
            assert text.x + text.width <= PAGE_WIDTH
            assert text.width <= CONTENT_WIDTH + 1e-6

    def test_longest_fields_keep_qr_and_footer_on_the_page(self):
        layout = layout_certificate(
            _fields(
                recipient_name="N" * 255,
                recipient_email="e" * 240 + "@example.com",
                resource_name="R" * 255,
                issuer_name="I" * 255,
            ),
            QR,
            signature=SIGNATURE,
            watermark=WATERMARK,
        )
        limit = PAGE_HEIGHT - MARGIN_BOTTOM

        [qr] = [e for e in layout.elements if isinstance(e, Image) and e.data == QR]
        footer = [t for t in _texts(layout) if t.content.startswith("Certificate ID:")]
        assert qr.y + qr.height <= limit
        assert footer and footer[0].y + line_height(footer[0].size) <= limit
        assert _flow_bottom(layout) <= limit + 1e-6

    def test_overflowing_text_is_scaled_uniformly(self):
        layout = layout_certificate(
            _fields(recipient_name="N" * 255, resource_name="R" * 255),
            QR,
            signature=SIGNATURE,
        )
        sizes = {t.content: t.size for t in _texts(layout)}

        scale = sizes["CERTIFICATE"] / 18
        assert scale < 1
        assert sizes["OF ACHIEVEMENT"] == pytest.approx(32 * scale)
        assert sizes["Authorized Signature"] == pytest.approx(12 * scale)
        assert sizes["Certificate ID: CERT-AB23CD45"] == pytest.approx(10 * scale)

    def test_short_fields_keep_natural_font_sizes(self):
        layout = layout_certificate(_fields(), QR, signature=SIGNATURE)
        sizes = {t.content: t.size for t in _texts(layout)}

        assert sizes["CERTIFICATE"] == 18
        assert sizes["Alice"] == 28

    def test_metadata_signature_caption_and_footer_are_bold(self):
        layout = layout_certificate(_fields(), QR)
        by_content = {t.content: t for t in _texts(layout)}

        for content in (
            "DATE",
            "EMAIL",
            "ISSUED BY",
            "3/7/2026",
            "alice@example.com",
            "Acme Academy",
            "Authorized Signature",
            "Certificate ID: CERT-AB23CD45",
        ):
            assert by_content[content].bold, content

    @settings(
        max_examples=30, deadline=None, suppress_health_check=[HealthCheck.too_slow]
    )
    @given(
        name=_max_text,
        resource=_max_text,
        email=_max_emails,
        issuer=_max_text,
    )
    def test_maximum_length_input_fits_on_one_page(
        self, name, resource, email, issuer
    ):
        layout = layout_certificate(
            _fields(
                recipient_name=name,
                resource_name=resource,
                recipient_email=email,
                issuer_name=issuer,
            ),
            QR,
            signature=SIGNATURE,
        )

        assert _flow_bottom(layout) <= PAGE_HEIGHT - MARGIN_BOTTOM + 1e-6
        assert any(isinstance(e, Image) and e.data == QR for e in layout.elements)
        assert any(t.content.startswith("Verify:") for t in _texts(layout))

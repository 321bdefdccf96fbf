from __future__ import annotations

import base64
import binascii
import logging
import struct
import zlib
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Sequence, Tuple

from controle_pedidos.formatting import format_currency, format_date_br, now_sao_paulo


# A4 in points.
PAGE_WIDTH = 595.0
PAGE_HEIGHT = 842.0
MARGIN = 42.5
CONTENT_WIDTH = PAGE_WIDTH - MARGIN * 2

LOGO_MAX_WIDTH = 142.0
LOGO_MAX_HEIGHT = 60.0

NAVY = (23 / 255, 37 / 255, 84 / 255)
ACCENT = (234 / 255, 88 / 255, 12 / 255)
LIGHT_GRAY = (241 / 255, 245 / 255, 249 / 255)
ROW_GRAY = (248 / 255, 250 / 255, 252 / 255)
BORDER_GRAY = (226 / 255, 232 / 255, 240 / 255)
BODY_TEXT = (51 / 255, 65 / 255, 85 / 255)
MUTED_TEXT = (100 / 255, 116 / 255, 139 / 255)
FOOTER_TEXT = (148 / 255, 163 / 255, 184 / 255)
WHITE = (1.0, 1.0, 1.0)

# Helvetica advance widths (1/1000 em) for printable ASCII, starting at the space.
_HELVETICA_WIDTHS = (
    278, 278, 355, 556, 556, 889, 667, 191, 333, 333, 389, 584, 278, 333, 278, 278,
    556, 556, 556, 556, 556, 556, 556, 556, 556, 556, 278, 278, 584, 584, 584, 556,
    1015, 667, 667, 722, 722, 667, 611, 778, 722, 278, 500, 667, 556, 833, 722, 778,
    667, 778, 722, 667, 611, 722, 667, 944, 667, 667, 611, 278, 278, 278, 469, 556,
    333, 556, 556, 500, 556, 556, 278, 556, 556, 222, 222, 500, 222, 833, 556, 556,
    556, 556, 333, 500, 278, 556, 500, 722, 500, 500, 500, 334, 260, 334, 584,
)

_PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_JPEG_SOF_MARKERS = {0xC0, 0xC1, 0xC2, 0xC3, 0xC5, 0xC6, 0xC7, 0xC9, 0xCA, 0xCB, 0xCD, 0xCE, 0xCF}


@dataclass(frozen=True)
class EmbeddedImage:
    width: int
    height: int
    color_space: str
    data: bytes
    filter_name: str
    decode_parms: str = ""
    alpha: bytes | None = None


def _pdf_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _pdf_string(text: str) -> bytes:
    encoded = str(text).replace("\r", "").encode("cp1252", "replace")
    return b"(" + _pdf_escape(encoded.decode("latin-1")).encode("latin-1") + b")"


def text_width(text: str, size: float, bold: bool = False) -> float:
    total = 0
    for char in str(text):
        code = ord(char)
        if 32 <= code <= 126:
            total += _HELVETICA_WIDTHS[code - 32]
        else:
            total += 556
    width = total * size / 1000.0
    return width * 1.06 if bold else width


def wrap_text(text: str, max_width: float, size: float) -> List[str]:
    lines: List[str] = []
    for paragraph in str(text or "").split("\n"):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        current = ""
        for word in words:
            candidate = f"{current} {word}" if current else word
            if current and text_width(candidate, size) > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        lines.append(current)
    return lines or [""]


# -- logo decoding --------------------------------------------------------


def _decode_data_url(data_url: str) -> bytes | None:
    raw = str(data_url or "").strip()
    if not raw:
        return None
    if raw.startswith("data:"):
        header, _, raw = raw.partition(",")
        if ";base64" not in header:
            return None
    try:
        return base64.b64decode(raw, validate=False)
    except (binascii.Error, ValueError):
        return None


def _jpeg_image(blob: bytes) -> EmbeddedImage | None:
    idx = 2
    while idx + 4 <= len(blob):
        if blob[idx] != 0xFF:
            idx += 1
            continue
        marker = blob[idx + 1]
        if marker == 0xFF:
            idx += 1
            continue
        if marker in (0xD8, 0x01) or 0xD0 <= marker <= 0xD7:
            idx += 2
            continue
        (segment_length,) = struct.unpack(">H", blob[idx + 2 : idx + 4])
        if marker in _JPEG_SOF_MARKERS:
            if idx + 10 > len(blob):
                return None
            height, width = struct.unpack(">HH", blob[idx + 5 : idx + 9])
            components = blob[idx + 9]
            color_space = {1: "/DeviceGray", 3: "/DeviceRGB", 4: "/DeviceCMYK"}.get(components)
            if color_space is None or not width or not height:
                return None
            return EmbeddedImage(width, height, color_space, blob, "/DCTDecode")
        idx += 2 + segment_length
    return None


def _paeth(left: int, up: int, up_left: int) -> int:
    estimate = left + up - up_left
    dist_left = abs(estimate - left)
    dist_up = abs(estimate - up)
    dist_up_left = abs(estimate - up_left)
    if dist_left <= dist_up and dist_left <= dist_up_left:
        return left
    if dist_up <= dist_up_left:
        return up
    return up_left


def _png_unfilter(data: bytes, width: int, height: int, bpp: int) -> bytes:
    stride = width * bpp
    out = bytearray(stride * height)
    previous = bytearray(stride)
    pos = 0
    for row_idx in range(height):
        filter_type = data[pos]
        row = bytearray(data[pos + 1 : pos + 1 + stride])
        pos += 1 + stride
        if filter_type == 1:
            for i in range(bpp, stride):
                row[i] = (row[i] + row[i - bpp]) & 0xFF
        elif filter_type == 2:
            for i in range(stride):
                row[i] = (row[i] + previous[i]) & 0xFF
        elif filter_type == 3:
            for i in range(stride):
                left = row[i - bpp] if i >= bpp else 0
                row[i] = (row[i] + ((left + previous[i]) >> 1)) & 0xFF
        elif filter_type == 4:
            for i in range(stride):
                left = row[i - bpp] if i >= bpp else 0
                up_left = previous[i - bpp] if i >= bpp else 0
                row[i] = (row[i] + _paeth(left, previous[i], up_left)) & 0xFF
        out[row_idx * stride : (row_idx + 1) * stride] = row
        previous = row
    return bytes(out)


def _png_image(blob: bytes) -> EmbeddedImage | None:
    pos = len(_PNG_SIGNATURE)
    header: Tuple[int, ...] | None = None
    idat = bytearray()
    while pos + 8 <= len(blob):
        length, chunk_type = struct.unpack(">I4s", blob[pos : pos + 8])
        chunk = blob[pos + 8 : pos + 8 + length]
        pos += 12 + length
        if chunk_type == b"IHDR":
            header = struct.unpack(">IIBBBBB", chunk[:13])
        elif chunk_type == b"IDAT":
            idat.extend(chunk)
        elif chunk_type == b"IEND":
            break
    if header is None or not idat:
        return None

    width, height, bit_depth, color_type, _compression, _filter, interlace = header
    channels = {0: 1, 2: 3, 4: 2, 6: 4}.get(color_type)
    if bit_depth != 8 or interlace != 0 or channels is None:
        return None

    if color_type in (0, 2):
        colors = channels
        parms = f"<< /Predictor 15 /Colors {colors} /BitsPerComponent 8 /Columns {width} >>"
        color_space = "/DeviceGray" if colors == 1 else "/DeviceRGB"
        return EmbeddedImage(width, height, color_space, bytes(idat), "/FlateDecode", parms)

    # Alpha channel: PDF wants colour and mask as separate streams.
    try:
        pixels = _png_unfilter(zlib.decompress(bytes(idat)), width, height, channels)
    except (zlib.error, IndexError):
        return None
    alpha = pixels[channels - 1 :: channels]
    if color_type == 4:
        color = pixels[0::2]
        color_space = "/DeviceGray"
    else:
        color = bytearray(width * height * 3)
        color[0::3] = pixels[0::4]
        color[1::3] = pixels[1::4]
        color[2::3] = pixels[2::4]
        color_space = "/DeviceRGB"
    return EmbeddedImage(
        width,
        height,
        color_space,
        zlib.compress(bytes(color)),
        "/FlateDecode",
        alpha=zlib.compress(bytes(alpha)),
    )


def decode_logo(data_url: str | None) -> EmbeddedImage | None:
    """Turn a base64 data URL into something the page can embed. Unsupported images give None."""
    blob = _decode_data_url(data_url or "")
    if not blob:
        return None
    image = None
    if blob.startswith(b"\xff\xd8"):
        image = _jpeg_image(blob)
    elif blob.startswith(_PNG_SIGNATURE):
        image = _png_image(blob)
    if image is None:
        logging.getLogger("controle_pedidos.documents").warning(
            "quote_logo_skipped",
            extra={"logo_bytes": len(blob)},
        )
    return image


# -- page drawing ---------------------------------------------------------


class _Page:
    """Content-stream builder with a top-left origin, which is how the layout is measured."""

    def __init__(self) -> None:
        self.ops: List[bytes] = []

    def _y(self, top: float) -> float:
        return PAGE_HEIGHT - top

    def fill_rect(self, x: float, top: float, width: float, height: float, color: Sequence[float]) -> None:
        self.ops.append(
            b"%.3f %.3f %.3f rg %.2f %.2f %.2f %.2f re f"
            % (color[0], color[1], color[2], x, self._y(top + height), width, height)
        )

    def line(self, x1: float, top1: float, x2: float, top2: float, color: Sequence[float], width: float) -> None:
        self.ops.append(
            b"%.3f %.3f %.3f RG %.2f w %.2f %.2f m %.2f %.2f l S"
            % (color[0], color[1], color[2], width, x1, self._y(top1), x2, self._y(top2))
        )

    def text(
        self,
        x: float,
        baseline: float,
        value: str,
        *,
        size: float = 9,
        bold: bool = False,
        color: Sequence[float] = BODY_TEXT,
        align: str = "left",
    ) -> None:
        if align == "right":
            x -= text_width(value, size, bold)
        elif align == "center":
            x -= text_width(value, size, bold) / 2
        font = b"/F2" if bold else b"/F1"
        self.ops.append(
            b"BT %s %.1f Tf %.3f %.3f %.3f rg 1 0 0 1 %.2f %.2f Tm %s Tj ET"
            % (font, size, color[0], color[1], color[2], x, self._y(baseline), _pdf_string(value))
        )

    def image(self, name: bytes, x: float, top: float, width: float, height: float) -> None:
        self.ops.append(
            b"q %.2f 0 0 %.2f %.2f %.2f cm /%s Do Q" % (width, height, x, self._y(top + height), name)
        )

    def content(self) -> bytes:
        return b"\n".join(self.ops)


def _client_lines(client: dict | None, fallback_name: str) -> List[Tuple[str, bool]]:
    if not client:
        return [(fallback_name or "Cliente não encontrado", False)]
    lines: List[Tuple[str, bool]] = [(client.get("legal_name") or "", True)]
    if client.get("cnpj"):
        lines.append((f"CNPJ: {client['cnpj']}", False))
    if client.get("address"):
        lines.append((client["address"], False))
    city = client.get("city") or ""
    state = client.get("state") or ""
    if city or state:
        place = f"{city}, {state}" if state else city
        if client.get("zip_code"):
            place = f"{place} - {client['zip_code']}"
        lines.append((place, False))
    return lines


def _draw_page(
    page: _Page,
    quote: dict,
    items: Sequence[dict],
    client: dict | None,
    logo: EmbeddedImage | None,
    generated_at: datetime,
) -> None:
    company_name = str(quote.get("company_name") or "")
    top = MARGIN

    # Header band
    page.fill_rect(MARGIN, top, CONTENT_WIDTH, 128, LIGHT_GRAY)
    if logo is not None:
        scale = min(LOGO_MAX_WIDTH / logo.width, LOGO_MAX_HEIGHT / logo.height)
        logo_w = logo.width * scale
        logo_h = logo.height * scale
        page.image(b"Im1", MARGIN + 14, top + (128 - logo_h) / 2, logo_w, logo_h)
    right = PAGE_WIDTH - MARGIN - 14
    page.text(right, top + 34, company_name, size=12, bold=True, color=NAVY, align="right")
    contact_top = top + 51
    for key in ("company_address", "company_city", "company_phone", "company_email"):
        value = str(quote.get(key) or "")
        if not value:
            continue
        page.text(right, contact_top, value, size=9, color=MUTED_TEXT, align="right")
        contact_top += 14
    top += 147

    # Title bar
    page.fill_rect(MARGIN, top, CONTENT_WIDTH, 34, NAVY)
    page.text(MARGIN + 14, top + 24, "Commercial Invoice", size=14, bold=True, color=WHITE)
    page.text(
        PAGE_WIDTH - MARGIN - 14,
        top + 24,
        f"Date: {format_date_br(quote.get('date'))}  |  Order: {quote.get('number') or ''}",
        size=9,
        color=WHITE,
        align="right",
    )
    top += 57

    # Bill To
    page.fill_rect(MARGIN, top, CONTENT_WIDTH, 91, LIGHT_GRAY)
    page.text(MARGIN + 14, top + 20, "Bill To", size=10, bold=True, color=NAVY)
    line_top = top + 37
    for value, bold in _client_lines(client, str(quote.get("client_name") or "")):
        page.text(MARGIN + 14, line_top, value, size=9, bold=bold, color=BODY_TEXT)
        line_top += 14
    top += 108

    # Observations are measured first so the table knows where to stop.
    notes = str(quote.get("notes") or "").strip()
    note_lines = wrap_text(notes, CONTENT_WIDTH, 9)[:8] if notes else []
    notes_height = (30 + 12 * len(note_lines)) if note_lines else 0
    table_limit = PAGE_HEIGHT - MARGIN - 30 - 54 - notes_height

    # Items table
    qty_w, unit_w, amount_w = 71.0, 99.0, 99.0
    desc_w = CONTENT_WIDTH - qty_w - unit_w - amount_w
    qty_x = MARGIN + desc_w
    unit_x = qty_x + qty_w
    amount_x = unit_x + unit_w
    page.fill_rect(MARGIN, top, CONTENT_WIDTH, 24, NAVY)
    page.text(MARGIN + 11, top + 16, "Description", size=10, bold=True, color=WHITE)
    page.text(qty_x + qty_w / 2, top + 16, "Qty", size=10, bold=True, color=WHITE, align="center")
    page.text(unit_x + unit_w - 11, top + 16, "Unit Price", size=10, bold=True, color=WHITE, align="right")
    page.text(amount_x + amount_w - 11, top + 16, "Amount", size=10, bold=True, color=WHITE, align="right")
    top += 24

    for idx, item in enumerate(items):
        desc_lines = wrap_text(str(item.get("description") or ""), desc_w - 22, 9)
        row_h = 11 * len(desc_lines) + 14
        remaining = len(items) - idx
        if top + row_h > table_limit - (20 if remaining > 1 else 0):
            page.fill_rect(MARGIN, top, CONTENT_WIDTH, 20, ROW_GRAY)
            page.text(MARGIN + 11, top + 14, f"+ {remaining} item(s)", size=9, color=MUTED_TEXT)
            top += 20
            break
        if idx % 2 == 1:
            page.fill_rect(MARGIN, top, CONTENT_WIDTH, row_h, ROW_GRAY)
        baseline = top + 16
        for line in desc_lines:
            page.text(MARGIN + 11, baseline, line, size=9)
            baseline += 11
        quantity = int(item.get("quantity") or 0)
        unit_price = float(item.get("unit_price") or 0)
        line_total = item.get("line_total")
        if line_total is None:
            line_total = quantity * unit_price
        page.text(qty_x + qty_w / 2, top + 16, f"{quantity:02d}", size=9, align="center")
        page.text(unit_x + unit_w - 11, top + 16, format_currency(unit_price), size=9, align="right")
        page.text(amount_x + amount_w - 11, top + 16, format_currency(line_total), size=9, align="right")
        top += row_h
        page.line(MARGIN, top, PAGE_WIDTH - MARGIN, top, BORDER_GRAY, 0.3)

    # Total
    top += 14
    box_w = 227.0
    page.fill_rect(PAGE_WIDTH - MARGIN - box_w, top, box_w, 40, NAVY)
    page.text(PAGE_WIDTH - MARGIN - box_w + 14, top + 26, "Total BRL", size=11, bold=True, color=WHITE)
    page.text(
        PAGE_WIDTH - MARGIN - 14,
        top + 26,
        f"R$ {format_currency(quote.get('total_amount'))}",
        size=11,
        bold=True,
        color=WHITE,
        align="right",
    )
    top += 40

    if note_lines:
        obs_top = top + 22
        page.text(MARGIN, obs_top, "Observações", size=10, bold=True, color=NAVY)
        page.line(MARGIN, obs_top + 6, MARGIN + 85, obs_top + 6, ACCENT, 1.4)
        line_top = obs_top + 22
        for line in note_lines:
            page.text(MARGIN, line_top, line, size=9, color=MUTED_TEXT)
            line_top += 12

    footer_top = PAGE_HEIGHT - MARGIN
    page.line(MARGIN, footer_top - 14, PAGE_WIDTH - MARGIN, footer_top - 14, BORDER_GRAY, 0.8)
    page.text(
        PAGE_WIDTH / 2,
        footer_top,
        f"Gerado em {generated_at.strftime('%d/%m/%Y %H:%M')} | {company_name}",
        size=7,
        color=FOOTER_TEXT,
        align="center",
    )


def _image_objects(image: EmbeddedImage, first_id: int) -> List[bytes]:
    objects: List[bytes] = []
    smask_ref = b""
    if image.alpha is not None:
        smask_ref = b" /SMask %d 0 R" % (first_id + 1)
    parms = b" /DecodeParms %s" % image.decode_parms.encode("ascii") if image.decode_parms else b""
    objects.append(
        b"<< /Type /XObject /Subtype /Image /Width %d /Height %d /ColorSpace %s "
        b"/BitsPerComponent 8 /Filter %s%s%s /Length %d >>\nstream\n"
        % (
            image.width,
            image.height,
            image.color_space.encode("ascii"),
            image.filter_name.encode("ascii"),
            parms,
            smask_ref,
            len(image.data),
        )
        + image.data
        + b"\nendstream"
    )
    if image.alpha is not None:
        objects.append(
            b"<< /Type /XObject /Subtype /Image /Width %d /Height %d /ColorSpace /DeviceGray "
            b"/BitsPerComponent 8 /Filter /FlateDecode /Length %d >>\nstream\n"
            % (image.width, image.height, len(image.alpha))
            + image.alpha
            + b"\nendstream"
        )
    return objects


def build_quote_pdf(
    quote: dict,
    items: Sequence[dict],
    client: dict | None = None,
    *,
    logo: str | None = None,
    generated_at: datetime | None = None,
) -> bytes:
    """Render one quote as a single-page commercial invoice."""
    image = decode_logo(logo) if logo else None
    page = _Page()
    _draw_page(page, quote, items, client, image, generated_at or now_sao_paulo())
    content_bytes = page.content()

    resources = b"/Font << /F1 5 0 R /F2 6 0 R >>"
    if image is not None:
        resources += b" /XObject << /Im1 7 0 R >>"

    objects: List[bytes] = []
    objects.append(b"<< /Type /Catalog /Pages 2 0 R >>")
    objects.append(b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>")
    objects.append(
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 %d %d] "
        b"/Contents 4 0 R /Resources << %s >> >>" % (int(PAGE_WIDTH), int(PAGE_HEIGHT), resources)
    )
    objects.append(b"<< /Length %d >>\nstream\n" % len(content_bytes) + content_bytes + b"\nendstream")
    objects.append(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>")
    objects.append(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica-Bold /Encoding /WinAnsiEncoding >>")
    if image is not None:
        objects.extend(_image_objects(image, first_id=7))

    result = bytearray()
    result.extend(b"%PDF-1.4\n")

    offsets = []
    for index, obj in enumerate(objects, start=1):
        offsets.append(len(result))
        result.extend(f"{index} 0 obj\n".encode("ascii"))
        result.extend(obj)
        result.extend(b"\nendobj\n")

    xref_start = len(result)
    result.extend(f"xref\n0 {len(objects) + 1}\n".encode("ascii"))
    result.extend(b"0000000000 65535 f \n")
    for offset in offsets:
        result.extend(f"{offset:010d} 00000 n \n".encode("ascii"))
    result.extend(b"trailer\n")
    result.extend(f"<< /Size {len(objects) + 1} /Root 1 0 R >>\n".encode("ascii"))
    result.extend(b"startxref\n")
    result.extend(f"{xref_start}\n".encode("ascii"))
    result.extend(b"%%EOF\n")

    return bytes(result)


def quote_pdf_filename(quote: dict) -> str:
    return f"Orcamento_{quote.get('number') or quote.get('id')}.pdf"


def logo_summary(data_url: str | None) -> Dict[str, object] | None:
    image = decode_logo(data_url)
    if image is None:
        return None
    return {"width": image.width, "height": image.height, "color_space": image.color_space.lstrip("/")}

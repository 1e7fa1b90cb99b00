"""Floor-plan export to PNG, JPEG and PDF."""

import io
import re
from datetime import date, datetime

from fastapi import HTTPException
from PIL import Image, ImageDraw, ImageFont, ImageOps
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as rl_canvas

from .schemas import ExportOptions

CELL_PX = 24
BACKGROUND_COLOR = (26, 26, 26)
GRID_COLOR = (88, 64, 128)
RACK_COLOR = (147, 51, 234)
ENDPOINT_COLOR = (14, 165, 233)
LABEL_COLOR = (240, 240, 240)

QUALITY_SETTINGS = {
    "low": {"scale": 1.0, "quality": 0.6},
    "medium": {"scale": 1.5, "quality": 0.8},
    "high": {"scale": 2.0, "quality": 0.9},
    "ultra": {"scale": 3.0, "quality": 1.0},
}

PAPER_SIZES_MM = {
    "a4": (210, 297),
    "a3": (297, 420),
    "letter": (216, 279),
}

MEDIA_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "pdf": "application/pdf",
}


def capacity_color(percentage):
    if percentage <= 30:
        return (34, 197, 94)
    if percentage <= 70:
        return (234, 179, 8)
    return (239, 68, 68)


def slugify(value):
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")
    return slug or "location"


def export_file_name(location_name, options: ExportOptions, today: date | None = None):
    today = today or date.today()
    base = options.file_name or f"floor-plan-{slugify(location_name)}"
    return f"{base}-{today.isoformat()}.{options.format}"


def _font(size):
    try:
        return ImageFont.truetype("DejaVuSans.ttf", size)
    except OSError:
        return ImageFont.load_default()


def _background(path, size, theme):
    with Image.open(path) as source:
        image = source.convert("RGB").resize(size)
    if theme == "negative":
        image = ImageOps.invert(ImageOps.grayscale(image).convert("RGB"))
    else:
        image = ImageOps.grayscale(image).convert("RGB")
    # Dim the plan so racks stay readable
    return Image.blend(Image.new("RGB", size, BACKGROUND_COLOR), image, 0.5)


def render_floor_plan(details, options: ExportOptions, background_path=None):
    """Draw the floor-plan grid, racks and endpoints as a Pillow image."""
    location = details["location"]
    columns = location.get("grid_columns")
    rows = location.get("grid_rows")
    if not columns or not rows:
        raise HTTPException(status_code=400, detail="Grid dimensions are not set for this location")

    cell = max(int(CELL_PX * QUALITY_SETTINGS[options.quality]["scale"]), 4)
    size = (columns * cell, rows * cell)
    if options.include_background and background_path is not None:
        image = _background(background_path, size, options.theme)
    elif options.theme == "negative":
        image = Image.new("RGB", size, (0, 0, 0))
    else:
        image = Image.new("RGB", size, BACKGROUND_COLOR)
    draw = ImageDraw.Draw(image)

    if options.include_grid:
        for x in range(columns + 1):
            draw.line([(x * cell, 0), (x * cell, size[1])], fill=GRID_COLOR, width=1)
        for y in range(rows + 1):
            draw.line([(0, y * cell), (size[0], y * cell)], fill=GRID_COLOR, width=1)

    font = _font(max(cell // 2, 8))
    for rack in details["placed_racks"]:
        left = (rack["pos_x"] - 1) * cell
        top = (rack["pos_y"] - 1) * cell
        if options.theme == "capacity":
            fill = capacity_color(rack["occupancy_percentage"])
        else:
            fill = RACK_COLOR
        draw.rectangle([left + 1, top + 1, left + cell - 2, top + cell - 2], fill=fill, outline=LABEL_COLOR)
        if options.include_labels:
            draw.text((left + 2, top + cell), rack["name"], fill=LABEL_COLOR, font=font)

    radius = max(cell // 4, 2)
    for endpoint in details["placed_endpoints"]:
        cx = (endpoint["pos_x"] - 1) * cell + cell // 2
        cy = (endpoint["pos_y"] - 1) * cell + cell // 2
        draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius], fill=ENDPOINT_COLOR)
        if options.include_labels:
            draw.text((cx + radius + 2, cy - radius), endpoint["name"], fill=LABEL_COLOR, font=font)
    return image


def _encode(image, fmt, quality):
    buffer = io.BytesIO()
    if fmt == "jpeg":
        image.convert("RGB").save(buffer, format="JPEG", quality=int(quality * 100))
    else:
        image.save(buffer, format="PNG")
    return buffer.getvalue()


def _paper_size(options: ExportOptions):
    if options.paper_size == "custom":
        return options.custom_width or 210, options.custom_height or 297
    return PAPER_SIZES_MM[options.paper_size]


def _pdf(image, location_name, options: ExportOptions, generated: datetime):
    width_mm, height_mm = _paper_size(options)
    page_width, page_height = width_mm * mm, height_mm * mm
    buffer = io.BytesIO()
    pdf = rl_canvas.Canvas(buffer, pagesize=(page_width, page_height))

    image_ratio = image.width / image.height
    if image_ratio > page_width / page_height:
        draw_width = page_width * 0.9
        draw_height = draw_width / image_ratio
    else:
        draw_height = page_height * 0.9
        draw_width = draw_height * image_ratio
    x = (page_width - draw_width) / 2
    y = (page_height - draw_height) / 2

    if options.include_metadata:
        pdf.setFont("Helvetica", 16)
        pdf.drawString(20 * mm, page_height - 20 * mm, f"Floor plan: {location_name}")
        pdf.setFont("Helvetica", 10)
        pdf.drawString(20 * mm, page_height - 30 * mm, f"Generated: {generated.strftime('%Y-%m-%d')}")
        pdf.drawString(20 * mm, page_height - 35 * mm, f"Resolution: {image.width}x{image.height}px")

    pdf.drawImage(ImageReader(image.convert("RGB")), x, y, width=draw_width, height=draw_height)
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def export_floor_plan(details, options: ExportOptions, background_path=None, now: datetime | None = None):
    """Render and encode a floor plan.

    Returns ``(content, media_type, file_name)``.
    """
    if options.format not in MEDIA_TYPES:
        raise HTTPException(status_code=400, detail=f"Export format {options.format} is not supported")
    now = now or datetime.now()
    location_name = details["location"]["name"]
    image = render_floor_plan(details, options, background_path=background_path)
    quality = QUALITY_SETTINGS[options.quality]["quality"]
    if options.format == "pdf":
        content = _pdf(image, location_name, options, now)
    else:
        content = _encode(image, options.format, quality)
    return content, MEDIA_TYPES[options.format], export_file_name(location_name, options, now.date())

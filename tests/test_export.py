import io
from datetime import date, datetime

import pytest
from fastapi import HTTPException
from PIL import Image

from rackmap import export
from rackmap.schemas import ExportOptions


def _details(columns=10, rows=5):
    return {
        "location": {"id": 1, "name": "Main DC", "grid_columns": columns, "grid_rows": rows},
        "placed_racks": [
            {"id": 1, "name": "R01", "pos_x": 2, "pos_y": 3, "occupancy_percentage": 80.0},
        ],
        "placed_endpoints": [
            {"id": 7, "name": "Desk 7", "pos_x": 9, "pos_y": 1},
        ],
    }


def test_png_export():
    content, media_type, file_name = export.export_floor_plan(
        _details(), ExportOptions(format="png", quality="low"), now=datetime(2024, 3, 1, 12, 0)
    )

    assert content.startswith(b"\x89PNG")
    assert media_type == "image/png"
    assert file_name == "floor-plan-main-dc-2024-03-01.png"
    assert Image.open(io.BytesIO(content)).size == (10 * export.CELL_PX, 5 * export.CELL_PX)


def test_jpeg_export_scales_with_quality():
    content, media_type, _ = export.export_floor_plan(_details(), ExportOptions(format="jpeg", quality="high"))

    assert content.startswith(b"\xff\xd8")
    assert media_type == "image/jpeg"
    assert Image.open(io.BytesIO(content)).size == (10 * export.CELL_PX * 2, 5 * export.CELL_PX * 2)


@pytest.mark.parametrize("paper_size", ["a4", "letter", "custom"])
def test_pdf_export(paper_size):
    options = ExportOptions(format="pdf", quality="low", paper_size=paper_size, custom_width=400, custom_height=300)

    content, media_type, file_name = export.export_floor_plan(_details(), options)

    assert content.startswith(b"%PDF")
    assert media_type == "application/pdf"
    assert file_name.endswith(".pdf")


def test_svg_export_is_not_supported():
    with pytest.raises(HTTPException) as exc:
        export.export_floor_plan(_details(), ExportOptions(format="svg"))
    assert exc.value.status_code == 400


def test_export_requires_grid():
    with pytest.raises(HTTPException) as exc:
        export.export_floor_plan(_details(columns=None, rows=None), ExportOptions())
    assert exc.value.status_code == 400


def test_export_with_background(tmp_path):
    background = tmp_path / "plan.png"
    Image.new("RGB", (300, 200), "white").save(background)

    for theme in ("default", "negative", "capacity", "grayscale"):
        image = export.render_floor_plan(
            _details(), ExportOptions(quality="low", theme=theme), background_path=background
        )
        assert image.size == (10 * export.CELL_PX, 5 * export.CELL_PX)


def test_capacity_theme_colors_racks_by_occupancy():
    image = export.render_floor_plan(_details(), ExportOptions(quality="low", theme="capacity", include_labels=False))

    cell = export.CELL_PX
    # Centre of the rack at (2, 3)
    assert image.getpixel((cell + cell // 2, 2 * cell + cell // 2)) == export.capacity_color(80.0)


def test_capacity_color_bands():
    assert export.capacity_color(0) == export.capacity_color(30)
    assert export.capacity_color(31) == export.capacity_color(70)
    assert export.capacity_color(71) == (239, 68, 68)
    assert export.capacity_color(30) != export.capacity_color(31)


def test_export_file_name():
    today = date(2024, 12, 24)

    assert export.export_file_name("Main DC / Floor 1", ExportOptions(), today) == "floor-plan-main-dc-floor-1-2024-12-24.png"
    assert export.export_file_name("x", ExportOptions(format="pdf", file_name="site"), today) == "site-2024-12-24.pdf"
    assert export.slugify("***") == "location"


_open_image = Image.open


class _TrackedImage:
    def __init__(self, path):
        self.image = _open_image(path)
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.image.close()
        self.closed = True

    def convert(self, mode):
        return self.image.convert(mode)


def test_background_file_is_closed_after_render(tmp_path, monkeypatch):
    background = tmp_path / "plan.png"
    Image.new("RGB", (300, 200), "white").save(background)
    opened = []

    def tracked_open(path):
        opened.append(_TrackedImage(path))
        return opened[-1]

    monkeypatch.setattr(export.Image, "open", tracked_open)
    export.render_floor_plan(_details(), ExportOptions(quality="low"), background_path=background)

    assert len(opened) == 1
    assert opened[0].closed

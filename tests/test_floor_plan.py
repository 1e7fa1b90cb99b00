import io

import httpx
import pytest
from fastapi import HTTPException
from PIL import Image

from rackmap import floor_plan, models
from rackmap.schemas import CropArea


def _png(width=200, height=100):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()


def _mock_client(status_code=200, captured=None):
    def handler(request):
        if captured is not None:
            captured["url"] = str(request.url)
            captured["body"] = request.read()
        return httpx.Response(status_code)
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_parse_drop_zone():
    assert floor_plan.parse_drop_zone("cell-3-14") == (3, 14)
    assert floor_plan.drop_zone_id(3, 14) == "cell-3-14"
    for bad in ("cell-3", "zone-1-1", "cell-a-b", "", None):
        with pytest.raises(HTTPException) as exc:
            floor_plan.parse_drop_zone(bad)
        assert exc.value.status_code == 400


def test_grid_cells_are_row_major_and_one_based():
    cells = floor_plan.grid_cells(3, 2)

    assert [cell["id"] for cell in cells] == [
        "cell-1-1", "cell-2-1", "cell-3-1",
        "cell-1-2", "cell-2-2", "cell-3-2",
    ]


def test_place_and_unplace_rack(db_session, tenant, gridded_location, rack):
    placed = floor_plan.place_rack(db_session, tenant.id, rack.id, 3, 4)
    assert (placed.pos_x, placed.pos_y) == (3, 4)

    # Re-dropping on its own cell is fine
    floor_plan.place_rack(db_session, tenant.id, rack.id, 3, 4)

    cleared = floor_plan.unplace_rack(db_session, tenant.id, rack.id)
    assert (cleared.pos_x, cleared.pos_y) == (None, None)


@pytest.mark.parametrize("x, y", [(0, 1), (21, 1), (1, 11), (-1, -1)])
def test_place_rack_outside_grid(db_session, tenant, gridded_location, rack, x, y):
    with pytest.raises(HTTPException) as exc:
        floor_plan.place_rack(db_session, tenant.id, rack.id, x, y)
    assert exc.value.status_code == 400


def test_place_rack_without_grid(db_session, tenant, rack):
    with pytest.raises(HTTPException) as exc:
        floor_plan.place_rack(db_session, tenant.id, rack.id, 1, 1)
    assert exc.value.status_code == 400
    assert "Grid dimensions" in exc.value.detail


def test_place_rack_on_occupied_cell(db_session, tenant, gridded_location, rack):
    other = models.Rack(tenant_id=tenant.id, location_id=gridded_location.id, name="R02", total_u=42)
    db_session.add(other)
    db_session.commit()
    floor_plan.place_rack(db_session, tenant.id, rack.id, 5, 5)

    with pytest.raises(HTTPException) as exc:
        floor_plan.place_rack(db_session, tenant.id, other.id, 5, 5)
    assert exc.value.status_code == 409


def test_place_endpoint(db_session, tenant, gridded_location, make_asset):
    desk = make_asset("Desk 1", target_rack=None, asset_type="ENDPOINT_USER")

    placed = floor_plan.place_endpoint(db_session, tenant.id, desk.id, 20, 10)
    assert (placed.pos_x, placed.pos_y) == (20, 10)

    cleared = floor_plan.unplace_endpoint(db_session, tenant.id, desk.id)
    assert cleared.pos_x is None


def test_only_endpoints_can_be_placed_as_endpoints(db_session, tenant, gridded_location, make_asset):
    server = make_asset("srv", start_u=1, asset_type="SERVER")

    with pytest.raises(HTTPException) as exc:
        floor_plan.place_endpoint(db_session, tenant.id, server.id, 1, 1)
    assert exc.value.status_code == 400


def test_location_details_splits_placed_and_unplaced(db_session, tenant, gridded_location, rack, make_asset):
    make_asset("srv", start_u=1, size_u=21)
    desk = make_asset("Desk 1", target_rack=None, asset_type="ENDPOINT_USER")
    make_asset("Desk 2", target_rack=None, asset_type="ENDPOINT_USER")
    floor_plan.place_rack(db_session, tenant.id, rack.id, 2, 2)
    floor_plan.place_endpoint(db_session, tenant.id, desk.id, 4, 4)

    details = floor_plan.location_details(db_session, tenant.id, gridded_location.id)

    assert details["location"]["grid_columns"] == 20
    assert [r["name"] for r in details["placed_racks"]] == ["R01"]
    assert details["placed_racks"][0]["occupancy_percentage"] == 50.0
    assert details["unplaced_racks"] == []
    assert [e["name"] for e in details["placed_endpoints"]] == ["Desk 1"]
    assert [e["name"] for e in details["unplaced_endpoints"]] == ["Desk 2"]
    assert details["placed_endpoints"][0]["connected"] is False


def test_location_details_of_other_tenant(db_session, other_tenant, location):
    with pytest.raises(HTTPException) as exc:
        floor_plan.location_details(db_session, other_tenant.id, location.id)
    assert exc.value.status_code == 404


def test_crop_image():
    cropped = floor_plan.crop_image(_png(200, 100), CropArea(x=50, y=20, width=100, height=60))

    assert Image.open(io.BytesIO(cropped)).size == (100, 60)


def test_crop_outside_image_is_rejected():
    with pytest.raises(HTTPException) as exc:
        floor_plan.crop_image(_png(200, 100), CropArea(x=150, y=0, width=100, height=50))
    assert exc.value.status_code == 400


def test_crop_rejects_non_images():
    with pytest.raises(HTTPException) as exc:
        floor_plan.crop_image(b"not an image", CropArea(x=0, y=0, width=1, height=1))
    assert exc.value.status_code == 400


def test_configure_floor_plan_saves_image_and_notifies_webhook(
    db_session, tenant, location, tmp_path, override_settings
):
    override_settings(floor_plan, upload_dir=str(tmp_path), floorplan_webhook_url="https://hooks.example.com/plan")
    captured = {}

    updated, webhook = floor_plan.configure_floor_plan(
        db_session,
        tenant.id,
        location.id,
        _png(),
        "plan.png",
        "image/png",
        CropArea(x=10, y=10, width=100, height=50),
        grid_cols=40,
        grid_rows=20,
        client=_mock_client(captured=captured),
    )

    assert webhook == "sent"
    assert (updated.grid_columns, updated.grid_rows) == (40, 20)
    assert updated.floor_plan_image_url == f"/uploads/floor-plans/{tenant.id}/location-{location.id}.png"
    saved = tmp_path / "floor-plans" / str(tenant.id) / f"location-{location.id}.png"
    assert Image.open(saved).size == (100, 50)
    assert floor_plan.floor_plan_file(updated) == saved

    assert captured["url"] == "https://hooks.example.com/plan"
    assert b'name="location_id"' in captured["body"]
    assert b'name="grid_cols"' in captured["body"]
    assert b'"width": 100' in captured["body"]
    assert b'filename="plan.png"' in captured["body"]


def test_webhook_failure_keeps_configuration(db_session, tenant, location, tmp_path, override_settings):
    override_settings(floor_plan, upload_dir=str(tmp_path), floorplan_webhook_url="https://hooks.example.com/plan")

    updated, webhook = floor_plan.configure_floor_plan(
        db_session, tenant.id, location.id, _png(), "plan.png", "image/png",
        CropArea(x=0, y=0, width=200, height=100), client=_mock_client(status_code=500),
    )

    assert webhook == "failed"
    assert (updated.grid_columns, updated.grid_rows) == (50, 30)


def test_webhook_is_skipped_when_not_configured(db_session, tenant, location, tmp_path, override_settings):
    override_settings(floor_plan, upload_dir=str(tmp_path), floorplan_webhook_url=None)

    _, webhook = floor_plan.configure_floor_plan(
        db_session, tenant.id, location.id, _png(), "plan.png", "image/png",
        CropArea(x=0, y=0, width=10, height=10),
    )

    assert webhook == "skipped"


def test_shrinking_grid_clears_placements_outside(
    db_session, tenant, location, rack, make_asset, tmp_path, override_settings
):
    override_settings(floor_plan, upload_dir=str(tmp_path), floorplan_webhook_url=None)
    desk = make_asset("Desk 1", target_rack=None, asset_type="ENDPOINT_USER")
    crop = CropArea(x=0, y=0, width=10, height=10)
    floor_plan.configure_floor_plan(db_session, tenant.id, location.id, _png(), "a.png", "image/png", crop)
    floor_plan.place_rack(db_session, tenant.id, rack.id, 45, 5)
    floor_plan.place_endpoint(db_session, tenant.id, desk.id, 5, 5)

    floor_plan.configure_floor_plan(
        db_session, tenant.id, location.id, _png(), "a.png", "image/png", crop, grid_cols=20, grid_rows=20
    )

    db_session.refresh(rack)
    db_session.refresh(desk)
    assert rack.pos_x is None and rack.pos_y is None
    assert (desk.pos_x, desk.pos_y) == (5, 5)


@pytest.mark.parametrize("cols, rows", [(9, 30), (50, 101)])
def test_configure_floor_plan_grid_bounds(db_session, tenant, location, tmp_path, override_settings, cols, rows):
    override_settings(floor_plan, upload_dir=str(tmp_path))

    with pytest.raises(HTTPException) as exc:
        floor_plan.configure_floor_plan(
            db_session, tenant.id, location.id, _png(), "a.png", "image/png",
            CropArea(x=0, y=0, width=10, height=10), grid_cols=cols, grid_rows=rows,
        )
    assert exc.value.status_code == 400


def test_configure_floor_plan_rejects_large_uploads(db_session, tenant, location, tmp_path, override_settings):
    override_settings(floor_plan, upload_dir=str(tmp_path), max_upload_bytes=10)

    with pytest.raises(HTTPException) as exc:
        floor_plan.configure_floor_plan(
            db_session, tenant.id, location.id, _png(), "a.png", "image/png", CropArea(x=0, y=0, width=10, height=10)
        )
    assert exc.value.status_code == 400


def test_crop_rejects_oversized_images(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

    with pytest.raises(HTTPException) as exc:
        floor_plan.crop_image(_png(200, 100), CropArea(x=0, y=0, width=10, height=10))
    assert exc.value.status_code == 400

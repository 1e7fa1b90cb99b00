import pytest
from fastapi import HTTPException

from rackmap import inventory, models


def test_create_location_with_and_without_parent(db_session, tenant):
    site = inventory.create_location(db_session, tenant.id, "  Campus  ", "NONE", "")
    room = inventory.create_location(db_session, tenant.id, "Server room", str(site.id), "Floor 2")

    assert site.name == "Campus"
    assert site.parent_location_id is None
    assert site.description is None
    assert room.parent_location_id == site.id
    assert inventory.location_path(room) == ["Campus", "Server room"]


def test_create_location_requires_name(db_session, tenant):
    with pytest.raises(HTTPException) as exc:
        inventory.create_location(db_session, tenant.id, "   ")
    assert exc.value.status_code == 400


def test_parent_location_must_belong_to_tenant(db_session, tenant, other_tenant):
    foreign = inventory.create_location(db_session, other_tenant.id, "Elsewhere")

    with pytest.raises(HTTPException) as exc:
        inventory.create_location(db_session, tenant.id, "Room", foreign.id)
    assert exc.value.status_code == 404


def test_list_locations_is_tenant_scoped(db_session, tenant, other_tenant):
    inventory.create_location(db_session, tenant.id, "B")
    inventory.create_location(db_session, tenant.id, "A")
    inventory.create_location(db_session, other_tenant.id, "C")

    assert [loc.name for loc in inventory.list_locations(db_session, tenant.id)] == ["A", "B"]


def test_delete_location_in_use_is_refused(db_session, tenant, location, rack):
    with pytest.raises(HTTPException) as exc:
        inventory.delete_location(db_session, tenant.id, location.id)
    assert exc.value.status_code == 409

    empty = inventory.create_location(db_session, tenant.id, "Empty")
    inventory.delete_location(db_session, tenant.id, empty.id)
    assert db_session.get(models.Location, empty.id) is None


def test_create_rack_defaults(db_session, tenant, location):
    rack = inventory.create_rack(db_session, tenant.id, "R02", str(location.id))

    assert rack.total_u == 42
    assert rack.location_id == location.id
    assert rack.tenant_id == tenant.id


@pytest.mark.parametrize("total_u", [0, -3, "abc"])
def test_create_rack_rejects_bad_height(db_session, tenant, location, total_u):
    with pytest.raises(HTTPException) as exc:
        inventory.create_rack(db_session, tenant.id, "R02", location.id, total_u)
    assert exc.value.status_code == 400


def test_create_rack_requires_valid_location(db_session, tenant):
    with pytest.raises(HTTPException) as exc:
        inventory.create_rack(db_session, tenant.id, "R02", "NONE")
    assert exc.value.status_code == 404


def test_rack_plan_limit(db_session, make_tenant):
    plan = models.Plan(name="Starter", rack_limit=1)
    tenant = make_tenant("Small", plan=plan)
    location = inventory.create_location(db_session, tenant.id, "Closet")
    inventory.create_rack(db_session, tenant.id, "R1", location.id)

    with pytest.raises(HTTPException) as exc:
        inventory.create_rack(db_session, tenant.id, "R2", location.id)
    assert exc.value.status_code == 403


def test_rack_of_another_tenant_is_not_found(db_session, other_tenant, rack):
    with pytest.raises(HTTPException) as exc:
        inventory.get_rack(db_session, other_tenant.id, rack.id)
    assert exc.value.status_code == 404


def test_update_rack_cannot_shrink_below_assets(db_session, tenant, rack, make_asset):
    make_asset("srv", start_u=40, size_u=2)

    with pytest.raises(HTTPException) as exc:
        inventory.update_rack(db_session, tenant.id, rack.id, total_u=40)
    assert exc.value.status_code == 409

    updated = inventory.update_rack(db_session, tenant.id, rack.id, name="R01-A", status="ACTIVE", total_u=41)
    assert (updated.name, updated.status, updated.total_u) == ("R01-A", "ACTIVE", 41)


def test_delete_rack_removes_assets(db_session, tenant, rack, make_asset):
    asset = make_asset("srv", start_u=1, ports=("eth0",))

    inventory.delete_rack(db_session, tenant.id, rack.id)

    assert db_session.get(models.Asset, asset.id) is None
    assert db_session.query(models.Port).count() == 0


def test_create_asset_validates_details_against_schema(db_session, tenant, rack):
    asset = inventory.create_asset(
        db_session, tenant.id, rack.id, 10, "db-01",
        asset_type="SERVER", size_u="2", details='{"manufacturer": "Dell", "model": "R740"}',
    )

    assert asset.location_id == rack.location_id
    assert asset.status == "IN_PRODUCTION"
    assert (asset.start_u, asset.size_u, asset.end_u) == (10, 2, 11)
    assert asset.details["ram_gb"] == 16


@pytest.mark.parametrize("details", ["{not json", "[1, 2]", '"text"'])
def test_create_asset_rejects_bad_details(db_session, tenant, rack, details):
    with pytest.raises(HTTPException) as exc:
        inventory.create_asset(db_session, tenant.id, rack.id, 1, "x", details=details)
    assert exc.value.status_code == 400


def test_blank_details_are_stored_as_null(db_session, tenant, rack):
    asset = inventory.create_asset(db_session, tenant.id, rack.id, 1, "x", details="   ")

    assert asset.details is None


def test_create_asset_must_fit_rack(db_session, tenant, rack):
    with pytest.raises(HTTPException) as exc:
        inventory.create_asset(db_session, tenant.id, rack.id, 42, "too-big", size_u=2)
    assert exc.value.status_code == 400


def test_create_asset_rejects_overlap(db_session, tenant, rack, make_asset):
    make_asset("existing", start_u=5, size_u=3)

    with pytest.raises(HTTPException) as exc:
        inventory.create_asset(db_session, tenant.id, rack.id, 7, "clash")
    assert exc.value.status_code == 409

    neighbour = inventory.create_asset(db_session, tenant.id, rack.id, 8, "neighbour")
    assert neighbour.start_u == 8


def test_asset_plan_limit(db_session, make_tenant):
    tenant = make_tenant("Tiny", plan=models.Plan(name="Free", asset_limit=1))
    location = inventory.create_location(db_session, tenant.id, "Closet")
    rack = inventory.create_rack(db_session, tenant.id, "R1", location.id)
    inventory.create_asset(db_session, tenant.id, rack.id, 1, "one")

    with pytest.raises(HTTPException) as exc:
        inventory.create_asset(db_session, tenant.id, rack.id, 2, "two")
    assert exc.value.status_code == 403


def test_update_asset_resize_checks_neighbours(db_session, tenant, rack, make_asset):
    asset = make_asset("a", start_u=1, size_u=1)
    make_asset("b", start_u=3, size_u=1)

    inventory.update_asset(db_session, tenant.id, asset.id, size_u=2)
    with pytest.raises(HTTPException) as exc:
        inventory.update_asset(db_session, tenant.id, asset.id, size_u=3)
    assert exc.value.status_code == 409


def test_update_asset_revalidates_details_on_type_change(db_session, tenant, make_asset):
    asset = make_asset("sw", start_u=1)

    updated = inventory.update_asset(
        db_session, tenant.id, asset.id, asset_type="SWITCH",
        details='{"manufacturer": "Cisco", "model": "C9300"}',
    )
    assert updated.details["port_count"] == 24
    assert updated.details["port_type"] == "RJ45_1G"


def test_move_asset_between_racks_and_unrack(db_session, tenant, location, rack, make_asset):
    asset = make_asset("srv", start_u=1, size_u=2)
    other = inventory.create_rack(db_session, tenant.id, "R02", location.id, 10)

    moved = inventory.move_asset(db_session, tenant.id, asset.id, str(other.id), 9)
    assert (moved.rack_id, moved.start_u) == (other.id, 9)

    with pytest.raises(HTTPException) as exc:
        inventory.move_asset(db_session, tenant.id, asset.id, other.id, 10)
    assert exc.value.status_code == 400

    unracked = inventory.move_asset(db_session, tenant.id, asset.id, "NONE")
    assert unracked.rack_id is None
    assert unracked.start_u is None


def test_delete_asset_returns_rack(db_session, tenant, rack, make_asset):
    asset = make_asset("srv", start_u=1)

    assert inventory.delete_asset(db_session, tenant.id, asset.id) == rack.id
    assert db_session.get(models.Asset, asset.id) is None


@pytest.mark.parametrize("raw", ['{"ram_gb": NaN}', '{"ram_gb": Infinity}', '{"ram_gb": -Infinity}', '{"ram_gb": 1e400}'])
def test_parse_details_rejects_non_finite_numbers(raw):
    with pytest.raises(HTTPException) as exc:
        inventory.parse_details(raw)
    assert exc.value.status_code == 400


def test_parse_details_keeps_ordinary_numbers():
    assert inventory.parse_details('{"ram_gb": 64, "storage_gb": 1.5}') == {"ram_gb": 64, "storage_gb": 1.5}

import logging

logger = logging.getLogger(__name__)

U_PIXEL_HEIGHT = 30


def has_valid_position(asset, total_u):
    start_u, size_u = asset.start_u, asset.size_u
    if start_u is None or size_u is None:
        return False
    if start_u <= 0 or size_u <= 0:
        return False
    return start_u + size_u - 1 <= total_u


def ranges_overlap(start_a, size_a, start_b, size_b):
    return start_a <= start_b + size_b - 1 and start_b <= start_a + size_a - 1


def _place_assets(total_u, assets, warn=True):
    """Map each U to the asset occupying it, first come first served.

    Returns ``(occupant, skipped)``; assets with missing, out-of-range or
    overlapping positions are skipped.
    """
    skipped = []
    occupant = {}
    for asset in sorted(assets, key=lambda a: (a.start_u or 0, a.id or 0)):
        if not has_valid_position(asset, total_u):
            if warn:
                logger.warning(
                    "Asset %r has invalid U positioning (start_u=%s, size_u=%s, total_u=%s), not rendered",
                    asset.name or asset.id, asset.start_u, asset.size_u, total_u,
                )
            skipped.append(asset)
            continue
        units = range(asset.start_u, asset.start_u + asset.size_u)
        if any(u in occupant for u in units):
            if warn:
                logger.warning("Asset %r overlaps another asset in the rack, not rendered", asset.name or asset.id)
            skipped.append(asset)
            continue
        for u in units:
            occupant[u] = asset
    return occupant, skipped


def build_rack_layout(total_u, assets):
    """Lay out a rack from U1 (top) to ``total_u`` (bottom).

    Returns ``(rows, skipped)``. Each row is either the block of an asset,
    spanning ``height`` units, or a single empty slot. Assets with missing,
    out-of-range or overlapping positions end up in ``skipped``.
    """
    occupant, skipped = _place_assets(total_u, assets)

    rows = []
    current_u = 1
    while current_u <= total_u:
        asset = occupant.get(current_u)
        if asset is not None:
            rows.append({
                "u": current_u,
                "type": "asset",
                "asset": asset,
                "height": asset.size_u,
                "pixel_height": asset.size_u * U_PIXEL_HEIGHT,
            })
            current_u += asset.size_u
        else:
            rows.append({"u": current_u, "type": "empty", "height": 1, "pixel_height": U_PIXEL_HEIGHT})
            current_u += 1
    return rows, skipped


def free_units(total_u, assets, exclude_asset_id=None):
    taken = set()
    for asset in assets:
        if asset.id == exclude_asset_id or not has_valid_position(asset, total_u):
            continue
        taken.update(range(asset.start_u, asset.start_u + asset.size_u))
    return [u for u in range(1, total_u + 1) if u not in taken]


def rack_usage(total_u, assets):
    # Overlapping assets are counted once, like the rendered layout
    occupant, _ = _place_assets(total_u, assets, warn=False)
    used = len(occupant)
    percentage = (used / total_u) * 100 if total_u > 0 else 0.0
    return {"used": used, "total": total_u, "percentage": percentage}


def format_detail_key(key):
    return " ".join(word[:1].upper() + word[1:] for word in key.split("_"))


def detail_items(details):
    """Label/value pairs for the asset detail panel."""
    if not details or not isinstance(details, dict):
        return []
    return [(format_detail_key(key), str(value)) for key, value in details.items()]

from decimal import Decimal

from chococraft.migrations import backfill_original_price, fix_scaled_prices


def test_backfill_original_price(db, make_product):
    legacy = make_product(name="Old Bar", price="80", original_price=None)
    current = make_product(name="New Bar", price="90", original_price="110")

    assert backfill_original_price(db) == 1
    assert backfill_original_price(db) == 0

    db.refresh(legacy)
    db.refresh(current)
    assert legacy.original_price == Decimal("80")
    assert current.original_price == Decimal("110")


def test_fix_scaled_prices(db, make_product):
    scaled = make_product(name="Paise Bar", price="45000", original_price="50000")
    odd = make_product(name="Premium Hamper", price="1050", original_price="1200")
    normal = make_product(name="Mini Bar", price="60", original_price="75")

    assert fix_scaled_prices(db) == 1

    for product in (scaled, odd, normal):
        db.refresh(product)
    assert (scaled.price, scaled.original_price) == (Decimal("450"), Decimal("500"))
    assert (odd.price, odd.original_price) == (Decimal("1050"), Decimal("1200"))
    assert normal.price == Decimal("60")


def test_migration_endpoints_are_admin_only(client, admin_headers, user_headers, make_product):
    make_product(price="70", original_price=None)

    assert client.post("/api/admin/migrate-products", headers=user_headers).status_code == 403
    resp = client.post("/api/admin/migrate-products", headers=admin_headers)
    assert resp.json() == {"message": "Product migration completed", "updated": 1}

    fixed = client.post("/api/admin/fix-scaled-prices", headers=admin_headers)
    assert fixed.json()["updated"] == 0

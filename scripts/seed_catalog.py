from __future__ import annotations

import argparse

from services.grocery.app.db.database import db_session
from services.grocery.app.db.init_db import init_db
from services.grocery.app.db.models import Product
from services.grocery.app.services.catalog import DEFAULT_PRODUCTS


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed a minimal product catalog")
    parser.add_argument(
        "--reprice",
        action="store_true",
        help="Overwrite prices of products that already exist",
    )
    args = parser.parse_args()

    init_db()

    db = db_session()
    try:
        created = 0
        for product_id, name, price_cents, unit, category_id in DEFAULT_PRODUCTS:
            existing = db.get(Product, product_id)
            if existing is None:
                db.add(
                    Product(
                        id=product_id,
                        name=name,
                        price_cents=price_cents,
                        unit=unit,
                        category_id=category_id,
                    )
                )
                created += 1
            elif args.reprice:
                existing.price_cents = price_cents

        db.commit()
        print(f"Seeded catalog: {created} new products")
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

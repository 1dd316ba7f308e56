from __future__ import annotations

from sqlalchemy import select

from app.cashclose.db.models import Product


class SqlInventoryGateway:
    def __init__(self, db):
        self.db = db

    def negative_stock_products(self) -> list[Product]:
        query = select(Product).where(Product.stock_quantity < 0).order_by(Product.sku)
        return self.db.execute(query).scalars().all()

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from app.cashclose.core.error_catalog import AppError, ErrorCatalog
from app.cashclose.core.scope import Scope


@dataclass(frozen=True)
class NegativeStockItem:
    product_id: str
    sku: str
    name: str
    stock_quantity: Decimal


@dataclass(frozen=True)
class StockValidation:
    valid: bool
    negative_stock_items: tuple[NegativeStockItem, ...]


class StockConsistencyService:
    def __init__(self, gateway):
        self.gateway = gateway

    def validate(self, scope: Scope) -> StockValidation:
        # stock is tracked per store, so every scope checks the same items
        try:
            products = self.gateway.negative_stock_products()
        except SQLAlchemyError as exc:
            raise AppError(
                ErrorCatalog.DB_UNAVAILABLE,
                details={"collaborator": "inventory", "type": exc.__class__.__name__},
            ) from exc
        items = tuple(
            NegativeStockItem(
                product_id=str(product.id),
                sku=product.sku,
                name=product.name,
                stock_quantity=Decimal(str(product.stock_quantity)),
            )
            for product in products
        )
        return StockValidation(valid=not items, negative_stock_items=items)

    def ensure_consistent(self, scope: Scope) -> None:
        validation = self.validate(scope)
        if validation.valid:
            return
        raise AppError(
            ErrorCatalog.NEGATIVE_STOCK_DETECTED,
            details={
                "scope": scope.key,
                "negative_stock_count": len(validation.negative_stock_items),
                "negative_stock_items": [
                    {
                        "product_id": item.product_id,
                        "sku": item.sku,
                        "name": item.name,
                        "stock_quantity": item.stock_quantity,
                    }
                    for item in validation.negative_stock_items
                ],
            },
        )

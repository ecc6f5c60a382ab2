"""
studio/products/services.py
---------------------------
Price list maintenance. Price edits never touch existing orders: order
lines keep the unit price they were created with.
"""
import logging

from sqlalchemy import func, or_

from studio.errors import ConflictError, NotFoundError, ValidationError
from studio.orders.models import OrderItem
from studio.products.models import Product, generate_product_code
from studio.products.validators import validate_product_form, parse_product_form
from studio.results import OperationResult, ProductSaveResult
from studio.utils.transactions import run_atomic

logger = logging.getLogger(__name__)

CODE_ATTEMPTS = 20


def serialize_product(product: Product) -> dict:
    return {
        'id':               product.id,
        'product_code':     product.product_code,
        'size':             product.size,
        'type':             product.type,
        'color':            product.color,
        'label':            product.label,
        'price':            str(product.price),
        'default_discount': str(product.default_discount),
        'description':      product.description,
    }


class ProductService:

    def __init__(self, session):
        self.session = session

    def generate_product_code(self) -> str:
        """A PRD-YYYYMMDD-NNNN code not used by any product yet."""
        for _ in range(CODE_ATTEMPTS):
            code = generate_product_code()
            if self.session.query(Product.id).filter_by(product_code=code).first() is None:
                return code
        raise ConflictError('Could not generate a unique product code; please retry.')

    def register_product(self, form_data: dict) -> ProductSaveResult:

        def work():
            errors = validate_product_form(form_data)
            if errors:
                raise ValidationError(errors)
            product = Product(product_code=self.generate_product_code(), **parse_product_form(form_data))
            self.session.add(product)
            self.session.flush()
            logger.info(f"Product {product.product_code} registered: {product.label} @ {product.price}")
            return ProductSaveResult(
                success=True,
                message=f'Product {product.label} added to the price list.',
                product_id=product.id,
                product_code=product.product_code,
            )

        return run_atomic(self.session, 'Register Product', ProductSaveResult, work,
                          size=form_data.get('size'), price=str(form_data.get('price')))

    def update_product(self, product_id: int, form_data: dict) -> ProductSaveResult:

        def work():
            product = self.session.get(Product, product_id)
            if product is None:
                raise NotFoundError(f'Product {product_id} not found.')
            errors = validate_product_form(form_data)
            if errors:
                raise ValidationError(errors)

            old_price = product.price
            for column, value in parse_product_form(form_data).items():
                setattr(product, column, value)
            self.session.flush()

            if old_price != product.price:
                logger.info(f"Product {product.product_code} price {old_price} → {product.price}")
            return ProductSaveResult(
                success=True,
                message=f'Product {product.label} updated.',
                product_id=product.id,
                product_code=product.product_code,
            )

        return run_atomic(self.session, 'Update Product', ProductSaveResult, work,
                          product_id=product_id, price=str(form_data.get('price')))

    def delete_product(self, product_id: int) -> OperationResult:
        """Blocked while any order line references the product."""

        def work():
            product = self.session.get(Product, product_id)
            if product is None:
                raise NotFoundError(f'Product {product_id} not found.')
            used = (
                self.session.query(func.count(OrderItem.id))
                .filter(OrderItem.product_id == product.id).scalar()
            )
            if used:
                raise ConflictError(f'Cannot delete {product.label}: it is used on {used} order line(s).')
            self.session.delete(product)
            logger.info(f"Product {product.product_code} deleted")
            return OperationResult(success=True, message=f'Product {product.label} deleted.')

        return run_atomic(self.session, 'Delete Product', OperationResult, work, product_id=product_id)

    def search_products(self, keyword: str = '', limit: int = 50, offset: int = 0) -> list:
        query = self.session.query(Product)
        for term in (keyword or '').split():
            like = f'%{term}%'
            query = query.filter(or_(
                Product.size.ilike(like),
                Product.type.ilike(like),
                Product.color.ilike(like),
                Product.product_code.ilike(like),
            ))
        rows = (
            query.order_by(Product.size, Product.id)
            .limit(max(1, min(int(limit), 200))).offset(max(0, int(offset))).all()
        )
        return [serialize_product(p) for p in rows]


def build_product_service(session=None) -> ProductService:
    from studio import db
    return ProductService(session if session is not None else db.session)

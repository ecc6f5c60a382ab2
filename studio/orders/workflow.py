"""
studio/orders/workflow.py
-------------------------
Order state machine and order writes.

    pending ⇄ in_progress ⇄ completed ⇄ canceled      (any → any)

Exactly one transition has a side effect: entering `completed` from any
other status settles the customer with points_for_order(order.total) in
the same transaction as the status write. The order row is locked
(SELECT … FOR UPDATE) before its status is read, so when two requests
race to complete the same order the second one sees `completed` and
awards nothing. Leaving `completed` never claws points back.

Create / edit validate everything first, then write:
    order row → line items (full replace on edit) → totals → status history
    → settlement when the order just became completed
"""
import logging
from typing import Optional

from flask import current_app

from studio.customers.models import Customer
from studio.errors import NotFoundError, ValidationError
from studio.loyalty.engine import SettlementEngine, build_engine
from studio.loyalty.models import Referral
from studio.loyalty.referrals import ReferralManager
from studio.orders.models import Order, OrderItem, OrderStatus, OrderPriority, OrderStatusHistory
from studio.orders.pricing import order_totals, line_subtotal, to_money
from studio.orders.validators import validate_order_fields, validate_order_items
from studio.products.models import Product
from studio.results import (
    OperationResult, OrderSaveResult, CompletionResult, BatchStatusResult, DetailResult,
)
from studio.utils.transactions import run_atomic

logger = logging.getLogger(__name__)


def serialize_order(order: Order, with_items: bool = True) -> dict:
    data = {
        'id':            order.id,
        'customer_id':   order.customer_id,
        'customer_name': order.customer.full_name if order.customer else None,
        'status':        order.status.value,
        'priority':      order.priority.value,
        'subtotal':      str(order.subtotal),
        'discount':      str(order.discount),
        'total':         str(order.total),
        'payment':       str(order.payment),
        'balance':       str(order.balance),
        'order_date':    order.order_date.isoformat(),
        'delivery_days': order.delivery_days,
        'due_date':      order.due_date.isoformat(),
        'is_delayed':    order.is_delayed(),
        'description':   order.description,
    }
    if with_items:
        data['items'] = [{
            'product_id':   item.product_id,
            'product_code': item.product.product_code if item.product else None,
            'label':        item.product.label if item.product else None,
            'quantity':     item.quantity,
            'unit_price':   str(item.unit_price),
            'subtotal':     str(item.subtotal),
        } for item in order.items]
    return data


def _item_count(items) -> Optional[int]:
    return len(items) if isinstance(items, (list, tuple)) else None


def _parse_status(status) -> OrderStatus:
    try:
        return OrderStatus(status.value if isinstance(status, OrderStatus) else status)
    except ValueError:
        raise ValidationError({'status': f'Unknown status "{status}".'})


class OrderWorkflow:

    def __init__(self, session, engine: SettlementEngine, referrals: ReferralManager,
                 reprice_on_edit: bool = False):
        self.session         = session
        self.engine          = engine
        self.referrals       = referrals
        self.reprice_on_edit = reprice_on_edit

    # ── Create / edit ─────────────────────────────────────────────

    def create_order(self, fields: dict, items: list, changed_by: Optional[int] = None) -> OrderSaveResult:

        def work():
            parsed, lines, products = self._validate(fields, items)

            order = Order(
                customer_id=parsed['customer_id'],
                status=parsed['status'],
                priority=parsed['priority'],
                order_date=parsed['order_date'],
                delivery_days=parsed['delivery_days'],
                description=parsed['description'],
            )
            self._replace_items(order, lines, products, {})
            self._apply_totals(order, parsed)
            self.session.add(order)
            self.session.flush()

            self._record_status(order, changed_by, 'Order created')
            outcome = self._settle_completion(order) if order.status is OrderStatus.completed else None

            logger.info(f"Order {order.id} created for customer {order.customer_id}: "
                        f"total={order.total} status={order.status.value}")
            return OrderSaveResult(
                success=True,
                message=f'Order {order.id} created.',
                order_id=order.id,
                total=to_money(order.total),
                points_awarded=outcome.points_delta if outcome else 0,
            )

        return run_atomic(self.session, 'Create Order', OrderSaveResult, work,
                          customer_id=fields.get('customer_id') if isinstance(fields, dict) else None,
                          item_count=_item_count(items))

    def update_order(self, order_id: int, fields: dict, items: list,
                     changed_by: Optional[int] = None) -> OrderSaveResult:
        """
        Full edit. Line items are replaced wholesale; products already on the
        order keep their unit price snapshot unless reprice_on_edit is set.
        """

        def work():
            order = self._lock_order(order_id)
            parsed, lines, products = self._validate(fields, items)

            snapshot = {}
            if not self.reprice_on_edit:
                snapshot = {item.product_id: item.unit_price for item in order.items}

            order.customer_id   = parsed['customer_id']
            order.priority      = parsed['priority']
            order.order_date    = parsed['order_date']
            order.delivery_days = parsed['delivery_days']
            order.description   = parsed['description']
            self._replace_items(order, lines, products, snapshot)
            self._apply_totals(order, parsed)

            outcome = self._transition(order, parsed['status'], changed_by, 'Order edited')
            self.session.flush()

            logger.info(f"Order {order.id} updated: total={order.total} status={order.status.value}")
            return OrderSaveResult(
                success=True,
                message=f'Order {order.id} updated.',
                order_id=order.id,
                total=to_money(order.total),
                points_awarded=outcome.points_delta if outcome else 0,
            )

        return run_atomic(self.session, 'Update Order', OrderSaveResult, work,
                          order_id=order_id, item_count=_item_count(items))

    # ── Status ────────────────────────────────────────────────────

    def update_status(self, order_id: int, status, changed_by: Optional[int] = None,
                      notes: Optional[str] = None) -> CompletionResult:

        def work():
            new_status = _parse_status(status)
            order = self._lock_order(order_id)
            already = order.status is new_status
            outcome = self._transition(order, new_status, changed_by, notes)

            if already:
                message = f'Order {order.id} is already {new_status.value}.'
            elif outcome is not None:
                message = (f'Order {order.id} completed. '
                           f'Customer earned {outcome.points_delta} points ({outcome.new_level.value}).')
            else:
                message = f'Order {order.id} status changed to {new_status.value}.'

            return CompletionResult(
                success=True,
                message=message,
                order_id=order.id,
                status=order.status.value,
                points_awarded=outcome.points_delta if outcome else 0,
                new_level=outcome.new_level if outcome else None,
                level_changed=outcome.level_changed if outcome else False,
            )

        return run_atomic(self.session, 'Update Order Status', CompletionResult, work,
                          order_id=order_id, status=str(status))

    def complete_order(self, order_id: int, changed_by: Optional[int] = None) -> CompletionResult:
        return self.update_status(order_id, OrderStatus.completed, changed_by)

    def batch_update_status(self, order_ids, status, changed_by: Optional[int] = None) -> BatchStatusResult:
        """All orders move together or none do."""

        def work():
            new_status = _parse_status(status)
            if order_ids is not None and not isinstance(order_ids, (list, tuple)):
                raise ValidationError({'order_ids': 'Order ids must be a list.'})
            ids = []
            for raw in order_ids or []:
                try:
                    oid = int(raw)
                except (TypeError, ValueError):
                    raise ValidationError({'order_ids': f'Invalid order id "{raw}".'})
                if oid not in ids:
                    ids.append(oid)
            if not ids:
                raise ValidationError({'order_ids': 'Select at least one order.'})

            orders = (
                self.session.query(Order)
                .filter(Order.id.in_(ids))
                .order_by(Order.id)
                .with_for_update()
                .populate_existing()
                .all()
            )
            missing = sorted(set(ids) - {o.id for o in orders})
            if missing:
                raise NotFoundError(f'Orders not found: {", ".join(map(str, missing))}.')

            awarded = {}
            for order in orders:
                outcome = self._transition(order, new_status, changed_by, 'Batch update')
                if outcome is not None:
                    awarded[order.id] = outcome.points_delta

            logger.info(f"Batch status → {new_status.value} for orders {ids}")
            return BatchStatusResult(
                success=True,
                message=f'{len(orders)} order(s) set to {new_status.value}.',
                order_ids=[o.id for o in orders],
                points_awarded=awarded,
            )

        return run_atomic(self.session, 'Batch Update Status', BatchStatusResult, work,
                          order_ids=order_ids, status=str(status))

    def update_priority(self, order_id: int, priority) -> OperationResult:

        def work():
            try:
                new_priority = OrderPriority(priority.value if isinstance(priority, OrderPriority) else priority)
            except ValueError:
                raise ValidationError({'priority': f'Unknown priority "{priority}".'})
            order = self._lock_order(order_id)
            order.priority = new_priority
            logger.info(f"Order {order.id} priority → {new_priority.value}")
            return OperationResult(success=True, message=f'Order {order.id} priority set to {new_priority.value}.')

        return run_atomic(self.session, 'Update Order Priority', OperationResult, work,
                          order_id=order_id, priority=str(priority))

    # ── Delete / read ─────────────────────────────────────────────

    def delete_order(self, order_id: int) -> OperationResult:
        """Items and status history go with the order. Points already awarded stay."""

        def work():
            order = self._lock_order(order_id)
            self.session.query(Referral).filter(Referral.order_id == order.id) \
                .update({Referral.order_id: None}, synchronize_session=False)
            self.session.delete(order)
            self.session.flush()
            logger.info(f"Order {order_id} deleted")
            return OperationResult(success=True, message=f'Order {order_id} deleted.')

        return run_atomic(self.session, 'Delete Order', OperationResult, work, order_id=order_id)

    def get_order(self, order_id: int) -> DetailResult:

        def work():
            order = self.session.get(Order, order_id)
            if order is None:
                raise NotFoundError(f'Order {order_id} not found.')
            data = serialize_order(order)
            data['history'] = [{
                'status':     h.status.value,
                'changed_by': h.changed_by,
                'notes':      h.notes,
                'changed_at': h.changed_at.isoformat(),
            } for h in order.history]
            return DetailResult(success=True, message='OK', data=data)

        return run_atomic(self.session, 'Get Order', DetailResult, work, order_id=order_id)

    # ── Internals ─────────────────────────────────────────────────

    def _lock_order(self, order_id: int) -> Order:
        order = (
            self.session.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if order is None:
            raise NotFoundError(f'Order {order_id} not found.')
        return order

    def _validate(self, fields: dict, items: list):
        errors, parsed = validate_order_fields(fields or {})
        item_errors, lines = validate_order_items(items)
        errors.update(item_errors)

        if 'customer_id' in parsed and self.session.get(Customer, parsed['customer_id']) is None:
            errors['customer_id'] = f'Customer {parsed["customer_id"]} not found.'

        products = {}
        wanted = {product_id for product_id, _ in lines}
        if wanted:
            products = {p.id: p for p in self.session.query(Product).filter(Product.id.in_(wanted)).all()}
            unknown = sorted(wanted - set(products))
            if unknown:
                errors['items'] = f'Unknown product(s): {", ".join(map(str, unknown))}.'

        if errors:
            raise ValidationError(errors)
        return parsed, lines, products

    def _replace_items(self, order: Order, lines, products: dict, snapshot: dict) -> None:
        order.items.clear()
        for product_id, quantity in lines:
            unit_price = snapshot.get(product_id, products[product_id].price)
            order.items.append(OrderItem(
                product_id=product_id,
                quantity=quantity,
                unit_price=to_money(unit_price),
                subtotal=line_subtotal(quantity, unit_price),
            ))

    def _apply_totals(self, order: Order, parsed: dict) -> None:
        totals = order_totals(
            ((item.quantity, item.unit_price) for item in order.items),
            discount=parsed['discount'],
            payment=parsed['payment'],
        )
        for column, value in totals.items():
            setattr(order, column, value)

    def _record_status(self, order: Order, changed_by, notes) -> None:
        self.session.add(OrderStatusHistory(
            order_id=order.id,
            status=order.status,
            changed_by=changed_by,
            notes=notes,
        ))

    def _transition(self, order: Order, new_status: OrderStatus, changed_by, notes):
        """Apply a status change; returns the settlement when points were awarded."""
        old_status = order.status
        if old_status is new_status:
            return None

        order.status = new_status
        self.session.flush()
        self._record_status(order, changed_by, notes)
        logger.info(f"Order {order.id} status {old_status.value} → {new_status.value}")

        if new_status is OrderStatus.completed:
            return self._settle_completion(order)
        if old_status is OrderStatus.completed:
            logger.info(f"Order {order.id} left completed; awarded points are kept")
        return None

    def _settle_completion(self, order: Order):
        self.referrals.mark_completed(order.customer_id, order.id)
        if self.engine.points.points_for_order(order.total) <= 0:
            logger.info(f"Order {order.id} completed with total {order.total}; no points earned")
            return None
        return self.engine.award_order(order)


def build_order_workflow(session=None, app_config=None) -> OrderWorkflow:
    from studio import db
    cfg = app_config if app_config is not None else current_app.config
    session = session if session is not None else db.session
    engine = build_engine(session, cfg)
    return OrderWorkflow(
        session,
        engine,
        ReferralManager(session, engine),
        reprice_on_edit=bool(cfg.get('ORDER_EDIT_REPRICE', False)),
    )

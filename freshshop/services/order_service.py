from flask import current_app
from sqlalchemy import or_, and_
from sqlalchemy.orm import joinedload
from freshshop.extensions import db
from freshshop.models import Order, GroupBuy, Customer
from freshshop.constants import OrderStatus
from freshshop.exceptions import BusinessError, ValidationError, InvalidStateError, NotFoundError
from freshshop.utils import parse_id_list, page_result, to_money


def get_next_status(current):
    """상태 순서상 바로 다음 상태. 마지막 상태이거나 알 수 없는 상태면 None"""
    if current not in OrderStatus.ALL:
        return None
    idx = OrderStatus.ALL.index(current)
    if idx + 1 >= len(OrderStatus.ALL):
        return None
    return OrderStatus.ALL[idx + 1]


def can_advance(current):
    return get_next_status(current) is not None


def _parse_amount(value):
    amount = to_money(value)
    if amount is None:
        raise ValidationError('환불 금액은 숫자여야 합니다.')
    return amount


def _parse_quantity(value):
    if isinstance(value, bool):
        raise ValidationError('구매 수량은 정수여야 합니다.')
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationError('구매 수량은 정수여야 합니다.')
    if quantity != float(value):
        raise ValidationError('구매 수량은 정수여야 합니다.')
    if quantity <= 0:
        raise ValidationError('구매 수량은 0보다 커야 합니다.')
    return quantity


class OrderService:
    @staticmethod
    def _get_order(order_id, for_update=False):
        query = Order.query.options(joinedload(Order.unit)).filter(
            Order.id == order_id,
            Order.is_deleted == False
        )
        if for_update:
            query = query.with_for_update(of=Order)
        order = query.first()
        if not order:
            raise NotFoundError('주문이 존재하지 않습니다.')
        return order

    @staticmethod
    def _build_order(data):
        """단건/일괄 생성 공통 검증 후 Order 객체 생성 (세션 추가 전)"""
        group_buy_id = data.get('group_buy_id')
        unit_id = data.get('unit_id')
        customer_id = data.get('customer_id')
        quantity = data.get('quantity')

        if not group_buy_id or not unit_id or not customer_id or quantity in (None, ''):
            raise ValidationError('필수 항목 누락: group_buy_id, unit_id, customer_id, quantity')

        quantity = _parse_quantity(quantity)

        group_buy = GroupBuy.query.filter_by(id=group_buy_id, is_deleted=False).first()
        if not group_buy:
            raise NotFoundError('공동구매가 존재하지 않습니다.')

        customer = Customer.query.filter_by(id=customer_id, is_deleted=False).first()
        if not customer:
            raise NotFoundError('고객이 존재하지 않습니다.')

        unit = group_buy.find_unit(unit_id)
        if not unit:
            raise NotFoundError('규격이 존재하지 않습니다.')

        status = data.get('status') or OrderStatus.NOTPAID
        if status not in OrderStatus.ALL:
            raise ValidationError(f'알 수 없는 주문 상태입니다: {status}')

        return Order(
            group_buy_id=group_buy.id,
            unit_id=unit.id,
            customer_id=customer.id,
            quantity=quantity,
            status=status,
            partial_refund_amount=0,
            description=data.get('description') or None
        )

    @staticmethod
    def create(data):
        try:
            order = OrderService._build_order(data)
            db.session.add(order)
            db.session.commit()
            return order
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def batch_create(items):
        """항목별로 독립 처리. 실패 항목은 사유와 함께 모아서 반환 (전체 롤백 없음)"""
        success_orders = []
        failed_orders = []

        for item in items or []:
            if not isinstance(item, dict):
                failed_orders.append({'order': item, 'error': '잘못된 주문 형식입니다.'})
                continue
            try:
                order = OrderService._build_order(item)
                db.session.add(order)
                db.session.commit()
                success_orders.append(order)
            except BusinessError as e:
                db.session.rollback()
                failed_orders.append({'order': item, 'error': e.message})
            except Exception as e:
                db.session.rollback()
                current_app.logger.warning(f"Batch order item failed: {e}")
                failed_orders.append({'order': item, 'error': '알 수 없는 오류'})

        current_app.logger.info(f"Batch order create: {len(success_orders)} ok, {len(failed_orders)} failed")
        return {
            'success_count': len(success_orders),
            'fail_count': len(failed_orders),
            'success_orders': success_orders,
            'failed_orders': failed_orders,
        }

    @staticmethod
    def update(order_id, data):
        try:
            order = OrderService._get_order(order_id, for_update=True)

            if 'status' in data and data['status'] != order.status:
                raise InvalidStateError('주문 상태는 상태 진행 또는 환불 기능으로만 변경할 수 있습니다.')

            if 'customer_id' in data and data['customer_id'] != order.customer_id:
                customer = Customer.query.filter_by(id=data['customer_id'], is_deleted=False).first()
                if not customer:
                    raise NotFoundError('고객이 존재하지 않습니다.')
                order.customer_id = customer.id

            if 'unit_id' in data and data['unit_id'] != order.unit_id:
                unit = order.group_buy.find_unit(data['unit_id'])
                if not unit:
                    raise NotFoundError('규격이 존재하지 않습니다.')
                order.unit_id = unit.id
                order.unit = unit

            if 'quantity' in data:
                order.quantity = _parse_quantity(data['quantity'])

            if 'description' in data:
                order.description = data['description'] or None

            if (order.partial_refund_amount or 0) > order.total_amount:
                raise ValidationError('부분 환불 금액이 변경된 주문 금액을 초과합니다.')

            db.session.commit()
            return order
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def advance(order_id):
        try:
            order = OrderService._get_order(order_id, for_update=True)
            next_status = get_next_status(order.status)
            if next_status is None:
                raise InvalidStateError(f'더 이상 진행할 수 없는 주문 상태입니다: {order.status}')
            order.status = next_status
            db.session.commit()
            current_app.logger.info(f"Order {order.id} advanced to {next_status}")
            return order
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def full_refund(order_id):
        try:
            order = OrderService._get_order(order_id, for_update=True)
            if order.status != OrderStatus.COMPLETED:
                raise InvalidStateError('완료된 주문만 전액 환불할 수 있습니다.')
            order.status = OrderStatus.REFUNDED
            db.session.commit()
            current_app.logger.info(f"Order {order.id} fully refunded")
            return order
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def partial_refund(order_id, amount):
        try:
            amount = _parse_amount(amount)
            order = OrderService._get_order(order_id, for_update=True)

            if order.status not in OrderStatus.PARTIAL_REFUNDABLE:
                raise InvalidStateError('결제완료 또는 완료 상태의 주문만 부분 환불할 수 있습니다.')

            if not order.unit:
                raise NotFoundError('주문의 규격 정보를 찾을 수 없습니다.')

            max_refund = order.refundable_amount
            if amount <= 0:
                raise ValidationError('환불 금액은 0보다 커야 합니다.')
            if amount > max_refund:
                raise ValidationError(f'환불 금액은 남은 환불 가능 금액 {max_refund} 을(를) 초과할 수 없습니다.')

            order.partial_refund_amount = (order.partial_refund_amount or 0) + amount
            db.session.commit()
            current_app.logger.info(f"Order {order.id} partial refund {amount} (total {order.partial_refund_amount})")
            return order
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def delete(order_id):
        try:
            order = OrderService._get_order(order_id)
            order.is_deleted = True
            db.session.commit()
            return order
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def detail(order_id):
        order = OrderService._get_order(order_id)
        data = order.to_dict(with_relations=True)
        data['next_status'] = get_next_status(order.status)
        data['can_advance'] = can_advance(order.status)
        return data

    @staticmethod
    def list(params, page, page_size):
        query = Order.query.filter(Order.is_deleted == False)

        customer_ids = parse_id_list(params.get('customer_ids'))
        if customer_ids:
            query = query.filter(Order.customer_id.in_(customer_ids))

        group_buy_ids = parse_id_list(params.get('group_buy_ids'))
        if group_buy_ids:
            query = query.filter(Order.group_buy_id.in_(group_buy_ids))

        statuses = [s for s in (params.get('statuses') or []) if s in OrderStatus.ALL]
        has_partial_refund = bool(params.get('has_partial_refund'))
        partial_refund_condition = and_(
            Order.partial_refund_amount > 0,
            Order.status != OrderStatus.REFUNDED
        )

        # 상태와 '부분 환불' 필터를 함께 지정하면 합집합
        if statuses and has_partial_refund:
            query = query.filter(or_(Order.status.in_(statuses), partial_refund_condition))
        elif statuses:
            query = query.filter(Order.status.in_(statuses))
        elif has_partial_refund:
            query = query.filter(partial_refund_condition)

        total_count = query.count()
        orders = query.options(
            joinedload(Order.customer),
            joinedload(Order.unit),
            joinedload(Order.group_buy).selectinload(GroupBuy.units)
        ).order_by(Order.created_at.desc(), Order.id.desc()) \
            .offset((page - 1) * page_size).limit(page_size).all()

        items = [o.to_dict(with_relations=True) for o in orders]
        return page_result(items, page, page_size, total_count)

    @staticmethod
    def list_all():
        return Order.query.filter_by(is_deleted=False).order_by(Order.created_at.asc(), Order.id.asc()).all()

    @staticmethod
    def stats():
        """미결제/결제완료 주문 수와 목록"""
        orders = Order.query.options(
            joinedload(Order.customer),
            joinedload(Order.group_buy).selectinload(GroupBuy.units)
        ).filter(
            Order.is_deleted == False,
            Order.status.in_(OrderStatus.PENDING)
        ).order_by(Order.created_at.desc(), Order.id.desc()).all()

        not_paid = [o.to_dict(with_relations=True) for o in orders if o.status == OrderStatus.NOTPAID]
        paid = [o.to_dict(with_relations=True) for o in orders if o.status == OrderStatus.PAID]
        return {
            'not_paid_count': len(not_paid),
            'paid_count': len(paid),
            'not_paid_orders': not_paid,
            'paid_orders': paid,
        }

    @staticmethod
    def orders_for_export(params):
        query = Order.query.options(
            joinedload(Order.customer),
            joinedload(Order.unit),
            joinedload(Order.group_buy)
        ).filter(Order.is_deleted == False)

        group_buy_ids = parse_id_list(params.get('group_buy_ids'))
        if group_buy_ids:
            query = query.filter(Order.group_buy_id.in_(group_buy_ids))
        statuses = [s for s in (params.get('statuses') or []) if s in OrderStatus.ALL]
        if statuses:
            query = query.filter(Order.status.in_(statuses))
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

import uuid
from flask import current_app
from sqlalchemy import func, and_
from sqlalchemy.orm import selectinload, joinedload
from freshshop.extensions import db
from freshshop.models import GroupBuy, GroupBuyUnit, Order, Supplier, Product
from freshshop.constants import OrderStatus
from freshshop.exceptions import ValidationError, NotFoundError, DataStillReferencedError
from freshshop.services.stats import order_revenue, order_profit
from freshshop.utils import parse_date, parse_id_list, page_result, clean_str, parse_image_list, to_money


def _parse_money(value, label):
    amount = to_money(value)
    if amount is None:
        raise ValidationError(f'{label}은(는) 숫자여야 합니다.')
    if amount < 0:
        raise ValidationError(f'{label}은(는) 0 이상이어야 합니다.')
    return amount


def _parse_units(raw_units):
    """규격 목록 검증. id 가 없으면 새로 발급"""
    if not isinstance(raw_units, list) or not raw_units:
        raise ValidationError('규격은 최소 1개 이상이어야 합니다.')
    units = []
    seen = set()
    for idx, raw in enumerate(raw_units):
        if not isinstance(raw, dict):
            raise ValidationError('잘못된 규격 형식입니다.')
        label = clean_str(raw.get('unit'))
        if not label:
            raise ValidationError('규격 이름은 필수입니다.')
        unit_id = clean_str(raw.get('id')) or str(uuid.uuid4())
        if unit_id in seen:
            raise ValidationError(f'중복된 규격 ID 입니다: {unit_id}')
        seen.add(unit_id)
        units.append({
            'id': unit_id,
            'unit': label,
            'price': _parse_money(raw.get('price'), '판매가'),
            'cost_price': _parse_money(raw.get('cost_price'), '원가'),
            'sort_order': idx,
        })
    return units


class GroupBuyService:
    @staticmethod
    def _get(group_buy_id):
        group_buy = GroupBuy.query.options(selectinload(GroupBuy.units)).filter(
            GroupBuy.id == group_buy_id,
            GroupBuy.is_deleted == False
        ).first()
        if not group_buy:
            raise NotFoundError('공동구매가 존재하지 않습니다.')
        return group_buy

    @staticmethod
    def _resolve_refs(supplier_id, product_id):
        supplier = Supplier.query.filter_by(id=supplier_id, is_deleted=False).first()
        if not supplier:
            raise NotFoundError('공급처가 존재하지 않습니다.')
        product = Product.query.filter_by(id=product_id, is_deleted=False).first()
        if not product:
            raise NotFoundError('상품이 존재하지 않습니다.')
        return supplier, product

    @staticmethod
    def create(data):
        try:
            name = clean_str(data.get('name'))
            if not name:
                raise ValidationError('공동구매 이름은 필수입니다.')
            start_date = parse_date(data.get('group_buy_start_date'))
            if not start_date:
                raise ValidationError('공동구매 시작일이 올바르지 않습니다.')
            supplier, product = GroupBuyService._resolve_refs(data.get('supplier_id'), data.get('product_id'))
            units = _parse_units(data.get('units'))

            group_buy = GroupBuy(
                name=name,
                description=clean_str(data.get('description')),
                group_buy_start_date=start_date,
                supplier_id=supplier.id,
                product_id=product.id,
                images=parse_image_list(data.get('images'))
            )
            group_buy.units = [GroupBuyUnit(**u) for u in units]
            db.session.add(group_buy)
            db.session.commit()
            current_app.logger.info(f"Group buy {group_buy.id} created with {len(units)} units")
            return group_buy
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def update(group_buy_id, data):
        try:
            group_buy = GroupBuyService._get(group_buy_id)

            if 'name' in data:
                name = clean_str(data['name'])
                if not name:
                    raise ValidationError('공동구매 이름은 필수입니다.')
                group_buy.name = name
            if 'description' in data:
                group_buy.description = clean_str(data['description'])
            if 'group_buy_start_date' in data:
                start_date = parse_date(data['group_buy_start_date'])
                if not start_date:
                    raise ValidationError('공동구매 시작일이 올바르지 않습니다.')
                group_buy.group_buy_start_date = start_date
            if 'supplier_id' in data or 'product_id' in data:
                supplier, product = GroupBuyService._resolve_refs(
                    data.get('supplier_id', group_buy.supplier_id),
                    data.get('product_id', group_buy.product_id)
                )
                group_buy.supplier_id = supplier.id
                group_buy.product_id = product.id
            if 'images' in data:
                group_buy.images = parse_image_list(data['images'])
            if 'units' in data:
                GroupBuyService._replace_units(group_buy, _parse_units(data['units']))

            db.session.commit()
            return group_buy
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def _replace_units(group_buy, units):
        """id 기준 upsert. 주문이 참조하는 규격은 목록에서 뺄 수 없음"""
        existing = {u.id: u for u in group_buy.units}
        incoming_ids = {u['id'] for u in units}

        removed_ids = [uid for uid in existing if uid not in incoming_ids]
        if removed_ids:
            referenced = db.session.query(Order.unit_id).filter(
                Order.unit_id.in_(removed_ids)
            ).distinct().all()
            if referenced:
                labels = ', '.join(existing[r[0]].unit for r in referenced)
                raise DataStillReferencedError(f'주문에서 사용 중인 규격은 삭제할 수 없습니다: {labels}')

        new_units = []
        for u in units:
            unit = existing.get(u['id'])
            if unit is None:
                unit = GroupBuyUnit(id=str(uuid.uuid4()))
            unit.unit = u['unit']
            unit.price = u['price']
            unit.cost_price = u['cost_price']
            unit.sort_order = u['sort_order']
            new_units.append(unit)
        group_buy.units = new_units

    @staticmethod
    def delete(group_buy_id):
        """공동구매와 소속 주문을 함께 소프트 삭제"""
        try:
            group_buy = GroupBuyService._get(group_buy_id)
            group_buy.is_deleted = True
            deleted_orders = Order.query.filter_by(group_buy_id=group_buy.id, is_deleted=False) \
                .update({Order.is_deleted: True}, synchronize_session=False)
            db.session.commit()
            current_app.logger.info(f"Group buy {group_buy.id} deleted with {deleted_orders} orders")
            return group_buy
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def delete_image(group_buy_id, filename):
        try:
            group_buy = GroupBuyService._get(group_buy_id)
            images = list(group_buy.images or [])
            if filename not in images:
                raise NotFoundError('해당 이미지가 공동구매에 없습니다.')
            group_buy.images = [img for img in images if img != filename]
            db.session.commit()
            return group_buy
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def detail(group_buy_id):
        """공동구매 정보와 규격별 통계 (결제완료/완료 주문 기준 순매출, 순이익)"""
        group_buy = GroupBuyService._get(group_buy_id)
        orders = Order.query.filter(
            Order.group_buy_id == group_buy.id,
            Order.is_deleted == False
        ).all()

        unit_stats = {}
        for unit in group_buy.units:
            unit_stats[unit.id] = {
                'unit_id': unit.id,
                'unit': unit.unit,
                'price': unit.price,
                'cost_price': unit.cost_price,
                'status_counts': {s: 0 for s in OrderStatus.ALL},
                'quantity': 0,
                'net_sales': 0,
                'net_profit': 0,
                'partial_refund_amount': 0,
            }

        total_sales = 0
        total_profit = 0
        for order in orders:
            stat = unit_stats.get(order.unit_id)
            if stat is None:
                continue
            unit = group_buy.find_unit(order.unit_id)
            stat['status_counts'][order.status] = stat['status_counts'].get(order.status, 0) + 1
            if order.status in OrderStatus.EFFECTIVE:
                partial = order.partial_refund_amount or 0
                sales = order_revenue(order.status, unit, order.quantity, partial)
                profit = order_profit(order.status, unit, order.quantity, partial)
                stat['quantity'] += order.quantity
                stat['net_sales'] += sales
                stat['net_profit'] += profit
                stat['partial_refund_amount'] += partial
                total_sales += sales
                total_profit += profit

        data = group_buy.to_dict()
        data['unit_stats'] = list(unit_stats.values())
        data['total_sales'] = total_sales
        data['total_profit'] = total_profit
        data['order_count'] = len(orders)
        return data

    @staticmethod
    def list(params, page, page_size):
        query = GroupBuy.query.filter(GroupBuy.is_deleted == False)

        name = clean_str(params.get('name'))
        if name:
            query = query.filter(GroupBuy.name.ilike(f'%{name}%'))

        start_date = parse_date(params.get('start_date'))
        end_date = parse_date(params.get('end_date'))
        if start_date:
            query = query.filter(GroupBuy.group_buy_start_date >= start_date)
        if end_date:
            query = query.filter(GroupBuy.group_buy_start_date <= end_date)

        supplier_ids = parse_id_list(params.get('supplier_ids'))
        if supplier_ids:
            query = query.filter(GroupBuy.supplier_id.in_(supplier_ids))
        product_ids = parse_id_list(params.get('product_ids'))
        if product_ids:
            query = query.filter(GroupBuy.product_id.in_(product_ids))

        # 주문 상태/부분 환불 조건을 만족하는 주문이 있는 공동구매만
        statuses = [s for s in (params.get('order_statuses') or []) if s in OrderStatus.ALL]
        if statuses:
            query = query.filter(GroupBuy.orders.any(and_(
                Order.is_deleted == False, Order.status.in_(statuses)
            )))
        if params.get('has_partial_refund'):
            query = query.filter(GroupBuy.orders.any(and_(
                Order.is_deleted == False,
                Order.partial_refund_amount > 0,
                Order.status != OrderStatus.REFUNDED
            )))

        total_count = query.count()
        group_buys = query.options(
            selectinload(GroupBuy.units),
            joinedload(GroupBuy.supplier),
            joinedload(GroupBuy.product)
        ).order_by(GroupBuy.group_buy_start_date.desc(), GroupBuy.id.desc()) \
            .offset((page - 1) * page_size).limit(page_size).all()

        stats = GroupBuyService._order_stats([gb.id for gb in group_buys])
        items = []
        for gb in group_buys:
            item = gb.to_dict()
            item.update(stats.get(gb.id, GroupBuyService._empty_stats()))
            items.append(item)
        return page_result(items, page, page_size, total_count)

    @staticmethod
    def _empty_stats():
        return {
            'order_status_counts': {s: 0 for s in OrderStatus.ALL},
            'order_count': 0,
            'partial_refund_order_count': 0,
            'partial_refund_amount': 0,
        }

    @staticmethod
    def _order_stats(group_buy_ids):
        if not group_buy_ids:
            return {}
        rows = db.session.query(
            Order.group_buy_id,
            Order.status,
            func.count(Order.id),
            func.sum(func.coalesce(Order.partial_refund_amount, 0))
        ).filter(
            Order.group_buy_id.in_(group_buy_ids),
            Order.is_deleted == False
        ).group_by(Order.group_buy_id, Order.status).all()

        partial_rows = db.session.query(Order.group_buy_id, func.count(Order.id)).filter(
            Order.group_buy_id.in_(group_buy_ids),
            Order.is_deleted == False,
            Order.partial_refund_amount > 0,
            Order.status != OrderStatus.REFUNDED
        ).group_by(Order.group_buy_id).all()

        result = {}
        for gb_id, status, count, partial_sum in rows:
            entry = result.setdefault(gb_id, GroupBuyService._empty_stats())
            entry['order_status_counts'][status] = count
            entry['order_count'] += count
            if status != OrderStatus.REFUNDED:
                entry['partial_refund_amount'] += to_money(partial_sum or 0)
        for gb_id, count in partial_rows:
            result.setdefault(gb_id, GroupBuyService._empty_stats())['partial_refund_order_count'] = count
        return result

    @staticmethod
    def list_all():
        return GroupBuy.query.options(selectinload(GroupBuy.units)).filter_by(is_deleted=False) \
            .order_by(GroupBuy.group_buy_start_date.desc(), GroupBuy.id.desc()).all()

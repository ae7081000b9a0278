from flask import current_app
from sqlalchemy.orm import joinedload
from freshshop.models import (
    Order, GroupBuy, Supplier, Product, ProductType, Customer, CustomerAddress
)
from freshshop.constants import OrderStatus
from freshshop.exceptions import NotFoundError, ValidationError
from freshshop.services.stats import StatsAccumulator, safe_div
from freshshop.services.aggregation import (
    group_buy_query, load_orders, accumulate, metrics_row, breakdown, build_detail,
    customer_rank_rows, customers_of
)
from freshshop.utils import parse_date_range, parse_page_params, paginate_list, sort_rows, parse_id_list, to_money

OVERVIEW_SORT_FIELDS = [
    'total_revenue', 'total_profit', 'profit_margin', 'order_count', 'group_buy_count',
    'unique_customer_count', 'total_refund_amount', 'refunded_order_count', 'partial_refund_order_count',
]
CUSTOMER_SORT_FIELDS = ['order_count', 'total_amount', 'average_order_value', 'total_refund_amount', 'group_buy_count']
ADDRESS_SORT_FIELDS = ['customer_count', 'active_customer_count', 'order_count', 'total_revenue', 'total_profit']


def _paged(rows, params, allowed_fields, default_field):
    page, page_size = parse_page_params(params, current_app.config.get('DEFAULT_PAGE_SIZE', 10))
    rows = sort_rows(rows, params.get('sort_field'), params.get('sort_order'), allowed_fields, default_field)
    return paginate_list(rows, page, page_size)


def _name_filter(query, model, params):
    name = (params.get('name') or '').strip()
    if name:
        query = query.filter(model.name.ilike(f'%{name}%'))
    return query


def _customer_orders(customer_ids, start_date=None, end_date=None):
    """고객 기준 통계 대상 주문. 기간은 공동구매 시작일 기준"""
    if not customer_ids:
        return []
    query = Order.query.join(GroupBuy, Order.group_buy_id == GroupBuy.id).options(
        joinedload(Order.unit),
        joinedload(Order.group_buy).joinedload(GroupBuy.product),
        joinedload(Order.customer).joinedload(Customer.customer_address)
    ).filter(
        Order.customer_id.in_(list(customer_ids)),
        Order.is_deleted == False,
        Order.status.in_(OrderStatus.COUNTED),
        GroupBuy.is_deleted == False
    )
    if start_date and end_date:
        query = query.filter(
            GroupBuy.group_buy_start_date >= start_date,
            GroupBuy.group_buy_start_date <= end_date
        )
    return query.order_by(Order.created_at.asc(), Order.id.asc()).all()


class OverviewService:
    """엔티티별(공급처, 공동구매, 상품, 상품유형, 고객, 주소) 실적 목록과 상세"""

    # ---------------- 공급처 ----------------

    @staticmethod
    def supplier_overview(params):
        start_date, end_date = parse_date_range(params)
        suppliers = _name_filter(Supplier.query.filter(Supplier.is_deleted == False), Supplier, params) \
            .order_by(Supplier.created_at.asc(), Supplier.id.asc()).all()

        group_buys = group_buy_query(start_date, end_date) \
            .filter(GroupBuy.supplier_id.in_([s.id for s in suppliers])).all() if suppliers else []
        orders_map = load_orders(group_buys)

        by_supplier = {s.id: [] for s in suppliers}
        for gb in group_buys:
            by_supplier[gb.supplier_id].append(gb)

        rows = []
        for supplier in suppliers:
            members = by_supplier[supplier.id]
            row = {'supplier_id': supplier.id, 'supplier_name': supplier.name}
            row.update(metrics_row(accumulate(members, orders_map), len(members)))
            rows.append(row)
        return _paged(rows, params, OVERVIEW_SORT_FIELDS, 'total_revenue')

    @staticmethod
    def supplier_overview_detail(supplier_id, start_date=None, end_date=None):
        supplier = Supplier.query.filter_by(id=supplier_id, is_deleted=False).first()
        if not supplier:
            raise NotFoundError('공급처가 존재하지 않습니다.')

        group_buys = group_buy_query(start_date, end_date).filter(GroupBuy.supplier_id == supplier.id).all()
        orders_map = load_orders(group_buys)

        detail = build_detail(group_buys, orders_map)
        detail['supplier'] = supplier.to_dict()
        detail['product_stats'] = breakdown(
            group_buys, orders_map,
            key_func=lambda gb: gb.product_id,
            name_func=lambda gb: gb.product.name if gb.product else None,
            id_field='product_id', name_field='product_name'
        )
        return detail

    # ---------------- 공동구매 ----------------

    @staticmethod
    def group_buy_overview(params):
        start_date, end_date = parse_date_range(params)
        query = _name_filter(group_buy_query(start_date, end_date), GroupBuy, params)
        supplier_ids = parse_id_list(params.get('supplier_ids'))
        if supplier_ids:
            query = query.filter(GroupBuy.supplier_id.in_(supplier_ids))
        group_buys = query.all()
        orders_map = load_orders(group_buys)

        rows = []
        if params.get('merge_same_name'):
            by_name = {}
            for gb in group_buys:
                by_name.setdefault(gb.name, []).append(gb)
            for name, members in by_name.items():
                dates = [gb.group_buy_start_date for gb in members]
                supplier_names = []
                for gb in members:
                    supplier_name = gb.supplier.name if gb.supplier else None
                    if supplier_name not in supplier_names:
                        supplier_names.append(supplier_name)
                row = {
                    'group_buy_name': name,
                    'supplier_names': supplier_names,
                    'first_launch_date': min(dates).isoformat(),
                    'latest_launch_date': max(dates).isoformat(),
                }
                row.update(metrics_row(accumulate(members, orders_map), len(members)))
                rows.append(row)
        else:
            for gb in group_buys:
                row = {
                    'group_buy_id': gb.id,
                    'group_buy_name': gb.name,
                    'group_buy_start_date': gb.group_buy_start_date.isoformat(),
                    'supplier_id': gb.supplier_id,
                    'supplier_name': gb.supplier.name if gb.supplier else None,
                    'product_id': gb.product_id,
                    'product_name': gb.product.name if gb.product else None,
                }
                row.update(metrics_row(accumulate([gb], orders_map), 1))
                rows.append(row)
        return _paged(rows, params, OVERVIEW_SORT_FIELDS, 'total_revenue')

    @staticmethod
    def group_buy_overview_detail(group_buy_id):
        group_buy = group_buy_query().filter(GroupBuy.id == group_buy_id).first()
        if not group_buy:
            raise NotFoundError('공동구매가 존재하지 않습니다.')
        orders_map = load_orders([group_buy])
        detail = build_detail([group_buy], orders_map)
        detail['group_buy'] = group_buy.to_dict()
        return detail

    @staticmethod
    def _same_name_group_buys(name, supplier_id=None, start_date=None, end_date=None):
        if not name:
            raise ValidationError('공동구매 이름이 필요합니다.')
        # 이름 완전 일치로 병합. supplier_id 미지정 시 공급처를 가리지 않음
        query = group_buy_query(start_date, end_date).filter(GroupBuy.name == name)
        if supplier_id:
            query = query.filter(GroupBuy.supplier_id == supplier_id)
        return query.all()

    @staticmethod
    def merged_group_buy_overview_detail(name, supplier_id=None, start_date=None, end_date=None):
        group_buys = OverviewService._same_name_group_buys(name, supplier_id, start_date, end_date)
        orders_map = load_orders(group_buys)
        detail = build_detail(group_buys, orders_map)
        detail['group_buy_name'] = name
        detail['supplier_id'] = supplier_id
        detail['supplier_stats'] = breakdown(
            group_buys, orders_map,
            key_func=lambda gb: gb.supplier_id,
            name_func=lambda gb: gb.supplier.name if gb.supplier else None,
            id_field='supplier_id', name_field='supplier_name'
        )
        return detail

    @staticmethod
    def merged_group_buy_customer_rank(name, supplier_id=None, start_date=None, end_date=None):
        group_buys = OverviewService._same_name_group_buys(name, supplier_id, start_date, end_date)
        orders_map = load_orders(group_buys)
        acc = accumulate(group_buys, orders_map)
        rows = customer_rank_rows(acc, customers_of(orders_map))
        return sorted(rows, key=lambda r: r['order_count'], reverse=True)

    # ---------------- 상품 / 상품유형 ----------------

    @staticmethod
    def product_overview(params):
        start_date, end_date = parse_date_range(params)
        query = _name_filter(Product.query.filter(Product.is_deleted == False), Product, params)
        product_type_ids = parse_id_list(params.get('product_type_ids'))
        if product_type_ids:
            query = query.filter(Product.product_type_id.in_(product_type_ids))
        products = query.order_by(Product.created_at.asc(), Product.id.asc()).all()

        group_buys = group_buy_query(start_date, end_date) \
            .filter(GroupBuy.product_id.in_([p.id for p in products])).all() if products else []
        orders_map = load_orders(group_buys)

        by_product = {p.id: [] for p in products}
        for gb in group_buys:
            by_product[gb.product_id].append(gb)

        rows = []
        for product in products:
            members = by_product[product.id]
            row = {
                'product_id': product.id,
                'product_name': product.name,
                'product_type_id': product.product_type_id,
                'product_type_name': product.product_type.name if product.product_type else None,
            }
            row.update(metrics_row(accumulate(members, orders_map), len(members)))
            rows.append(row)
        return _paged(rows, params, OVERVIEW_SORT_FIELDS, 'total_revenue')

    @staticmethod
    def product_overview_detail(product_id, start_date=None, end_date=None):
        product = Product.query.filter_by(id=product_id, is_deleted=False).first()
        if not product:
            raise NotFoundError('상품이 존재하지 않습니다.')
        group_buys = group_buy_query(start_date, end_date).filter(GroupBuy.product_id == product.id).all()
        orders_map = load_orders(group_buys)

        detail = build_detail(group_buys, orders_map)
        detail['product'] = product.to_dict()
        detail['supplier_stats'] = breakdown(
            group_buys, orders_map,
            key_func=lambda gb: gb.supplier_id,
            name_func=lambda gb: gb.supplier.name if gb.supplier else None,
            id_field='supplier_id', name_field='supplier_name'
        )
        return detail

    @staticmethod
    def product_type_overview(params):
        start_date, end_date = parse_date_range(params)
        product_types = _name_filter(ProductType.query.filter(ProductType.is_deleted == False), ProductType, params) \
            .order_by(ProductType.created_at.asc(), ProductType.id.asc()).all()

        type_ids = [t.id for t in product_types]
        group_buys = group_buy_query(start_date, end_date).join(Product, GroupBuy.product_id == Product.id) \
            .filter(Product.product_type_id.in_(type_ids)).all() if type_ids else []
        orders_map = load_orders(group_buys)

        by_type = {t.id: [] for t in product_types}
        for gb in group_buys:
            by_type[gb.product.product_type_id].append(gb)

        rows = []
        for product_type in product_types:
            members = by_type[product_type.id]
            row = {'product_type_id': product_type.id, 'product_type_name': product_type.name}
            row.update(metrics_row(accumulate(members, orders_map), len(members)))
            rows.append(row)
        return _paged(rows, params, OVERVIEW_SORT_FIELDS, 'total_revenue')

    @staticmethod
    def product_type_overview_detail(product_type_id, start_date=None, end_date=None):
        product_type = ProductType.query.filter_by(id=product_type_id, is_deleted=False).first()
        if not product_type:
            raise NotFoundError('상품 유형이 존재하지 않습니다.')
        group_buys = group_buy_query(start_date, end_date).join(Product, GroupBuy.product_id == Product.id) \
            .filter(Product.product_type_id == product_type.id).all()
        orders_map = load_orders(group_buys)

        detail = build_detail(group_buys, orders_map)
        detail['product_type'] = product_type.to_dict()
        detail['product_stats'] = breakdown(
            group_buys, orders_map,
            key_func=lambda gb: gb.product_id,
            name_func=lambda gb: gb.product.name if gb.product else None,
            id_field='product_id', name_field='product_name'
        )
        detail['supplier_stats'] = breakdown(
            group_buys, orders_map,
            key_func=lambda gb: gb.supplier_id,
            name_func=lambda gb: gb.supplier.name if gb.supplier else None,
            id_field='supplier_id', name_field='supplier_name'
        )
        return detail

    # ---------------- 고객 ----------------

    @staticmethod
    def _customer_row(customer, orders):
        acc = StatsAccumulator()
        group_buy_ids = set()
        for order in orders:
            if acc.add(order) and order.status in OrderStatus.EFFECTIVE:
                group_buy_ids.add(order.group_buy_id)
        return {
            'customer_id': customer.id,
            'customer_name': customer.name,
            'phone': customer.phone,
            'customer_address_name': customer.customer_address.name if customer.customer_address else None,
            'order_count': acc.order_count,
            'total_amount': acc.total_revenue,
            'total_profit': acc.total_profit,
            'average_order_value': to_money(safe_div(acc.total_revenue, acc.order_count)),
            'total_refund_amount': acc.total_refund_amount,
            'refunded_order_count': acc.refunded_order_count,
            'partial_refund_order_count': acc.partial_refund_order_count,
            'group_buy_count': len(group_buy_ids),
        }, acc

    @staticmethod
    def customer_overview(params):
        start_date, end_date = parse_date_range(params)
        query = _name_filter(Customer.query.filter(Customer.is_deleted == False), Customer, params)
        address_ids = parse_id_list(params.get('customer_address_ids'))
        if address_ids:
            query = query.filter(Customer.customer_address_id.in_(address_ids))
        customers = query.order_by(Customer.created_at.asc(), Customer.id.asc()).all()

        orders_by_customer = {c.id: [] for c in customers}
        for order in _customer_orders(orders_by_customer.keys(), start_date, end_date):
            orders_by_customer[order.customer_id].append(order)

        rows = [OverviewService._customer_row(c, orders_by_customer[c.id])[0] for c in customers]
        return _paged(rows, params, CUSTOMER_SORT_FIELDS, 'total_amount')

    @staticmethod
    def customer_overview_detail(customer_id, start_date=None, end_date=None):
        """고객 소비 상세: 합계, 자주 구매한 상품, 자주 참여한 공동구매"""
        customer = Customer.query.filter_by(id=customer_id, is_deleted=False).first()
        if not customer:
            raise NotFoundError('고객이 존재하지 않습니다.')

        orders = _customer_orders([customer.id], start_date, end_date)
        detail, acc = OverviewService._customer_row(customer, orders)

        products = {}
        group_buy_names = {}
        for order in orders:
            if order.status not in OrderStatus.EFFECTIVE or order.unit is None:
                continue
            revenue = order.unit.price * order.quantity - (order.partial_refund_amount or 0)
            gb = order.group_buy
            product = products.setdefault(gb.product_id, {
                'product_id': gb.product_id,
                'product_name': gb.product.name if gb.product else None,
                'order_count': 0,
                'total_amount': 0,
            })
            product['order_count'] += 1
            product['total_amount'] += revenue

            named = group_buy_names.setdefault(gb.name, {
                'group_buy_name': gb.name,
                'order_count': 0,
                'total_amount': 0,
            })
            named['order_count'] += 1
            named['total_amount'] += revenue

        limit = current_app.config.get('RANK_LIMIT', 10)
        detail['customer'] = customer.to_dict()
        detail['top_products'] = sorted(products.values(), key=lambda r: r['order_count'], reverse=True)[:limit]
        detail['top_group_buys'] = sorted(group_buy_names.values(), key=lambda r: r['order_count'], reverse=True)[:limit]
        detail['total_partial_refund_amount'] = acc.total_partial_refund_amount
        return detail

    # ---------------- 고객 주소 ----------------

    @staticmethod
    def _address_scope(addresses, start_date, end_date):
        customers = Customer.query.filter(
            Customer.is_deleted == False,
            Customer.customer_address_id.in_([a.id for a in addresses])
        ).order_by(Customer.created_at.asc(), Customer.id.asc()).all() if addresses else []
        orders = _customer_orders([c.id for c in customers], start_date, end_date)
        return customers, orders

    @staticmethod
    def _address_row(address, customers, orders):
        acc = StatsAccumulator()
        for order in orders:
            acc.add(order)
        return {
            'customer_address_id': address.id,
            'customer_address_name': address.name,
            'customer_count': len(customers),
            'active_customer_count': acc.unique_customer_count,
            'order_count': acc.order_count,
            'total_revenue': acc.total_revenue,
            'total_profit': acc.total_profit,
            'profit_margin': acc.profit_margin,
            'total_refund_amount': acc.total_refund_amount,
        }, acc

    @staticmethod
    def address_overview(params):
        start_date, end_date = parse_date_range(params)
        addresses = _name_filter(
            CustomerAddress.query.filter(CustomerAddress.is_deleted == False), CustomerAddress, params
        ).order_by(CustomerAddress.created_at.asc(), CustomerAddress.id.asc()).all()

        customers, orders = OverviewService._address_scope(addresses, start_date, end_date)
        customers_by_address = {a.id: [] for a in addresses}
        for c in customers:
            customers_by_address[c.customer_address_id].append(c)
        orders_by_address = {a.id: [] for a in addresses}
        for o in orders:
            orders_by_address[o.customer.customer_address_id].append(o)

        rows = [
            OverviewService._address_row(a, customers_by_address[a.id], orders_by_address[a.id])[0]
            for a in addresses
        ]
        return _paged(rows, params, ADDRESS_SORT_FIELDS, 'total_revenue')

    @staticmethod
    def address_overview_detail(address_id, start_date=None, end_date=None):
        address = CustomerAddress.query.filter_by(id=address_id, is_deleted=False).first()
        if not address:
            raise NotFoundError('고객 주소가 존재하지 않습니다.')

        customers, orders = OverviewService._address_scope([address], start_date, end_date)
        detail, acc = OverviewService._address_row(address, customers, orders)
        detail.update(acc.customer_analysis())

        customer_rows = []
        for c in customers:
            customer_rows.append({
                'customer_id': c.id,
                'customer_name': c.name,
                'order_count': acc.customer_order_counts.get(c.id, 0),
                'total_amount': acc.customer_revenue.get(c.id, 0),
            })
        detail['customers'] = sorted(customer_rows, key=lambda r: r['total_amount'], reverse=True)
        return detail

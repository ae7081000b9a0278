from sqlalchemy.orm import joinedload, selectinload
from freshshop.models import Order, GroupBuy, Customer
from freshshop.constants import OrderStatus
from freshshop.services.stats import StatsAccumulator, bucket_purchase_frequency, histogram_rows, safe_div
from freshshop.utils import iso, to_money


def group_buy_query(start_date=None, end_date=None):
    """삭제되지 않은 공동구매. 기간 필터는 공동구매 시작일 기준 (양끝 포함)"""
    query = GroupBuy.query.options(
        selectinload(GroupBuy.units),
        joinedload(GroupBuy.supplier),
        joinedload(GroupBuy.product)
    ).filter(GroupBuy.is_deleted == False)
    if start_date and end_date:
        query = query.filter(
            GroupBuy.group_buy_start_date >= start_date,
            GroupBuy.group_buy_start_date <= end_date
        )
    return query.order_by(GroupBuy.created_at.asc(), GroupBuy.id.asc())


def load_orders(group_buys, statuses=None):
    """공동구매 ID별 통계 대상 주문 목록 (NOTPAID 제외, 생성 순)"""
    orders_map = {gb.id: [] for gb in group_buys}
    if not orders_map:
        return orders_map
    orders = Order.query.options(
        joinedload(Order.unit),
        joinedload(Order.customer).joinedload(Customer.customer_address)
    ).filter(
        Order.group_buy_id.in_(list(orders_map.keys())),
        Order.is_deleted == False,
        Order.status.in_(statuses or OrderStatus.COUNTED)
    ).order_by(Order.created_at.asc(), Order.id.asc()).all()
    for order in orders:
        orders_map[order.group_buy_id].append(order)
    return orders_map


def accumulate(group_buys, orders_map, track_regions=False):
    acc = StatsAccumulator(track_regions=track_regions)
    for gb in group_buys:
        for order in orders_map.get(gb.id, []):
            acc.add(order)
    return acc


def metrics_row(acc, group_buy_count):
    row = acc.summary()
    row['group_buy_count'] = group_buy_count
    return row


def launch_history(group_buys, orders_map):
    history = []
    for gb in group_buys:
        acc = accumulate([gb], orders_map)
        history.append({
            'group_buy_id': gb.id,
            'group_buy_name': gb.name,
            'supplier_id': gb.supplier_id,
            'supplier_name': gb.supplier.name if gb.supplier else None,
            'launch_date': iso(gb.group_buy_start_date),
            'revenue': acc.total_revenue,
            'profit': acc.total_profit,
            'order_count': acc.order_count,
            'customer_count': acc.unique_customer_count,
            'total_refund_amount': acc.total_refund_amount,
            'partial_refund_order_count': acc.partial_refund_order_count,
            'refunded_order_count': acc.refunded_order_count,
            'total_refund_order_count': acc.total_refund_order_count,
        })
    # 최신 시작일 순 (같은 날짜는 생성 순서 유지)
    return sorted(history, key=lambda h: h['launch_date'] or '', reverse=True)


def breakdown(group_buys, orders_map, key_func, name_func, id_field, name_field):
    """공동구매를 key_func 기준으로 묶어 매출/이익/주문 수를 집계 (공급처별, 상품별 등)"""
    groups = {}
    for gb in group_buys:
        key = key_func(gb)
        entry = groups.setdefault(key, {'name': name_func(gb), 'group_buys': []})
        entry['group_buys'].append(gb)

    rows = []
    for key, entry in groups.items():
        acc = accumulate(entry['group_buys'], orders_map)
        row = {id_field: key, name_field: entry['name']}
        row.update(metrics_row(acc, len(entry['group_buys'])))
        rows.append(row)
    return sorted(rows, key=lambda r: r['total_revenue'], reverse=True)


def build_detail(group_buys, orders_map):
    """상세 화면 공통 지표: 핵심 실적, 고객 분석, 구매 빈도, 지역, 출시 이력"""
    acc = accumulate(group_buys, orders_map, track_regions=True)
    group_buy_count = len(group_buys)
    histogram = acc.purchase_frequency()

    detail = metrics_row(acc, group_buy_count)
    detail.update(acc.customer_analysis())
    detail.update({
        'average_group_buy_revenue': to_money(safe_div(acc.total_revenue, group_buy_count)),
        'average_group_buy_profit': to_money(safe_div(acc.total_profit, group_buy_count)),
        'average_group_buy_order_count': safe_div(acc.order_count, group_buy_count),
        'customer_purchase_frequency': histogram_rows(histogram),
        'customer_purchase_frequency_buckets': bucket_purchase_frequency(histogram, group_buy_count),
        'regional_sales': acc.regional_sales(),
        'group_buy_launch_history': launch_history(group_buys, orders_map),
    })
    return detail


def customer_rank_rows(acc, customers_by_id):
    rows = []
    for cid, count in acc.customer_order_counts.items():
        customer = customers_by_id.get(cid)
        rows.append({
            'customer_id': cid,
            'customer_name': customer.name if customer else None,
            'order_count': count,
            'total_amount': acc.customer_revenue.get(cid, 0),
        })
    return rows


def customers_of(orders_map):
    customers = {}
    for orders in orders_map.values():
        for order in orders:
            if order.customer is not None:
                customers[order.customer_id] = order.customer
    return customers

from datetime import timedelta
from flask import current_app
from freshshop.services.aggregation import (
    group_buy_query, load_orders, accumulate, customer_rank_rows, customers_of
)


def _month_key(d):
    return d.strftime('%Y-%m')


def _day_keys(start_date, end_date):
    keys = []
    current = start_date
    while current <= end_date:
        keys.append(current.isoformat())
        current += timedelta(days=1)
    return keys


def _month_keys(first, last):
    keys = []
    year, month = first.year, first.month
    while (year, month) <= (last.year, last.month):
        keys.append(f'{year:04d}-{month:02d}')
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return keys


def _series(keys, values):
    return [{'date': k, 'value': values.get(k, 0)} for k in keys]


def _cumulative(series):
    running = 0
    result = []
    for point in series:
        running += point['value']
        result.append({'date': point['date'], 'value': running})
    return result


def _top(rows, field, limit):
    return sorted(rows, key=lambda r: r[field], reverse=True)[:limit]


class AnalysisService:
    """대시보드 집계: 기간 내 총계, 일/월 추이, 순위"""

    @staticmethod
    def count(start_date=None, end_date=None):
        group_buys = group_buy_query(start_date, end_date).all()
        orders_map = load_orders(group_buys)

        has_range = bool(start_date and end_date)
        if has_range:
            granularity = 'day'
            keys = _day_keys(start_date, end_date)
            key_of = lambda d: d.isoformat()
        else:
            # 전체 기간: 첫 공동구매 월부터 마지막 공동구매 월까지 월 단위
            granularity = 'month'
            dates = [gb.group_buy_start_date for gb in group_buys]
            keys = _month_keys(min(dates), max(dates)) if dates else []
            key_of = _month_key

        group_buy_counts, order_counts, revenues, profits = {}, {}, {}, {}
        total = accumulate(group_buys, orders_map)

        for gb in group_buys:
            key = key_of(gb.group_buy_start_date)
            acc = accumulate([gb], orders_map)
            group_buy_counts[key] = group_buy_counts.get(key, 0) + 1
            order_counts[key] = order_counts.get(key, 0) + acc.order_count
            revenues[key] = revenues.get(key, 0) + acc.total_revenue
            profits[key] = profits.get(key, 0) + acc.total_profit

        group_buy_trend = _series(keys, group_buy_counts)
        order_trend = _series(keys, order_counts)
        revenue_trend = _series(keys, revenues)
        profit_trend = _series(keys, profits)

        return {
            'granularity': granularity,
            'group_buy_count': len(group_buys),
            'order_count': total.order_count,
            'total_revenue': total.total_revenue,
            'total_profit': total.total_profit,
            'group_buy_trend': group_buy_trend,
            'order_trend': order_trend,
            'revenue_trend': revenue_trend,
            'profit_trend': profit_trend,
            'cumulative_group_buy_trend': _cumulative(group_buy_trend),
            'cumulative_order_trend': _cumulative(order_trend),
            'cumulative_revenue_trend': _cumulative(revenue_trend),
            'cumulative_profit_trend': _cumulative(profit_trend),
        }

    @staticmethod
    def _group_buy_rows(group_buys, orders_map):
        rows = []
        for gb in group_buys:
            acc = accumulate([gb], orders_map)
            rows.append({
                'id': gb.id,
                'name': gb.name,
                'group_buy_start_date': gb.group_buy_start_date.isoformat(),
                'order_count': acc.order_count,
                'total_sales': acc.total_revenue,
                'total_profit': acc.total_profit,
            })
        return rows

    @staticmethod
    def rank(start_date=None, end_date=None):
        limit = current_app.config.get('RANK_LIMIT', 10)
        group_buys = group_buy_query(start_date, end_date).all()
        orders_map = load_orders(group_buys)
        rows = AnalysisService._group_buy_rows(group_buys, orders_map)

        suppliers = {}
        for gb in group_buys:
            entry = suppliers.setdefault(gb.supplier_id, {
                'id': gb.supplier_id,
                'name': gb.supplier.name if gb.supplier else None,
                'group_buy_count': 0,
            })
            entry['group_buy_count'] += 1

        return {
            'group_buy_rank_by_order_count': _top(rows, 'order_count', limit),
            'group_buy_rank_by_total_sales': _top(rows, 'total_sales', limit),
            'group_buy_rank_by_total_profit': _top(rows, 'total_profit', limit),
            'supplier_rank_by_group_buy_count': _top(list(suppliers.values()), 'group_buy_count', limit),
        }

    @staticmethod
    def merged_group_buy_rank(start_date=None, end_date=None):
        """동일 이름 공동구매를 하나로 묶은 순위"""
        limit = current_app.config.get('RANK_LIMIT', 10)
        group_buys = group_buy_query(start_date, end_date).all()
        orders_map = load_orders(group_buys)

        by_name = {}
        for gb in group_buys:
            by_name.setdefault(gb.name, []).append(gb)

        rows = []
        for name, members in by_name.items():
            acc = accumulate(members, orders_map)
            rows.append({
                'name': name,
                'group_buy_count': len(members),
                'order_count': acc.order_count,
                'total_sales': acc.total_revenue,
                'total_profit': acc.total_profit,
            })

        return {
            'merged_group_buy_rank_by_order_count': _top(rows, 'order_count', limit),
            'merged_group_buy_rank_by_total_sales': _top(rows, 'total_sales', limit),
            'merged_group_buy_rank_by_total_profit': _top(rows, 'total_profit', limit),
        }

    @staticmethod
    def customer_rank(start_date=None, end_date=None):
        limit = current_app.config.get('RANK_LIMIT', 10)
        group_buys = group_buy_query(start_date, end_date).all()
        orders_map = load_orders(group_buys)
        acc = accumulate(group_buys, orders_map)
        rows = customer_rank_rows(acc, customers_of(orders_map))
        return {
            'customer_rank_by_order_count': _top(rows, 'order_count', limit),
            'customer_rank_by_total_amount': _top(rows, 'total_amount', limit),
        }

    @staticmethod
    def supplier_rank(start_date=None, end_date=None):
        limit = current_app.config.get('RANK_LIMIT', 10)
        group_buys = group_buy_query(start_date, end_date).all()
        orders_map = load_orders(group_buys)

        by_supplier = {}
        for gb in group_buys:
            entry = by_supplier.setdefault(gb.supplier_id, {
                'name': gb.supplier.name if gb.supplier else None,
                'group_buys': [],
            })
            entry['group_buys'].append(gb)

        rows = []
        for supplier_id, entry in by_supplier.items():
            acc = accumulate(entry['group_buys'], orders_map)
            rows.append({
                'id': supplier_id,
                'name': entry['name'],
                'group_buy_count': len(entry['group_buys']),
                'order_count': acc.order_count,
                'total_sales': acc.total_revenue,
                'total_profit': acc.total_profit,
            })

        return {
            'supplier_rank_by_order_count': _top(rows, 'order_count', limit),
            'supplier_rank_by_total_sales': _top(rows, 'total_sales', limit),
            'supplier_rank_by_total_profit': _top(rows, 'total_profit', limit),
        }

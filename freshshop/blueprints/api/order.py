from datetime import datetime
from flask import request, send_file
from flask_login import login_required
from freshshop.constants import ORDER_STATUS_DISPLAY
from freshshop.exceptions import ValidationError
from freshshop.services.order_service import OrderService
from freshshop.services.excel import export_orders_xlsx, parse_order_import
from . import api_bp
from .utils import success, get_json, require_id, page_params


@api_bp.route('/api/order/create', methods=['POST'])
@login_required
def create_order():
    order = OrderService.create(get_json())
    return success(order.to_dict(), '주문이 등록되었습니다.')


@api_bp.route('/api/order/batch_create', methods=['POST'])
@login_required
def batch_create_orders():
    data = get_json()
    items = data.get('orders')
    if not isinstance(items, list) or not items:
        raise ValidationError('orders 는 비어 있지 않은 목록이어야 합니다.')
    result = OrderService.batch_create(items)
    result['success_orders'] = [o.to_dict() for o in result['success_orders']]
    return success(result, f"{result['success_count']}건 등록, {result['fail_count']}건 실패")


@api_bp.route('/api/order/update', methods=['POST'])
@login_required
def update_order():
    data = get_json()
    order = OrderService.update(require_id(data), data)
    return success(order.to_dict(), '주문이 수정되었습니다.')


@api_bp.route('/api/order/delete', methods=['POST'])
@login_required
def delete_order():
    OrderService.delete(require_id(get_json()))
    return success(None, '주문이 삭제되었습니다.')


@api_bp.route('/api/order/detail', methods=['POST'])
@login_required
def order_detail():
    return success(OrderService.detail(require_id(get_json())))


@api_bp.route('/api/order/list', methods=['POST'])
@login_required
def list_orders():
    data = get_json()
    page, page_size = page_params(data)
    return success(OrderService.list(data, page, page_size))


@api_bp.route('/api/order/list_all', methods=['GET', 'POST'])
@login_required
def list_all_orders():
    return success([o.to_dict() for o in OrderService.list_all()])


@api_bp.route('/api/order/advance', methods=['POST'])
@login_required
def advance_order():
    order = OrderService.advance(require_id(get_json()))
    return success(order.to_dict(), '주문 상태가 변경되었습니다.')


@api_bp.route('/api/order/refund', methods=['POST'])
@login_required
def refund_order():
    order = OrderService.full_refund(require_id(get_json()))
    return success(order.to_dict(), '전액 환불 처리되었습니다.')


@api_bp.route('/api/order/partial_refund', methods=['POST'])
@login_required
def partial_refund_order():
    data = get_json()
    order = OrderService.partial_refund(require_id(data), data.get('amount'))
    return success(order.to_dict(), '부분 환불 처리되었습니다.')


@api_bp.route('/api/order/stats', methods=['GET', 'POST'])
@login_required
def order_stats():
    return success(OrderService.stats())


@api_bp.route('/api/order/status_display', methods=['GET'])
@login_required
def order_status_display():
    return success(ORDER_STATUS_DISPLAY)


@api_bp.route('/api/order/export', methods=['POST'])
@login_required
def export_orders():
    orders = OrderService.orders_for_export(get_json())
    output = export_orders_xlsx(orders)
    filename = f"orders_{datetime.now().strftime('%Y%m%d_%H%M')}.xlsx"
    return send_file(
        output, as_attachment=True, download_name=filename,
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )


@api_bp.route('/api/order/import', methods=['POST'])
@login_required
def import_orders():
    file = request.files.get('file')
    if not file or not file.filename:
        raise ValidationError('업로드할 파일이 없습니다.')
    items = parse_order_import(file.stream)
    result = OrderService.batch_create(items)
    result['success_orders'] = [o.to_dict() for o in result['success_orders']]
    return success(result, f"{result['success_count']}건 등록, {result['fail_count']}건 실패")

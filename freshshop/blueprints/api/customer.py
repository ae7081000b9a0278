from flask_login import login_required
from freshshop.services.customer_service import CustomerService, CustomerAddressService
from freshshop.services.overview_service import OverviewService
from freshshop.utils import parse_date_range
from . import api_bp
from .utils import success, get_json, require_id, page_params, mask_profit


@api_bp.route('/api/customer_address/create', methods=['POST'])
@login_required
def create_customer_address():
    return success(CustomerAddressService.create(get_json()).to_dict(), '주소가 등록되었습니다.')


@api_bp.route('/api/customer_address/update', methods=['POST'])
@login_required
def update_customer_address():
    data = get_json()
    return success(CustomerAddressService.update(require_id(data), data).to_dict(), '주소가 수정되었습니다.')


@api_bp.route('/api/customer_address/delete', methods=['POST'])
@login_required
def delete_customer_address():
    CustomerAddressService.delete(require_id(get_json()))
    return success(None, '주소가 삭제되었습니다.')


@api_bp.route('/api/customer_address/detail', methods=['POST'])
@login_required
def customer_address_detail():
    return success(CustomerAddressService.detail(require_id(get_json())))


@api_bp.route('/api/customer_address/list', methods=['POST'])
@login_required
def list_customer_addresses():
    data = get_json()
    page, page_size = page_params(data)
    return success(CustomerAddressService.list(data, page, page_size))


@api_bp.route('/api/customer_address/list_all', methods=['GET', 'POST'])
@login_required
def list_all_customer_addresses():
    return success([a.to_dict() for a in CustomerAddressService.list_all()])


@api_bp.route('/api/customer/create', methods=['POST'])
@login_required
def create_customer():
    return success(CustomerService.create(get_json()).to_dict(), '고객이 등록되었습니다.')


@api_bp.route('/api/customer/update', methods=['POST'])
@login_required
def update_customer():
    data = get_json()
    return success(CustomerService.update(require_id(data), data).to_dict(), '고객 정보가 수정되었습니다.')


@api_bp.route('/api/customer/delete', methods=['POST'])
@login_required
def delete_customer():
    CustomerService.delete(require_id(get_json()))
    return success(None, '고객이 삭제되었습니다.')


@api_bp.route('/api/customer/detail', methods=['POST'])
@login_required
def customer_detail():
    return success(CustomerService.detail(require_id(get_json())))


@api_bp.route('/api/customer/list', methods=['POST'])
@login_required
def list_customers():
    data = get_json()
    page, page_size = page_params(data)
    return success(CustomerService.list(data, page, page_size))


@api_bp.route('/api/customer/list_all', methods=['GET', 'POST'])
@login_required
def list_all_customers():
    return success([c.to_dict() for c in CustomerService.list_all()])


@api_bp.route('/api/customer/consumption_detail', methods=['POST'])
@login_required
def customer_consumption_detail():
    data = get_json()
    start_date, end_date = parse_date_range(data)
    return success(mask_profit(OverviewService.customer_overview_detail(require_id(data), start_date, end_date)))

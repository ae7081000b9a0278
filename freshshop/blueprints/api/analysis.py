from flask_login import login_required
from freshshop.services.analysis_service import AnalysisService
from freshshop.services.overview_service import OverviewService
from freshshop.utils import parse_date_range
from . import api_bp
from .utils import success, get_json, require_id, mask_profit


@api_bp.route('/api/analysis/count', methods=['POST'])
@login_required
def analysis_count():
    start_date, end_date = parse_date_range(get_json())
    return success(mask_profit(AnalysisService.count(start_date, end_date)))


@api_bp.route('/api/analysis/rank', methods=['POST'])
@api_bp.route('/api/analysis/group_buy_rank', methods=['POST'])
@login_required
def analysis_rank():
    start_date, end_date = parse_date_range(get_json())
    return success(mask_profit(AnalysisService.rank(start_date, end_date)))


@api_bp.route('/api/analysis/merged_group_buy_rank', methods=['POST'])
@login_required
def analysis_merged_group_buy_rank():
    start_date, end_date = parse_date_range(get_json())
    return success(mask_profit(AnalysisService.merged_group_buy_rank(start_date, end_date)))


@api_bp.route('/api/analysis/customer_rank', methods=['POST'])
@login_required
def analysis_customer_rank():
    start_date, end_date = parse_date_range(get_json())
    return success(AnalysisService.customer_rank(start_date, end_date))


@api_bp.route('/api/analysis/supplier_rank', methods=['POST'])
@login_required
def analysis_supplier_rank():
    start_date, end_date = parse_date_range(get_json())
    return success(mask_profit(AnalysisService.supplier_rank(start_date, end_date)))


@api_bp.route('/api/analysis/supplier_overview', methods=['POST'])
@login_required
def supplier_overview():
    return success(mask_profit(OverviewService.supplier_overview(get_json())))


@api_bp.route('/api/analysis/supplier_overview_detail', methods=['POST'])
@login_required
def supplier_overview_detail():
    data = get_json()
    start_date, end_date = parse_date_range(data)
    result = OverviewService.supplier_overview_detail(require_id(data), start_date, end_date)
    return success(mask_profit(result))


@api_bp.route('/api/analysis/group_buy_overview', methods=['POST'])
@login_required
def group_buy_overview():
    return success(mask_profit(OverviewService.group_buy_overview(get_json())))


@api_bp.route('/api/analysis/group_buy_overview_detail', methods=['POST'])
@login_required
def group_buy_overview_detail():
    return success(mask_profit(OverviewService.group_buy_overview_detail(require_id(get_json()))))


@api_bp.route('/api/analysis/merged_group_buy_overview_detail', methods=['POST'])
@login_required
def merged_group_buy_overview_detail():
    data = get_json()
    start_date, end_date = parse_date_range(data)
    supplier_id = require_id(data, 'supplier_id') if data.get('supplier_id') else None
    result = OverviewService.merged_group_buy_overview_detail(
        data.get('group_buy_name'), supplier_id, start_date, end_date
    )
    return success(mask_profit(result))


@api_bp.route('/api/analysis/merged_group_buy_customer_rank', methods=['POST'])
@login_required
def merged_group_buy_customer_rank():
    data = get_json()
    start_date, end_date = parse_date_range(data)
    supplier_id = require_id(data, 'supplier_id') if data.get('supplier_id') else None
    result = OverviewService.merged_group_buy_customer_rank(
        data.get('group_buy_name'), supplier_id, start_date, end_date
    )
    return success(result)


@api_bp.route('/api/analysis/product_overview', methods=['POST'])
@login_required
def product_overview():
    return success(mask_profit(OverviewService.product_overview(get_json())))


@api_bp.route('/api/analysis/product_overview_detail', methods=['POST'])
@login_required
def product_overview_detail():
    data = get_json()
    start_date, end_date = parse_date_range(data)
    return success(mask_profit(OverviewService.product_overview_detail(require_id(data), start_date, end_date)))


@api_bp.route('/api/analysis/product_type_overview', methods=['POST'])
@login_required
def product_type_overview():
    return success(mask_profit(OverviewService.product_type_overview(get_json())))


@api_bp.route('/api/analysis/product_type_overview_detail', methods=['POST'])
@login_required
def product_type_overview_detail():
    data = get_json()
    start_date, end_date = parse_date_range(data)
    result = OverviewService.product_type_overview_detail(require_id(data), start_date, end_date)
    return success(mask_profit(result))


@api_bp.route('/api/analysis/customer_overview', methods=['POST'])
@login_required
def customer_overview():
    return success(mask_profit(OverviewService.customer_overview(get_json())))


@api_bp.route('/api/analysis/customer_overview_detail', methods=['POST'])
@login_required
def customer_overview_detail():
    data = get_json()
    start_date, end_date = parse_date_range(data)
    return success(mask_profit(OverviewService.customer_overview_detail(require_id(data), start_date, end_date)))


@api_bp.route('/api/analysis/address_overview', methods=['POST'])
@login_required
def address_overview():
    return success(mask_profit(OverviewService.address_overview(get_json())))


@api_bp.route('/api/analysis/address_overview_detail', methods=['POST'])
@login_required
def address_overview_detail():
    data = get_json()
    start_date, end_date = parse_date_range(data)
    return success(mask_profit(OverviewService.address_overview_detail(require_id(data), start_date, end_date)))

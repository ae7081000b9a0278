from flask_login import login_required
from freshshop.services.group_buy_service import GroupBuyService
from . import api_bp
from .utils import success, get_json, require_id, page_params, mask_profit


@api_bp.route('/api/group_buy/create', methods=['POST'])
@login_required
def create_group_buy():
    return success(GroupBuyService.create(get_json()).to_dict(), '공동구매가 등록되었습니다.')


@api_bp.route('/api/group_buy/update', methods=['POST'])
@login_required
def update_group_buy():
    data = get_json()
    return success(GroupBuyService.update(require_id(data), data).to_dict(), '공동구매가 수정되었습니다.')


@api_bp.route('/api/group_buy/delete', methods=['POST'])
@login_required
def delete_group_buy():
    GroupBuyService.delete(require_id(get_json()))
    return success(None, '공동구매가 삭제되었습니다.')


@api_bp.route('/api/group_buy/detail', methods=['POST'])
@login_required
def group_buy_detail():
    return success(mask_profit(GroupBuyService.detail(require_id(get_json()))))


@api_bp.route('/api/group_buy/list', methods=['POST'])
@login_required
def list_group_buys():
    data = get_json()
    page, page_size = page_params(data)
    return success(GroupBuyService.list(data, page, page_size))


@api_bp.route('/api/group_buy/list_all', methods=['GET', 'POST'])
@login_required
def list_all_group_buys():
    return success([gb.to_dict() for gb in GroupBuyService.list_all()])


@api_bp.route('/api/group_buy/delete_image', methods=['POST'])
@login_required
def delete_group_buy_image():
    data = get_json()
    group_buy = GroupBuyService.delete_image(require_id(data), data.get('filename'))
    return success(group_buy.to_dict(), '이미지가 삭제되었습니다.')

from flask_login import login_required
from freshshop.services.setting_service import SettingService
from . import api_bp
from .utils import success, get_json


@api_bp.route('/api/global_setting/upsert', methods=['POST'])
@login_required
def upsert_global_setting():
    data = get_json()
    setting = SettingService.upsert(data.get('key'), data.get('value'))
    return success(setting.to_dict(), '설정이 저장되었습니다.')


@api_bp.route('/api/global_setting/detail', methods=['POST'])
@login_required
def global_setting_detail():
    return success(SettingService.detail(get_json().get('key')))

from flask import Blueprint, current_app
from flask_login import login_user, logout_user, current_user, login_required
from flask_wtf.csrf import generate_csrf
from freshshop.models import User
from freshshop.constants import ErrorCode
from freshshop.blueprints.api.utils import success, error, get_json

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    data = get_json()
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''

    user = User.query.filter_by(username=username).first() if username else None
    if user and user.is_active and user.check_password(password):
        login_user(user, remember=bool(data.get('remember')))
        current_app.logger.info(f"User '{user.username}' logged in")
        return success(user.to_dict(), '로그인 성공')

    current_app.logger.warning(f"Login failed for '{username}'")
    return error(ErrorCode.UNAUTHORIZED, '아이디 또는 비밀번호를 확인하세요.')


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return success(None, '로그아웃되었습니다.')


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return success(current_user.to_dict())


@auth_bp.route('/csrf', methods=['GET'])
def csrf_token():
    return success({'csrf_token': generate_csrf()})

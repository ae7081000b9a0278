from datetime import datetime
from flask import jsonify
from flask_login import login_required
from sqlalchemy import text
from freshshop.extensions import db, cache
from freshshop.exceptions import InvalidStateError
from freshshop.services.image_service import DEDUP_LOCK_KEY
from . import api_bp
from .utils import success


# 서버 상태 확인용 (헬스 체크)
@api_bp.route('/health', methods=['GET'])
def health_check():
    try:
        db.session.execute(text('SELECT 1'))
        return jsonify({'status': 'ok', 'timestamp': datetime.now().isoformat()}), 200
    except Exception as e:
        return jsonify({'status': 'error', 'message': str(e)}), 500


@api_bp.route('/api/migration/deduplicate_images', methods=['POST'])
@login_required
def deduplicate_images():
    from freshshop.celery_tasks import task_deduplicate_images

    if cache.get(DEDUP_LOCK_KEY):
        raise InvalidStateError('이미지 중복 제거 작업이 이미 실행 중입니다.')
    task = task_deduplicate_images.delay()
    return success({'task_id': task.id}, '이미지 중복 제거 작업을 시작했습니다.')

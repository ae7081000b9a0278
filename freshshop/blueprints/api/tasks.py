from flask_login import login_required
from freshshop.extensions import celery_app
from . import api_bp
from .utils import success


def _progress(info):
    info = info if isinstance(info, dict) else {}
    return {
        'status': 'processing',
        'current': info.get('current', 0),
        'total': info.get('total', 0),
        'percent': info.get('percent', 0),
    }


@api_bp.route('/api/task_status/<task_id>', methods=['GET'])
@login_required
def get_task_status(task_id):
    """비동기 작업(이미지 중복 제거 등) 진행 상태 조회"""
    task = celery_app.AsyncResult(task_id)
    state = task.state

    if state in ('PENDING', 'STARTED'):
        return success(_progress(None))
    if state == 'PROGRESS':
        return success(_progress(task.info))
    if state == 'SUCCESS':
        result = task.result
        # 태스크가 {'status': ...} 형태로 직접 결과를 돌려준 경우 그대로 전달
        if isinstance(result, dict) and 'status' in result:
            return success(result)
        return success({'status': 'completed', 'result': result})
    if state == 'FAILURE':
        return success({'status': 'error', 'message': str(task.info)})
    return success({'status': 'error', 'message': f'작업 상태: {state}'})

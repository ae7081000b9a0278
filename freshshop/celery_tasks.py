import traceback
from flask import current_app
from freshshop.extensions import celery_app
from freshshop.exceptions import BusinessError
from freshshop.services.image_service import ImageService


@celery_app.task(bind=True)
def task_deduplicate_images(self):
    """업로드 이미지 중복 제거 태스크"""
    with self.app.flask_app.app_context():
        def progress_callback(current, total):
            if total > 0:
                self.update_state(state='PROGRESS', meta={
                    'current': current,
                    'total': total,
                    'percent': int((current / total) * 100)
                })

        try:
            report = ImageService.deduplicate_images(progress_callback)
            return {'status': 'completed', 'result': report}
        except BusinessError as e:
            return {'status': 'error', 'message': e.message}
        except Exception as e:
            current_app.logger.error(f"Image dedup task failed: {e}")
            traceback.print_exc()
            return {'status': 'error', 'message': str(e)}

from freshshop import create_app
from freshshop.extensions import celery_app

app = create_app()
# docker-compose 의 celery 명령이 'celery' 라는 이름을 찾으므로 별칭 할당
celery = celery_app

import freshshop.celery_tasks  # noqa: E402,F401

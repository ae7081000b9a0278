import os
import logging
from decimal import Decimal
from logging.handlers import RotatingFileHandler
from flask import Flask
from flask.json.provider import DefaultJSONProvider
from .config import Config
from .constants import ErrorCode
from .extensions import db, login_manager, celery_app, migrate, cache, csrf
from .blueprints.auth import auth_bp
from .blueprints.api import api_bp
from .blueprints.api.utils import error
from .commands import init_db_command, create_admin, dedup_images_command


class FreshshopJSONProvider(DefaultJSONProvider):
    @staticmethod
    def default(o):
        # 금액(Decimal)은 문자열이 아닌 숫자로 응답
        if isinstance(o, Decimal):
            return float(o)
        return DefaultJSONProvider.default(o)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.json = FreshshopJSONProvider(app)
    app.config.from_object(config_class)

    if not app.config.get('SECRET_KEY'):
        raise RuntimeError('SECRET_KEY 환경 변수가 설정되지 않았습니다.')

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    cache.init_app(app)
    csrf.init_app(app)

    celery_app.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_always_eager=app.config.get('CELERY_TASK_ALWAYS_EAGER', False),
        worker_max_tasks_per_child=app.config.get('CELERY_WORKER_MAX_TASKS_PER_CHILD'),
    )
    # Celery 태스크에서 DB 접근을 위해 앱 참조 저장
    celery_app.flask_app = app

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    app.cli.add_command(init_db_command)
    app.cli.add_command(create_admin)
    app.cli.add_command(dedup_images_command)

    from .models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return error(ErrorCode.UNAUTHORIZED, '로그인이 필요합니다.')

    if not app.debug and not app.testing:
        if not os.path.exists('logs'):
            os.mkdir('logs')
        file_handler = RotatingFileHandler('logs/freshshop.log', maxBytes=102400, backupCount=10)
        file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s: %(message)s'))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        app.logger.setLevel(logging.INFO)

    return app

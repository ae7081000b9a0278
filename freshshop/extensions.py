from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from celery import Celery
from flask_caching import Cache
from flask_wtf.csrf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()

# 실제 브로커 설정은 create_app()에서 앱 설정으로 덮어씀
celery_app = Celery(__name__, broker='redis://redis:6379/0')
cache = Cache()
csrf = CSRFProtect()

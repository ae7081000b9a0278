import os
import time
from dotenv import load_dotenv

load_dotenv()

class Config:
    # 추이(trend) 집계의 일/월 경계는 서버 로컬 시간 기준이므로 TZ를 고정함
    os.environ['TZ'] = os.getenv('TZ', 'Asia/Shanghai')
    try:
        time.tzset()
    except AttributeError:
        pass

    SECRET_KEY = os.getenv('SECRET_KEY')

    BASE_DIR = os.path.abspath(os.path.dirname(__file__))

    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')
    if not SQLALCHEMY_DATABASE_URI:
        user = os.getenv('POSTGRES_USER', 'postgres')
        pw = os.getenv('POSTGRES_PASSWORD', 'password')
        host = os.getenv('POSTGRES_HOST', 'db')
        port = os.getenv('POSTGRES_PORT', '5432')
        db_name = os.getenv('POSTGRES_DB', 'freshshop')
        SQLALCHEMY_DATABASE_URI = f"postgresql://{user}:{pw}@{host}:{port}/{db_name}"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 10,
        'max_overflow': 20,
        'pool_timeout': 30,
        'pool_recycle': 1800,
        'pool_pre_ping': True,
        'connect_args': {
            'connect_timeout': 10
        }
    }

    # 업로드 이미지 저장 위치 및 URL 규칙: <SERVER_BASE_URL>/<IMAGES_BASE_PATH>/<filename>
    UPLOAD_FOLDER = os.getenv('UPLOAD_DIR', os.path.join(os.getcwd(), 'uploads', 'images'))
    SERVER_BASE_URL = os.getenv('SERVER_BASE_URL', 'http://localhost:5000')
    IMAGES_BASE_PATH = os.getenv('IMAGES_BASE_PATH', 'images')
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://redis:6379/0')
    CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', 'redis://redis:6379/0')
    CELERY_TASK_ALWAYS_EAGER = False
    CELERY_WORKER_MAX_TASKS_PER_CHILD = 50

    CACHE_TYPE = os.getenv('CACHE_TYPE', 'RedisCache')
    CACHE_REDIS_URL = CELERY_BROKER_URL
    CACHE_DEFAULT_TIMEOUT = 300

    # 이미지 중복 제거 작업 잠금 유지 시간(초)
    DEDUP_LOCK_TIMEOUT = 60 * 30

    DEFAULT_PAGE_SIZE = 10
    RANK_LIMIT = 10

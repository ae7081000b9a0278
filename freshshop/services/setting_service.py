from flask import current_app
from freshshop.extensions import db, cache
from freshshop.models import GlobalSetting
from freshshop.constants import SettingKey
from freshshop.exceptions import ValidationError, NotFoundError
from freshshop.utils import clean_str


def _cache_key(key):
    return f'global_setting:{key}'


class SettingService:
    @staticmethod
    def upsert(key, value):
        try:
            key = clean_str(key)
            if not key:
                raise ValidationError('설정 키는 필수입니다.')
            setting = GlobalSetting.query.filter_by(key=key).first()
            if setting:
                setting.value = value
            else:
                setting = GlobalSetting(key=key, value=value)
                db.session.add(setting)
            db.session.commit()
            cache.delete(_cache_key(key))
            current_app.logger.info(f"Global setting '{key}' updated")
            return setting
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def get_value(key, default=None):
        cache_key = _cache_key(key)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached.get('value', default)

        setting = GlobalSetting.query.filter_by(key=key).first()
        value = setting.value if setting else None
        cache.set(cache_key, {'value': value}, timeout=300)
        return default if value is None else value

    @staticmethod
    def detail(key):
        setting = GlobalSetting.query.filter_by(key=key).first()
        if not setting:
            raise NotFoundError('설정이 존재하지 않습니다.')
        return setting.to_dict()

    @staticmethod
    def is_sensitive():
        """이익 정보 숨김 여부. 값 형식: {"sensitive": bool}"""
        value = SettingService.get_value(SettingKey.SENSITIVE)
        if isinstance(value, dict):
            return bool(value.get('sensitive'))
        return bool(value)

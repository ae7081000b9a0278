import os
import uuid
import hashlib
from flask import current_app
from werkzeug.utils import secure_filename
from freshshop.extensions import db, cache
from freshshop.models import Image, Supplier, GroupBuy
from freshshop.constants import ALLOWED_IMAGE_EXTENSIONS
from freshshop.exceptions import ValidationError, NotFoundError, InvalidStateError, SystemFailureError
from freshshop.utils import iso

DEDUP_LOCK_KEY = 'image_dedup_lock'
HASH_CHUNK_SIZE = 64 * 1024


def file_sha256(path):
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()


def bytes_sha256(data):
    return hashlib.sha256(data).hexdigest()


def remap_images(images, mapping):
    """파일명을 대표 파일명으로 치환하고 중복은 처음 나온 순서대로 하나만 남김.
    매핑에 없는 파일명은 그대로 유지"""
    result = []
    for name in images or []:
        target = mapping.get(name, name)
        if target not in result:
            result.append(target)
    return result


def _upload_folder():
    folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)
    return folder


def _safe_path(filename):
    name = os.path.basename(filename or '')
    if not name or name != filename or name.startswith('.'):
        raise ValidationError('잘못된 파일명입니다.')
    return os.path.join(_upload_folder(), name)


class ImageService:
    @staticmethod
    def image_url(filename):
        base = current_app.config['SERVER_BASE_URL'].rstrip('/')
        path = current_app.config['IMAGES_BASE_PATH'].strip('/')
        return f'{base}/{path}/{filename}'

    @staticmethod
    def save_upload(file_storage):
        """이미지 업로드. 같은 내용(해시)의 이미지가 이미 있으면 기존 파일명을 반환"""
        if file_storage is None or not file_storage.filename:
            raise ValidationError('업로드할 파일이 없습니다.')

        original_name = file_storage.filename
        ext = os.path.splitext(secure_filename(original_name) or original_name)[1].lower()
        mimetype = file_storage.mimetype or ''
        if not mimetype.startswith('image/') or ext not in ALLOWED_IMAGE_EXTENSIONS:
            raise ValidationError(f'지원하지 않는 파일 형식입니다: {ext or mimetype}')

        data = file_storage.read()
        if not data:
            raise ValidationError('빈 파일은 업로드할 수 없습니다.')
        digest = bytes_sha256(data)

        existing = Image.query.filter_by(hash=digest, is_deleted=False).first()
        if existing and os.path.exists(os.path.join(_upload_folder(), existing.filename)):
            current_app.logger.info(f"Upload reused existing image {existing.filename}")
            return ImageService._upload_result(existing.filename, original_name, len(data), mimetype, reused=True)

        filename = f'{uuid.uuid4()}{ext}'
        path = os.path.join(_upload_folder(), filename)
        try:
            with open(path, 'wb') as f:
                f.write(data)
            if existing:
                existing.filename = filename
            else:
                db.session.add(Image(filename=filename, original_name=original_name, hash=digest))
            db.session.commit()
        except Exception:
            db.session.rollback()
            if os.path.exists(path):
                os.remove(path)
            raise

        return ImageService._upload_result(filename, original_name, len(data), mimetype, reused=False)

    @staticmethod
    def _upload_result(filename, original_name, size, mimetype, reused):
        return {
            'filename': filename,
            'original_name': original_name,
            'url': ImageService.image_url(filename),
            'mimetype': mimetype,
            'size': size,
            'reused': reused,
        }

    @staticmethod
    def delete_file(filename):
        path = _safe_path(filename)
        if not os.path.exists(path):
            current_app.logger.warning(f"Image not found for delete: {path}")
            raise NotFoundError(f'파일 {filename} 이(가) 존재하지 않습니다.')
        try:
            os.remove(path)
            Image.query.filter_by(filename=filename, is_deleted=False) \
                .update({Image.is_deleted: True}, synchronize_session=False)
            db.session.commit()
        except OSError as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to delete image {path}: {e}")
            raise SystemFailureError(f'파일 {filename} 삭제에 실패했습니다.')
        current_app.logger.info(f"Image deleted: {path}")
        return {'deleted': True}

    @staticmethod
    def file_path(filename):
        path = _safe_path(filename)
        if not os.path.exists(path):
            raise NotFoundError(f'파일 {filename} 이(가) 존재하지 않습니다.')
        return path

    @staticmethod
    def deduplicate_images(progress_callback=None):
        """업로드 폴더의 중복 이미지 정리. 동시에 한 작업만 실행"""
        timeout = current_app.config.get('DEDUP_LOCK_TIMEOUT', 1800)
        if not cache.add(DEDUP_LOCK_KEY, 1, timeout=timeout):
            raise InvalidStateError('이미지 중복 제거 작업이 이미 실행 중입니다.')
        try:
            return ImageService._run_dedup(progress_callback)
        finally:
            cache.delete(DEDUP_LOCK_KEY)

    @staticmethod
    def _scan(folder, progress_callback=None):
        names = sorted(
            name for name in os.listdir(folder)
            if os.path.isfile(os.path.join(folder, name))
        )
        groups = {}
        scanned = 0
        total = len(names)
        for idx, name in enumerate(names, 1):
            try:
                digest = file_sha256(os.path.join(folder, name))
            except OSError as e:
                current_app.logger.error(f"Failed to hash {name}: {e}")
                continue
            groups.setdefault(digest, []).append(name)
            scanned += 1
            if progress_callback:
                progress_callback(idx, total)
        return groups, scanned

    @staticmethod
    def _run_dedup(progress_callback=None):
        folder = _upload_folder()
        groups, scanned = ImageService._scan(folder, progress_callback)

        mapping = {}
        duplicates = []
        canonical_by_hash = {}
        for digest, names in groups.items():
            canonical = min(names)
            canonical_by_hash[digest] = canonical
            for name in names:
                mapping[name] = canonical
                if name != canonical:
                    duplicates.append(name)

        affected_suppliers = []
        affected_group_buys = []
        try:
            # 삭제될 중복 파일을 가리키는 카탈로그 행은 대표 파일로 옮기거나, 이미 있으면 숨김
            catalog = Image.query.filter(Image.is_deleted == False).order_by(Image.id.asc()).all()
            catalog_keys = {(image.hash, image.filename) for image in catalog}
            for image in catalog:
                canonical = mapping.get(image.filename)
                if canonical is None or canonical == image.filename:
                    continue
                if (image.hash, canonical) in catalog_keys:
                    image.is_deleted = True
                else:
                    image.filename = canonical
                    catalog_keys.add((image.hash, canonical))

            known_hashes = {image.hash for image in catalog if not image.is_deleted}
            for digest, canonical in canonical_by_hash.items():
                if digest not in known_hashes:
                    db.session.add(Image(filename=canonical, original_name=canonical, hash=digest))

            for supplier in Supplier.query.filter_by(is_deleted=False).order_by(Supplier.id.asc()).all():
                remapped = remap_images(supplier.images, mapping)
                if remapped != list(supplier.images or []):
                    supplier.images = remapped
                    affected_suppliers.append({'id': supplier.id, 'name': supplier.name})

            for gb in GroupBuy.query.filter_by(is_deleted=False).order_by(GroupBuy.id.asc()).all():
                remapped = remap_images(gb.images, mapping)
                if remapped != list(gb.images or []):
                    gb.images = remapped
                    affected_group_buys.append({
                        'id': gb.id,
                        'name': gb.name,
                        'group_buy_start_date': iso(gb.group_buy_start_date),
                    })

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        # 참조를 모두 바꾼 뒤에 파일 삭제
        removed = 0
        for name in duplicates:
            try:
                os.remove(os.path.join(folder, name))
                removed += 1
            except OSError as e:
                current_app.logger.error(f"Failed to remove duplicate {name}: {e}")

        current_app.logger.info(
            f"Image dedup: scanned={scanned}, unique={len(groups)}, duplicates={len(duplicates)}, removed={removed}"
        )
        return {
            'message': '이미지 중복 제거가 완료되었습니다.',
            'total_files_scanned': scanned,
            'unique_image_count': len(groups),
            'duplicate_files_found': len(duplicates),
            'duplicate_files_removed': removed,
            'affected_suppliers': affected_suppliers,
            'affected_group_buys': affected_group_buys,
        }

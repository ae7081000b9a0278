import os
from flask import request, send_file
from flask_login import login_required
from freshshop.services.image_service import ImageService
from . import api_bp
from .utils import success, get_json


@api_bp.route('/api/upload/image', methods=['POST'])
@login_required
def upload_image():
    result = ImageService.save_upload(request.files.get('file'))
    return success(result, '업로드되었습니다.')


@api_bp.route('/api/upload/delete', methods=['POST'])
@login_required
def delete_uploaded_image():
    return success(ImageService.delete_file(get_json().get('filename')), '파일이 삭제되었습니다.')


@api_bp.route('/images/<path:filename>', methods=['GET'])
def serve_image(filename):
    path = ImageService.file_path(filename)
    return send_file(os.path.abspath(path))

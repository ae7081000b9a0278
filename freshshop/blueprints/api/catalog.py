from flask_login import login_required
from freshshop.services.catalog_service import SupplierService, ProductTypeService, ProductService
from . import api_bp
from .utils import success, get_json, require_id, page_params

# ---------------- 공급처 ----------------


@api_bp.route('/api/supplier/create', methods=['POST'])
@login_required
def create_supplier():
    return success(SupplierService.create(get_json()).to_dict(), '공급처가 등록되었습니다.')


@api_bp.route('/api/supplier/update', methods=['POST'])
@login_required
def update_supplier():
    data = get_json()
    return success(SupplierService.update(require_id(data), data).to_dict(), '공급처가 수정되었습니다.')


@api_bp.route('/api/supplier/delete', methods=['POST'])
@login_required
def delete_supplier():
    SupplierService.delete(require_id(get_json()))
    return success(None, '공급처가 삭제되었습니다.')


@api_bp.route('/api/supplier/detail', methods=['POST'])
@login_required
def supplier_detail():
    return success(SupplierService.detail(require_id(get_json())))


@api_bp.route('/api/supplier/list', methods=['POST'])
@login_required
def list_suppliers():
    data = get_json()
    page, page_size = page_params(data)
    return success(SupplierService.list(data, page, page_size))


@api_bp.route('/api/supplier/list_all', methods=['GET', 'POST'])
@login_required
def list_all_suppliers():
    return success([s.to_dict() for s in SupplierService.list_all()])


@api_bp.route('/api/supplier/delete_image', methods=['POST'])
@login_required
def delete_supplier_image():
    data = get_json()
    supplier = SupplierService.delete_image(require_id(data), data.get('filename'))
    return success(supplier.to_dict(), '이미지가 삭제되었습니다.')

# ---------------- 상품 유형 ----------------


@api_bp.route('/api/product_type/create', methods=['POST'])
@login_required
def create_product_type():
    return success(ProductTypeService.create(get_json()).to_dict(), '상품 유형이 등록되었습니다.')


@api_bp.route('/api/product_type/update', methods=['POST'])
@login_required
def update_product_type():
    data = get_json()
    return success(ProductTypeService.update(require_id(data), data).to_dict(), '상품 유형이 수정되었습니다.')


@api_bp.route('/api/product_type/delete', methods=['POST'])
@login_required
def delete_product_type():
    ProductTypeService.delete(require_id(get_json()))
    return success(None, '상품 유형이 삭제되었습니다.')


@api_bp.route('/api/product_type/detail', methods=['POST'])
@login_required
def product_type_detail():
    return success(ProductTypeService.detail(require_id(get_json())))


@api_bp.route('/api/product_type/list', methods=['POST'])
@login_required
def list_product_types():
    data = get_json()
    page, page_size = page_params(data)
    return success(ProductTypeService.list(data, page, page_size))


@api_bp.route('/api/product_type/list_all', methods=['GET', 'POST'])
@login_required
def list_all_product_types():
    return success([t.to_dict() for t in ProductTypeService.list_all()])


@api_bp.route('/api/product_type/migrate', methods=['POST'])
@login_required
def migrate_product_type():
    data = get_json()
    moved = ProductTypeService.migrate(require_id(data, 'from_id'), require_id(data, 'to_id'))
    return success({'moved_count': moved}, f'상품 {moved}건을 이동했습니다.')

# ---------------- 상품 ----------------


@api_bp.route('/api/product/create', methods=['POST'])
@login_required
def create_product():
    return success(ProductService.create(get_json()).to_dict(), '상품이 등록되었습니다.')


@api_bp.route('/api/product/update', methods=['POST'])
@login_required
def update_product():
    data = get_json()
    return success(ProductService.update(require_id(data), data).to_dict(), '상품이 수정되었습니다.')


@api_bp.route('/api/product/delete', methods=['POST'])
@login_required
def delete_product():
    ProductService.delete(require_id(get_json()))
    return success(None, '상품이 삭제되었습니다.')


@api_bp.route('/api/product/detail', methods=['POST'])
@login_required
def product_detail():
    return success(ProductService.detail(require_id(get_json())))


@api_bp.route('/api/product/list', methods=['POST'])
@login_required
def list_products():
    data = get_json()
    page, page_size = page_params(data)
    return success(ProductService.list(data, page, page_size))


@api_bp.route('/api/product/list_all', methods=['GET', 'POST'])
@login_required
def list_all_products():
    return success([p.to_dict() for p in ProductService.list_all()])


@api_bp.route('/api/product/migrate', methods=['POST'])
@login_required
def migrate_product():
    data = get_json()
    moved = ProductService.migrate(require_id(data, 'from_id'), require_id(data, 'to_id'))
    return success({'moved_count': moved}, f'공동구매 {moved}건을 이동했습니다.')

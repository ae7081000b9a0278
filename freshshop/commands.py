import json
import click
from flask.cli import with_appcontext
from .extensions import db
from .exceptions import BusinessError
# 모든 모델을 임포트하여 SQLAlchemy가 테이블을 인식하도록 함
from .models import User, Supplier, ProductType, Product, CustomerAddress, Customer, GroupBuy, GroupBuyUnit, Order, GlobalSetting, Image


@click.command('init-db')
@with_appcontext
def init_db_command():
    """기존 데이터를 삭제하고 새로운 테이블을 생성합니다."""
    try:
        db.drop_all()
        db.create_all()
        click.echo('Initialized the database.')
    except Exception as e:
        click.echo(f'Error initializing database: {e}')


@click.command('create-admin')
@click.option('--username', default='admin')
@click.password_option()
@with_appcontext
def create_admin(username, password):
    """운영자 계정을 생성합니다."""
    if User.query.filter_by(username=username).first():
        click.echo(f'User {username} already exists.')
        return

    user = User(username=username, is_enabled=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    click.echo(f'Created admin: {username}')


@click.command('dedup-images')
@with_appcontext
def dedup_images_command():
    """업로드 폴더의 중복 이미지를 정리합니다."""
    from .services.image_service import ImageService
    try:
        report = ImageService.deduplicate_images()
    except BusinessError as e:
        raise click.ClickException(e.message)
    click.echo(json.dumps(report, ensure_ascii=False, indent=2))

from flask import Blueprint

api_bp = Blueprint('api', __name__)

from . import errors, order, analysis, catalog, customer, group_buy, setting, upload, maintenance, tasks

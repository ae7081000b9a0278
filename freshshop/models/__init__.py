from freshshop.extensions import db

from .auth import User
from .catalog import Supplier, ProductType, Product
from .customer import CustomerAddress, Customer
from .group_buy import GroupBuy, GroupBuyUnit
from .order import Order
from .setting import GlobalSetting, Image

from .auth import User
from .catalog import Product
from .sales import Sale, SaleItem
from .commissions import CommissionTier
from .wallets import Wallet, Payout
from .notifications import Notification

__all__ = [
    'User',
    'Product',
    'Sale', 'SaleItem',
    'CommissionTier',
    'Wallet', 'Payout',
    'Notification',
]

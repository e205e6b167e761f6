from .catalog import Brand, ProductModel, Variant
from .inventory import StockMove, StockRef, StockRefType
from .parties import Customer, Supplier
from .shifts import Shift, ShiftStatus
from .sales import (
    SalesInvoice, SalesItem, Payment,
    InvoiceStatus, PaymentStatus, PaymentDirection, PaymentMethod, PaymentRefType,
)
from .purchases import PurchaseInvoice, PurchaseItem
from .returns import ReturnInvoice, ReturnItem, ReturnType, PurchaseReturn, PurchaseReturnItem
from .settings import Setting
from .audit import AuditLog

__all__ = [
    'Brand', 'ProductModel', 'Variant',
    'StockMove', 'StockRef', 'StockRefType',
    'Customer', 'Supplier',
    'Shift', 'ShiftStatus',
    'SalesInvoice', 'SalesItem', 'Payment',
    'InvoiceStatus', 'PaymentStatus', 'PaymentDirection', 'PaymentMethod', 'PaymentRefType',
    'PurchaseInvoice', 'PurchaseItem',
    'ReturnInvoice', 'ReturnItem', 'ReturnType', 'PurchaseReturn', 'PurchaseReturnItem',
    'Setting',
    'AuditLog',
]

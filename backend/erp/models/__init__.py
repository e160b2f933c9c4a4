from .customers import Customer
from .inventory import Product
from .sales import Invoice, InvoiceLine, Payment
from .ledger import Transaction
from .auth import User

__all__ = [
    'Customer',
    'Product',
    'Invoice', 'InvoiceLine', 'Payment',
    'Transaction',
    'User',
]

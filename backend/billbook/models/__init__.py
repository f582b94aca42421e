from .invoices import Invoice, InvoiceItem, InvoicePayment
from .inventory import Stock
from .company import Company
from .workers import Worker, WorkerTransaction

__all__ = [
    'Invoice', 'InvoiceItem', 'InvoicePayment',
    'Stock',
    'Company',
    'Worker', 'WorkerTransaction',
]

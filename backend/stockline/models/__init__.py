from .catalog import Category, Variant, Color, Size, SizeStockUnit, BarcodeGroup, barcode_group_sizes
from .stores import Store, StoreInventory, StoreTaxSettings
from .inventory import InventoryMovement
from .customers import Customer
from .sales import Invoice, InvoiceItem, SalesTransaction
from .documents import ReturnRecord, ReturnItem, ExchangeItem, DocumentSequence

__all__ = [
    'Category', 'Variant', 'Color', 'Size', 'SizeStockUnit', 'BarcodeGroup', 'barcode_group_sizes',
    'Store', 'StoreInventory', 'StoreTaxSettings',
    'InventoryMovement',
    'Customer',
    'Invoice', 'InvoiceItem', 'SalesTransaction',
    'ReturnRecord', 'ReturnItem', 'ExchangeItem', 'DocumentSequence',
]

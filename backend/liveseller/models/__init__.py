from .inventory import InventoryItem, InventoryVariant
from .live_sessions import LiveSession, Claim
from .customers import Customer
from .orders import Order, OrderLine, Payment, Shipment
from .documents import LedgerEvent, DocumentSequence

__all__ = [
    'InventoryItem', 'InventoryVariant',
    'LiveSession', 'Claim',
    'Customer',
    'Order', 'OrderLine', 'Payment', 'Shipment',
    'LedgerEvent', 'DocumentSequence',
]

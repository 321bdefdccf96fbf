from controle_pedidos.core.event_bus import (
    DomainEvent,
    EventBus,
    OrderChanged,
    OrderDeleted,
    OrderLeaseChanged,
    OrderReserved,
    OrdersImported,
    OrderUpdated,
    get_event_bus,
    reset_event_bus_for_tests,
)

__all__ = [
    "DomainEvent",
    "EventBus",
    "OrderChanged",
    "OrderReserved",
    "OrderUpdated",
    "OrderLeaseChanged",
    "OrderDeleted",
    "OrdersImported",
    "get_event_bus",
    "reset_event_bus_for_tests",
]

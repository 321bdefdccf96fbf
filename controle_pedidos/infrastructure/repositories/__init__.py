from .base import BaseRepository
from .change_log_repository import ChangeLogRepository
from .client_repository import ClientRepository
from .litigation_repository import LitigationRepository
from .order_repository import OrderRepository
from .period_repository import PeriodRepository
from .quote_repository import QuoteRepository
from .seller_repository import SellerRepository
from .settings_repository import SettingsRepository
from .shipment_repository import ShipmentRepository
from .user_repository import UserRepository
from .workspace_repository import StickyNoteRepository, TaskListRepository, TaskRepository

__all__ = [
    "BaseRepository",
    "ChangeLogRepository",
    "ClientRepository",
    "LitigationRepository",
    "OrderRepository",
    "PeriodRepository",
    "QuoteRepository",
    "SellerRepository",
    "SettingsRepository",
    "ShipmentRepository",
    "StickyNoteRepository",
    "TaskListRepository",
    "TaskRepository",
    "UserRepository",
]

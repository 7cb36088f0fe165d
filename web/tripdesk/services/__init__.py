from .audit_service import AuditService
from .catalog_service import CatalogService
from .wallet_service import WalletService
from .booking_service import BookingService
from .maintenance_service import MaintenanceService
from .reminder_service import ReminderService
from .broadcast_service import BroadcastService
from .notification_service import NotificationService
from .whatsapp_service import WhatsAppService

__all__ = [
    "AuditService",
    "CatalogService",
    "WalletService",
    "BookingService",
    "MaintenanceService",
    "ReminderService",
    "BroadcastService",
    "NotificationService",
    "WhatsAppService",
]

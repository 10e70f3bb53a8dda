"""
Alerts Module - Alert sink and delivery.
"""

from src.alerts.alert_engine import AlertEngine
from src.alerts.database import AlertModel
from src.alerts.notification_channels import SlackClient

__all__ = [
    "AlertEngine",
    "AlertModel",
    "SlackClient",
]

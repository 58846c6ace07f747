"""
Desktop Notifications
=====================

Provides desktop notification support for file organization events.
Uses libnotify on Linux for native notifications.
"""

import shutil
import subprocess
from pathlib import Path
from typing import Optional, Dict, Any
from enum import Enum
from dataclasses import dataclass

from sortify.utils.logging_config import get_logger

logger = get_logger(__name__)


class NotificationType(Enum):
    """Types of notifications."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class NotificationConfig:
    """Notification configuration."""
    enabled: bool = False
    show_on_organize: bool = True
    show_on_monitoring: bool = True
    show_on_error: bool = True
    timeout_ms: int = 5000  # 5 seconds

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotificationConfig":
        """Create NotificationConfig from dictionary."""
        if not data:
            return cls()
        defaults = cls()
        return cls(
            enabled=bool(data.get("enabled", defaults.enabled)),
            show_on_organize=bool(data.get("show_on_organize", defaults.show_on_organize)),
            show_on_monitoring=bool(data.get("show_on_monitoring", defaults.show_on_monitoring)),
            show_on_error=bool(data.get("show_on_error", defaults.show_on_error)),
            timeout_ms=int(data.get("timeout_ms", defaults.timeout_ms)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a YAML/JSON friendly dictionary."""
        return {
            "enabled": self.enabled,
            "show_on_organize": self.show_on_organize,
            "show_on_monitoring": self.show_on_monitoring,
            "show_on_error": self.show_on_error,
            "timeout_ms": self.timeout_ms,
        }


class DesktopNotifier:
    """Sends desktop notifications for file organization events.

    Uses notify-send on Linux for native notifications.
    """

    APP_NAME = "Sortify"

    def __init__(self, config: Optional[NotificationConfig] = None):
        """Initialize the notifier.

        Args:
            config: Notification configuration.
        """
        self.config = config or NotificationConfig()
        self._available = self._check_availability()

        if self._available:
            logger.debug("Desktop notifications available")
        elif self.config.enabled:
            logger.warning("Desktop notifications not available (notify-send not found)")

    def _check_availability(self) -> bool:
        """Check if notification system is available."""
        return shutil.which("notify-send") is not None

    @property
    def is_available(self) -> bool:
        """Check if notifications are available and enabled."""
        return self._available and self.config.enabled

    def _get_icon(self, notif_type: NotificationType) -> str:
        """Get icon for notification type."""
        icons = {
            NotificationType.INFO: "dialog-information",
            NotificationType.SUCCESS: "emblem-ok-symbolic",
            NotificationType.WARNING: "dialog-warning",
            NotificationType.ERROR: "dialog-error",
        }
        return icons.get(notif_type, "folder")

    def _get_urgency(self, notif_type: NotificationType) -> str:
        """Get urgency level for notification type."""
        urgencies = {
            NotificationType.INFO: "low",
            NotificationType.SUCCESS: "normal",
            NotificationType.WARNING: "normal",
            NotificationType.ERROR: "critical",
        }
        return urgencies.get(notif_type, "normal")

    def send(
        self,
        title: str,
        message: str,
        notif_type: NotificationType = NotificationType.INFO
    ) -> bool:
        """Send a desktop notification.

        Args:
            title: Notification title.
            message: Notification body.
            notif_type: Type of notification.

        Returns:
            True if notification was sent successfully.
        """
        if not self.is_available:
            return False

        try:
            cmd = [
                "notify-send",
                "--app-name", self.APP_NAME,
                "--icon", self._get_icon(notif_type),
                "--urgency", self._get_urgency(notif_type),
                "--expire-time", str(self.config.timeout_ms),
                title,
                message
            ]

            subprocess.run(cmd, capture_output=True, timeout=5)
            logger.debug(f"Notification sent: {title}")
            return True

        except (OSError, subprocess.SubprocessError) as e:
            logger.error(f"Failed to send notification: {e}")
            return False

    def notify_organized(self, filename: str, category: str, destination: str) -> None:
        """Notify that a file was organized.

        Args:
            filename: Name of the organized file.
            category: Category the file was organized into.
            destination: Destination path.
        """
        if not self.config.show_on_organize:
            return

        self.send(
            "File Organized",
            f"{filename}\n→ {category}/{Path(destination).name}",
            NotificationType.SUCCESS
        )

    def notify_monitoring(self, folder: str, active: bool) -> None:
        """Notify that monitoring of a folder started or stopped.

        Args:
            folder: The watched folder.
            active: True when monitoring started.
        """
        if not self.config.show_on_monitoring:
            return

        if active:
            self.send("Monitoring Started", f"Watching folder: {folder}", NotificationType.INFO)
        else:
            self.send("Monitoring Stopped", f"Stopped watching: {folder}", NotificationType.INFO)

    def notify_error(self, filename: str, error: str) -> None:
        """Notify of a processing error.

        Args:
            filename: Name of the file that failed.
            error: Error message.
        """
        if not self.config.show_on_error:
            return

        self.send(
            "Processing Error",
            f"{filename}\n{error[:100]}",
            NotificationType.ERROR
        )

    def handle_event(self, name: str, payload: dict) -> None:
        """Publisher subscriber entry point.

        Args:
            name: Event name ("file-organized", "log-message", ...).
            payload: Event payload dictionary.
        """
        if name == "file-organized":
            self.notify_organized(
                payload["actual_file_name"],
                payload["category"],
                payload["moved_to_path"],
            )
        elif name == "monitoring-changed":
            self.notify_monitoring(payload["folder_path"], payload["is_monitoring"])
        elif name == "log-message" and payload.get("log_type") == "error":
            self.notify_error(payload.get("file_name") or self.APP_NAME, payload["message"])

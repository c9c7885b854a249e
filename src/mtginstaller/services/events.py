"""
Event Management System for MTGInstaller

This module lets a command-line or graphical frontend follow an installation
without coupling to the installer. It uses the Blinker library for signal
dispatching with weak reference support.
"""

import logging
from typing import Callable

from blinker import Namespace


class EventManager:
    """
    Central event management system for MTGInstaller using Blinker signals.

    Each instance owns its own namespace, so two installer frontends never see
    each other's events.
    """

    def __init__(self):
        """Initialize the event manager."""
        self.logger = logging.getLogger("MTGInstaller")
        self._namespace = Namespace()

    def subscribe(self, event_name: str, callback: Callable, weak: bool = True) -> bool:
        """
        Subscribe to an event.

        Args:
            event_name: Name of the event to subscribe to
            callback: Function to call when the event is emitted
            weak: Whether to use weak references (default: True)

        Returns:
            bool: True if subscription was successful
        """
        try:
            signal = self._namespace.signal(event_name)
            signal.connect(callback, weak=weak)

            self.logger.debug(f"Subscribed to event '{event_name}': {callback}")
            return True

        except Exception as e:
            self.logger.error(f"Failed to subscribe to event '{event_name}': {e}")
            return False

    def unsubscribe(self, event_name: str, callback: Callable) -> bool:
        """
        Unsubscribe from an event.

        Args:
            event_name: Name of the event to unsubscribe from
            callback: Function to remove from subscribers

        Returns:
            bool: True if unsubscription was successful
        """
        try:
            signal = self._namespace.signal(event_name)
            signal.disconnect(receiver=callback)

            self.logger.debug(f"Unsubscribed from event '{event_name}': {callback}")
            return True

        except Exception as e:
            self.logger.error(f"Failed to unsubscribe from event '{event_name}': {e}")
            return False

    def emit(self, event_name: str, **kwargs) -> int:
        """
        Emit an event to all subscribers.

        Args:
            event_name: Name of the event to emit
            **kwargs: Keyword arguments to pass to callbacks

        Returns:
            int: Number of callbacks that were called
        """
        signal = self._namespace.signal(event_name)
        results = signal.send(self, **kwargs)
        return len(results)


class Events:
    """Event names emitted by the installer."""

    OPERATION_STARTED = "operation_started"
    OPERATION_COMPLETED = "operation_completed"

    BACKUP_CREATED = "backup_created"
    BACKUP_RESTORED = "backup_restored"
    BACKUP_DISCARDED = "backup_discarded"

    COMPONENT_INSTALLED = "component_installed"
    TARGET_PATCHED = "target_patched"

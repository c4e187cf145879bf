"""Interface for platform connectivity signals.

A source reports the current online state and pushes transitions to
registered listeners. The ConnectivityMonitor consumes it.
"""

import abc
from typing import Callable

ConnectivityListener = Callable[[bool], None]


class ConnectivitySource(abc.ABC):
    """Abstract Base Class for an online/offline event source."""

    @abc.abstractmethod
    def is_online(self) -> bool:
        """Returns the platform's current view of connectivity."""
        pass

    @abc.abstractmethod
    def add_listener(self, listener: ConnectivityListener) -> None:
        """Registers a callback invoked with the new state on each transition."""
        pass

    @abc.abstractmethod
    def remove_listener(self, listener: ConnectivityListener) -> None:
        """Unregisters a callback. Unknown callbacks are ignored."""
        pass

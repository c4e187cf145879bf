"""Interface for presenting results to the operator.

Defines the contract for displaying information, errors, warnings,
structured data and tables, allowing different UI implementations.
"""

import abc
from typing import Any, List, Sequence


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_output(self, output: Any, **kwargs: Any) -> None:
        """Displays a structured payload (typically decoded JSON) to the user.

        Args:
            output: The value to display.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_table(self, title: str, columns: Sequence[str], rows: List[Sequence[Any]]) -> None:
        """Displays rows of values under the given column headings.

        Args:
            title: Caption shown above the table.
            columns: Column headings.
            rows: One sequence of cell values per row.
        """
        pass

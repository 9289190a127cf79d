"""Utility functions for common operations across the application."""

from datetime import datetime


class MathUtils:
    """Mathematical utility functions."""

    @staticmethod
    def calculate_percentage(completed: int, total: int) -> float:
        """
        Calculate the percentage of completed items out of total items.

        Args:
            completed: Number of completed items
            total: Total number of items

        Returns:
            Percentage as a float between 0 and 100

        Example:
            >>> MathUtils.calculate_percentage(5, 10)
            50.0
        """
        if total <= 0:
            return 0.0
        return (completed / total) * 100

    @staticmethod
    def calculate_ratio(completed: int, total: int) -> float:
        """
        Calculate completed/total as a float, 0.0 when total is not positive.

        Example:
            >>> MathUtils.calculate_ratio(9, 10)
            0.9
        """
        if total <= 0:
            return 0.0
        return completed / total


class StringUtils:
    """String manipulation utility functions."""

    @staticmethod
    def truncate_for_logging(text: str, max_length: int = 30) -> str:
        """
        Truncate text for log output, appending an ellipsis when shortened.

        Args:
            text: Text to truncate
            max_length: Maximum number of characters to keep

        Returns:
            Truncated text

        Example:
            >>> StringUtils.truncate_for_logging("Hello, world!", 5)
            'Hello...'
        """
        if not text:
            return ""
        if len(text) <= max_length:
            return text
        return f"{text[:max_length]}..."

    @staticmethod
    def strip_zero_width(text: str) -> str:
        """Remove zero-width spaces and surrounding whitespace."""
        return text.replace("\u200b", "").strip() if text else ""


class DateTimeUtils:
    """Date and time utility functions."""

    @staticmethod
    def get_date_string_for_log_file() -> str:
        """
        Get current date formatted for log file names.

        Returns:
            Date string in YYYYMMDD format
        """
        return datetime.now().strftime("%Y%m%d")

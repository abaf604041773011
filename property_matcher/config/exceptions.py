"""Custom exceptions for configuration management."""

from typing import List, Optional

from pydantic import ValidationError


class ConfigurationError(Exception):
    """
    Raised when configuration cannot be loaded or fails validation.

    Carries every problem found plus suggestions, rendered as one readable
    block so the CLI can print it as-is.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        self.message = message
        self.errors = list(errors or [])
        self.suggestions = list(suggestions or [])
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [self.message]

        if self.errors:
            lines.append("\nValidation Errors:")
            lines.extend(f"  {i}. {error}" for i, error in enumerate(self.errors, 1))

        if self.suggestions:
            lines.append("\nSuggestions:")
            lines.extend(f"  - {suggestion}" for suggestion in self.suggestions)

        return "\n".join(lines)

    def __str__(self) -> str:
        return self._format_message()

    @classmethod
    def from_validation_error(
        cls,
        error: ValidationError,
        message: str = "Configuration validation failed",
        suggestions: Optional[List[str]] = None,
    ) -> "ConfigurationError":
        """
        Build a ConfigurationError from a pydantic ValidationError.

        Each pydantic error becomes one line naming the dotted field path.
        """
        errors = []
        for item in error.errors():
            field_path = ".".join(str(loc) for loc in item["loc"]) or "<root>"
            error_type = item["type"]

            if error_type == "missing":
                errors.append(f"Missing required field: {field_path}")
            elif error_type.endswith("_type"):
                expected = error_type[: -len("_type")]
                errors.append(
                    f"Invalid type for '{field_path}': expected {expected}, got {item.get('input')!r}"
                )
            elif error_type == "extra_forbidden":
                errors.append(f"Unknown setting: {field_path}")
            else:
                errors.append(f"{field_path}: {item['msg']}")

        return cls(
            message,
            errors=errors,
            suggestions=suggestions
            or [
                "Review config.example.yaml for the expected layout",
                "Check value types and allowed ranges",
            ],
        )

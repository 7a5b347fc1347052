"""Validation utilities for fusionsearch configuration."""

from pydantic import ValidationError as PydanticValidationError


def flatten_pydantic_errors(exc: PydanticValidationError) -> list[str]:
    """Flatten a Pydantic ValidationError into one message per field.

    Args:
        exc: Pydantic ValidationError exception

    Returns:
        List of human-readable messages of the form ``Field 'a.b': msg``
    """
    errors: list[str] = []

    for error in exc.errors():
        loc = error.get("loc", ())
        field_path = ".".join(str(item) for item in loc) if loc else "unknown"
        msg = error.get("msg", "Unknown error")

        if error.get("type") == "value_error":
            errors.append(
                f"Field '{field_path}': {msg} (received: {error.get('input')!r})"
            )
        else:
            errors.append(f"Field '{field_path}': {msg}")

    return errors if errors else ["Validation failed with unknown error"]

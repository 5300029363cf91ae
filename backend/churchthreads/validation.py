"""Field and file validation shared by the API and the service layer."""
import os
import re
from dataclasses import dataclass, field

ALLOWED_IMAGE_TYPES = (
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/heic",
    "image/heif",
)

MB = 1024 * 1024
SIZE_LIMITS = {
    "avatar": 5 * MB,
    "thread": 10 * MB,
    "message": 10 * MB,
}

GIF_NOT_ALLOWED_FOR = ("avatar",)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

FEED_NAME_RULES = {"required": True, "min_length": 4, "max_length": 25}
FEED_DESCRIPTION_RULES = {"max_length": 100}
PERSON_NAME_RULES = {"required": True, "min_length": 4, "max_length": 25}


@dataclass
class ValidationError:
    field: str
    message: str


@dataclass
class ValidationResult:
    valid: bool = True
    errors: list[ValidationError] = field(default_factory=list)

    def add(self, field_name: str, message: str) -> None:
        self.valid = False
        self.errors.append(ValidationError(field=field_name, message=message))

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        for error in other.errors:
            self.add(error.field, error.message)
        return self


def validate_text_field(
    value: str | None,
    required: bool = False,
    min_length: int | None = None,
    max_length: int | None = None,
    field_name: str = "Field",
) -> ValidationResult:
    result = ValidationResult()
    text = (value or "").strip()

    if not text:
        if required:
            result.add(field_name, f"{field_name} is required")
        return result

    if min_length is not None and len(text) < min_length:
        result.add(field_name, f"{field_name} must be at least {min_length} characters")
    if max_length is not None and len(text) > max_length:
        result.add(field_name, f"{field_name} must be at most {max_length} characters")
    return result


def validate_email_field(
    value: str | None,
    required: bool = False,
    field_name: str = "Email",
) -> ValidationResult:
    result = ValidationResult()
    text = (value or "").strip()

    if not text:
        if required:
            result.add(field_name, f"{field_name} is required")
        return result

    if not EMAIL_PATTERN.match(text):
        result.add(field_name, f"{field_name} must be a valid email address")
    return result


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value.strip()))


def get_file_extension(file_name: str | None) -> str | None:
    if not file_name:
        return None
    _, ext = os.path.splitext(file_name)
    ext = ext.lstrip(".").lower()
    return ext or None


def validate_file(
    content_type: str | None,
    size: int,
    source: str,
) -> ValidationResult:
    """Checks MIME type, size and per-source restrictions of an upload."""
    result = ValidationResult()
    mime = (content_type or "").lower()

    if mime not in ALLOWED_IMAGE_TYPES:
        result.add(
            "file",
            f"File type {mime or 'unknown'} is not allowed. "
            f"Allowed types: {', '.join(t.split('/')[1] for t in ALLOWED_IMAGE_TYPES)}",
        )
    elif mime == "image/gif" and source in GIF_NOT_ALLOWED_FOR:
        result.add("file", f"GIF images are not allowed for {source} uploads")

    if size <= 0:
        result.add("file", "File is empty")

    limit = SIZE_LIMITS.get(source)
    if limit is not None and size > limit:
        result.add("file", f"File is too large. Maximum size is {limit // MB}MB")

    return result


def validate_feed_fields(name: str | None, description: str | None) -> ValidationResult:
    result = validate_text_field(name, field_name="Feed name", **FEED_NAME_RULES)
    return result.merge(
        validate_text_field(description, field_name="Description", **FEED_DESCRIPTION_RULES)
    )


def validate_registration_fields(name: str | None, email: str | None) -> ValidationResult:
    result = validate_text_field(name, field_name="Name", **PERSON_NAME_RULES)
    return result.merge(validate_email_field(email, required=True, field_name="Email"))

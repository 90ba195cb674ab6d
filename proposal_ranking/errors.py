# CUI // SP-PROPIN
"""Error taxonomy for the ranking engine.

Each error carries the HTTP status the API maps it to:
    ValidationError  400  missing or invalid input
    AuthError        401  no authenticated caller
    NotFoundError    404  a required entity does not exist
    InternalError    500  entity store or scoring failure
"""


class RankingError(Exception):
    """Base class for engine errors."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def payload(self):
        return {"status": "error", "error": self.message}


class ValidationError(RankingError):
    status_code = 400

    @classmethod
    def missing(cls, *fields):
        return cls(f"{', '.join(fields)} required")

    def payload(self):
        return {"error": self.message}


class AuthError(RankingError):
    status_code = 401

    def __init__(self, message="Unauthorized"):
        super().__init__(message)

    def payload(self):
        return {"error": self.message}


class NotFoundError(RankingError):
    status_code = 404


class InternalError(RankingError):
    status_code = 500


def require(params, *fields):
    """Raise ValidationError naming every field that is missing or blank."""
    missing = [f for f in fields
               if params.get(f) is None or (isinstance(params.get(f), str)
                                             and not params.get(f).strip())]
    if missing:
        raise ValidationError.missing(*missing)


def as_number(value, field, default, cast=int):
    """Coerce an optional numeric input, rejecting junk and negatives."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        number = cast(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number") from None
    if number < 0:
        raise ValidationError(f"{field} must not be negative")
    return number

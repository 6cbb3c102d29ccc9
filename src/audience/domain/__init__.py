from audience.domain.fields import FilterField, FilterOperator
from audience.domain.models import Contact, FilterRule, Segment
from audience.domain.rules import ValidationError

__all__ = [
    "Contact",
    "FilterField",
    "FilterOperator",
    "FilterRule",
    "Segment",
    "ValidationError",
]

"""CDK Stacks for the backend service."""

from .service_stack import ServiceStack
from .validation import add_validation_aspects

__all__ = [
    "ServiceStack",
    "add_validation_aspects",
]

"""Offer processing pipeline: match, then notify inline or deferred."""

from .models import OfferRunResult
from .runner import OfferMatchingPipeline

__all__ = [
    "OfferMatchingPipeline",
    "OfferRunResult",
]

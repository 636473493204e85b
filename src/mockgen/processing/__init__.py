"""Processing module for mockgen.

Provides endpoint normalization and serialization.
"""

from mockgen.processing.normalizer import EndpointNormalizer, normalize, processing_stats
from mockgen.processing.serializer import deserialize, serialize

__all__ = ["EndpointNormalizer", "deserialize", "normalize", "processing_stats", "serialize"]

"""Generators module for mockgen.

Provides the AI (Postman collection) and document generators.
"""

from mockgen.generators.ai import AiGenerationOptions, AiGenerationResult, AiGenerator
from mockgen.generators.documents import DocumentGenerator, DocumentOptions
from mockgen.generators.postman import collection_stats, validate_collection_json

__all__ = [
    "AiGenerationOptions",
    "AiGenerationResult",
    "AiGenerator",
    "DocumentGenerator",
    "DocumentOptions",
    "collection_stats",
    "validate_collection_json",
]

"""Parser package exports."""

from .listing_detector import is_directory_listing
from .listing_parser import ListingParser, ListingParserConfig, parse_listing

__all__ = [
    "ListingParser",
    "ListingParserConfig",
    "is_directory_listing",
    "parse_listing",
]

"""
Country catalog module

Provides the master country list for bulk refreshes and validation of
free-text country names for single-country lookups.
"""

from catalog.catalog import CountryCatalog, ValidationResult

__all__ = ['CountryCatalog', 'ValidationResult']

"""Book Lending Tracker - Services Package

This package contains service modules for external integrations:
- Lending REST API client
- Google Books / Hugging Face metadata lookup
- HTTP client abstraction
"""

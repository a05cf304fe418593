"""Core domain package for killwatch.

Core contains watermark tracking, location filtering, message composition and
the update cycle without any HTTP or storage-specific code, keeping the
business logic portable.
"""

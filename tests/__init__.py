# crmguard Test Suite
"""
Test suite including:
- Unit tests per primitive
- Security tests (tampering, malformed input, concurrency)
- Integration tests (settings, lifecycle, audit events)

Run with: pytest
"""

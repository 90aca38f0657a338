"""
Page-level tests for the BenchBoost dashboard.

Tests use the Flask test client with the in-memory backend and cover:
- Sign-in, sign-up, sign-out and token refresh
- Role-gated pages and the Access Denied response
- Task claim, completion, verification and editing flows
"""

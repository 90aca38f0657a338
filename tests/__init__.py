"""
Test suite for the BenchBoost dashboard.

This package contains:
- unit/: pure rules, aggregations, token checks and the backend client
- integration/: page and form flows through the Flask test client
- contracts/: checks against contracts/backend_tables.yaml
- fakes.py / helpers.py: in-memory backend and token helpers
"""

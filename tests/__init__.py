"""
Test suite for the hook loader.

Test structure:
- unit/ - Unit tests (fast, isolated, HTTP mocked)
- integration/ - Integration tests (real requests against a local server)
- fixtures/ - Sample hook sources and the fake module host

Run tests:
    pytest                    # All tests
    pytest tests/unit         # Unit tests only
    pytest tests/integration  # Integration tests only
    pytest -k "coalesc"       # Tests matching name

Philosophy:
    A module is fetched and executed at most once. The tests that prove it
    matter more than any other.
"""

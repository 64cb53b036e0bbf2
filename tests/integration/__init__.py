"""Integration tests: real HTTP against a local fixture server."""

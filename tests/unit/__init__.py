"""Unit tests for the hook loader.

Fast, isolated tests for individual components.
No network: HTTP goes through FakeModuleHost.
"""

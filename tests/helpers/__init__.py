"""Shared fakes and interview drivers for the test suite."""

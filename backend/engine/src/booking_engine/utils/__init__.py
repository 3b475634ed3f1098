"""Shared utilities: calendar math and structured logging."""

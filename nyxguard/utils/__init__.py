"""Shared helpers for NyxGuard."""

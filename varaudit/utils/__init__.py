"""Utility helpers shared by varaudit commands."""

"""Shared baby-care activity log API."""

"""Accounting-identity audit of projection output."""

"""Incremental ticket revalidation service."""

"""Durable local key/value storage."""

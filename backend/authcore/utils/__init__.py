"""Shared utilities: SQL query construction, log sanitisation, ETag helpers"""

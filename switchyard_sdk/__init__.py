"""Async client for the Switchyard HTTP API."""

"""Upstream access: key rotation, request payloads, invocation and response classification."""

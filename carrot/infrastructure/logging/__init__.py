"""Logging infrastructure — setup and colored agent tracing."""

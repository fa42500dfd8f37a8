"""Unified (v1) and legacy (v0) pipeline trees."""

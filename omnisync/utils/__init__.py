"""Shared utilities for Omnisync."""

"""Therapy booking backend."""

"""Shared helpers for deployer module."""

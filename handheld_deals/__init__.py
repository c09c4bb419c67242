"""Sync jobs and catalog logic for the Handheld Deals site."""

"""Configuration for the dashboard pipeline."""

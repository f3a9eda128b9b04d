"""Configuration, data model and errors shared by every aegis_notify module."""

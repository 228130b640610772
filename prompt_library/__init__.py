"""Prompt Library Service

A REST microservice for storing prompt templates with metadata, tags,
categories and usage counters, backed by a single YAML file with backups.
"""

__version__ = "1.0.0"

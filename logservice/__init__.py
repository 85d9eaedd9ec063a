"""Client-side building blocks for a cloud log service: models, signing, retries, credentials and logging setup."""

__version__ = "0.1.0"
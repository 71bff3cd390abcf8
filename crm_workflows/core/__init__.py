"""Core infrastructure: configuration, logging, errors and record stores."""

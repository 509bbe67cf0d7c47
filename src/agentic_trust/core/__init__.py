"""Core building blocks: configuration, logging, exceptions, types, contract constants."""

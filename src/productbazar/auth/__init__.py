"""Authentication primitives: tokens and password hashing."""

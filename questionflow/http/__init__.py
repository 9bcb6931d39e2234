"""HTTP helpers: problem+json handlers, error mapping and request ids."""

"""Stage configuration: raw contracts, validation models and the resolver."""

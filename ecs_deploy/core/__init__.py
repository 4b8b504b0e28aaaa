"""Configuration-to-topology compiler."""

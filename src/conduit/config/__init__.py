"""Configuration schema and YAML loading."""

"""Configuration, layout and error types shared by the supervisor."""

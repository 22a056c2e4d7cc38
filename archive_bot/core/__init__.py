"""Configuration and logging shared by the archive bot."""

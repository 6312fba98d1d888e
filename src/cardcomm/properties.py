"""Card API properties."""

# API version, bumped on any change of the public surface.
VERSION = "2.0.0"

"""HTTP surface of the Mars Rover service."""

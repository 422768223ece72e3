"""Tile backends: an in-memory Pillow backend and one that runs the external vips command."""
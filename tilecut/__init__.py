"""Cut large minimap images into fixed-size tiles and write a reusable manifest."""

__version__ = "0.1.0"
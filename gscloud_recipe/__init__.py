"""gscloud-recipe: fetch, build and install the gscloud CLI from a recipe."""

__version__ = "0.1.0"

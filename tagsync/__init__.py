"""tagsync keeps a blog's tag index pages in sync with its posts.

Posts declare tags in their YAML front matter. Every distinct tag needs one
generated index page (an artifact) that the site renderer turns into the
listing for that tag. tagsync scans the posts, normalizes the tags, compares
them with the artifacts on disk and creates whatever is missing. Artifacts no
post refers to any more are reported, never deleted automatically.

The pipeline is split into stages, each in its own module:
- scanner: reads documents and their front matter
- normalizer: turns raw tag strings into canonical tags
- index: folds tags into an inverted index and lists existing artifacts
- synchronizer: plans and applies the creations

The main entry point is the CLI module.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"

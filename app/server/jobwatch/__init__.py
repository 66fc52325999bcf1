"""jobwatch: live console backend for autonomous agent jobs."""

__version__ = "1.0.0"

"""NextGraph: static structure, routing and dependency graphs for Next.js projects."""

__version__ = "0.1.0"

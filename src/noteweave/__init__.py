"""noteweave - hierarchical note store with derived annotation indexes"""

__version__ = "0.1.0"

"""botyard: run uploaded code bundles in isolated, resource-capped sandboxes."""


__version__ = "0.1.0"

__all__ = [
    "__version__",
]

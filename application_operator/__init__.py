"""Application Operator - creates Pods for Application custom resources."""

__version__ = "0.1.0"

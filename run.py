#!/usr/bin/env python3
"""
Application Operator - Entry Point

A CRD-based Kubernetes controller that watches Application objects
and creates one Pod per desired replica from the Application's template.

Usage:
    python run.py [--namespace NAMESPACE] [--workers N] [--dry-run] [--in-cluster]
"""

from application_operator.cli import main


if __name__ == "__main__":
    main()

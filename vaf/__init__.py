"""
VAF - Release orchestrator for serverless function deployments.

This package provides a CLI that builds a deployable artifact from a local
source tree, uploads it to the VAF backend, triggers a release and follows
it until it settles.
"""

__version__ = "0.1.1"
__author__ = "VAF"

# src/nodecycler/__init__.py
"""
nodecycler: rolling replacement of Kubernetes nodes backed by a regional
managed instance group.
"""

__version__ = "0.3.1"

"""
Setup script for backwards compatibility.

Package metadata and dependencies live in pyproject.toml; this shim only
lets older pip versions run an editable install of faceanchor.
"""

from setuptools import setup

setup()

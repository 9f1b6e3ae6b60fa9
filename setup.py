"""Setup script for EventBoard."""

from setuptools import setup, find_packages

setup(
    packages=find_packages(include=["eventboard", "eventboard.*"]),
)

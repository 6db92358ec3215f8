"""Provision an edge gateway by launching the Greengrass container on this host."""

__version__ = "0.1.0"

"""
depfinder_mcp - Binary dependency finder for extracted Android firmware

This package resolves the shared libraries a native binary needs inside an
extracted firmware image, mirrors them into an output tree, and builds a
corpus-wide "who needs library X" reference index. The engine is exposed
through the ``depfinder`` command line and an MCP server.
"""

__version__ = "0.1.0"

"""ACC Transform MCP Server - save element moves back to Revit models in Autodesk Construction Cloud."""

__version__ = "0.1.0"

"""paperclip - hierarchical task lists with workspaces and undo"""

__version__ = "0.1.0"

"""treehole: streaming chat core for the tree hole journaling screen."""

__version__ = "0.1.0"

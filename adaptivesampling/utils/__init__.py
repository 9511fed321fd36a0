# adaptivesampling/utils/__init__.py

"""General utilities to support the functionalities of this package:

- `maps`: Provides the grid map used for occupancy and ground truth, and ground truth generators
- `metrics`: Provides utilities to quantify the quality of a belief model
- `misc`: Provides miscellaneous helper functions
"""

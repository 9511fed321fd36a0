# adaptivesampling/core/__init__.py

"""Core modules in this package:

- `belief_models`: Provides the multi-output Gaussian process belief models along with their fitting functions
- `path_cost`: Provides the grid shortest-path cost oracle used to measure travel from the current location
"""

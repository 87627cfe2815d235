"""
                JWT Pizza Service

Pizza-ordering backend: authentication, menu, franchises, stores and
diner orders, with completed orders forwarded to the pizza factory.
"""

__version__ = "1.0.0"

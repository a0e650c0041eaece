"""
                Order Desk

Table-side food ordering backend: customers submit orders, staff
watch and update them live over Server-Sent Events.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"

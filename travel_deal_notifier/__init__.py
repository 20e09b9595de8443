"""
Travel Deal Notifier

Scores merchant deals against a traveler's budget, location, itinerary and
engagement history, groups them on a map grid, and decides which deal
notifications to send now, batch into digests, or suppress.
"""

__version__ = "0.1.0"
__author__ = "Travel Deal Notifier Team"

"""
steam-library-export: Markdown notes for a scraped Steam library.

Reads the latest library scrape, enriches each game with Steam store
metadata, and renders one note per game through a user-editable template.
"""

__version__ = "0.1.0"

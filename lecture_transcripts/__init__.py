# Lecture Transcripts - pull lecture transcripts out of a course player
"""
Resolves a course curriculum into chapters and lectures, then drives a
pool of browser lanes that open each lecture's transcript panel and save
the text (plus optional subtitle files) next to a contents listing.
"""

__version__ = "0.1.0"

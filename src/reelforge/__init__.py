"""reelforge — fit photos and clips to a fixed-length reel.

Compute frame-accurate crossfaded timelines from ordered media items
(compositor), and persist reel projects with their media in a
content-addressed store (blob_store, manifest_store, library).
"""

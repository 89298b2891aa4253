#!/usr/bin/env python3
"""
Audio Extractor CLI - pull audio off removable media and prepare it for a catalog.

Discovers audio files on a drive, copies and normalizes them to canonical WAV,
renders waveform images and preview clips, and projects the results into
track entries ready for import.
"""

from audio_extractor.interface.cli import app

if __name__ == "__main__":
    app()

"""
Backend Scripts

    - seed_data.py: Creates the sample "Doc Review" workflow and a document

Usage:
    python -m scripts.seed_data
"""

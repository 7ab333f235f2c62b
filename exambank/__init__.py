"""
Exam Bank Ingestion
===================
Question ingestion pipeline for the licensure-review exam bank.

Architecture:
    - Text Extractor: Pulls positioned text lines out of PDF exam sheets
    - Line Normalizer: Trims and filters extracted lines
    - State Machine: Detects categories, question boundaries and bodies
    - Option Extractor: Collects lettered options and correct-answer markers
    - Row Validator: Checks spreadsheet rows against course rules
    - Duplicate Resolver: Detects repeats in the file and in storage
    - Import Orchestrator: Drives preview / commit and aggregates results

Version: 1.0.0
"""

__version__ = "1.0.0"

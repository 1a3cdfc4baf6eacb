"""
IoT SVG Metadata Test Suite

Test Files:
1. test_metadata_parse.py - Extraction and its failure modes
2. test_metadata_embed.py - Embedding, round-trip and idempotence
"""

"""
IoT SVG Settings Test Suite

Test Files:
1. test_settings_defaults.py - Default settings per behavior and property
2. test_settings_merge.py - Deep merge and typed resolution
"""

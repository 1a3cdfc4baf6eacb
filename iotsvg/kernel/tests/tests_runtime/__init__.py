"""
IoT SVG Runtime Test Suite

Test Files:
1. test_runtime_init.py - Loading, scene preparation, sizing, properties
2. test_runtime_values.py - Cells, change detection and render passes
3. test_runtime_actions.py - Trigger wiring, call_action, error sink
4. test_runtime_lifecycle.py - Busy stream and teardown
"""
